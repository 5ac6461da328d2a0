"""
Read-only view over completed bookings.

The booking lifecycle belongs to another system; this module only turns its
rows into typed ``CompletedBooking`` values for commission calculation.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import FrozenSet, List

from sqlalchemy.exc import SQLAlchemyError

from crewpay.models.booking import Booking, BOOKING_STATUS_COMPLETED
from crewpay.services.errors import translate_db_error
from crewpay.utils.timezone_utils import to_utc_naive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletedBooking:
    id: str
    service_type: str
    category: str
    total_revenue: Decimal
    completed_at: datetime
    assigned_crew_ids: FrozenSet[str]


def parse_crew_ids(raw, booking_id=None) -> FrozenSet[str]:
    """
    Parse the stored crew assignment into a set of crew user ids.

    Anything that is not a JSON array of ids (bad JSON, a bare string, an
    object) yields an empty set. Blank ids are dropped.
    """
    if raw is None or raw == '':
        return frozenset()
    value = raw
    if isinstance(raw, (str, bytes)):
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Booking {booking_id}: unparseable assigned crew ids {raw!r}, treating as unassigned")
            return frozenset()
    if not isinstance(value, (list, tuple, set, frozenset)):
        logger.warning(f"Booking {booking_id}: assigned crew ids is not a list ({type(value).__name__}), treating as unassigned")
        return frozenset()
    ids = set()
    for item in value:
        if isinstance(item, (str, int)) and not isinstance(item, bool):
            crew_id = str(item).strip()
            if crew_id:
                ids.add(crew_id)
    return frozenset(ids)


def _to_decimal(value) -> Decimal:
    try:
        return Decimal(str(value if value is not None else 0))
    except (InvalidOperation, ValueError):
        return Decimal('0')


class BookingDirectory:
    @staticmethod
    def list_completed_bookings(start, end) -> List[CompletedBooking]:
        """
        Completed bookings with ``completed_at`` in ``[start, end]`` (inclusive).

        Raises:
            UpstreamUnavailableError / ServiceTimeoutError: the booking store could not be read
        """
        try:
            rows = (
                Booking.query
                .filter(
                    Booking.status == BOOKING_STATUS_COMPLETED,
                    Booking.completed_at.isnot(None),
                    Booking.completed_at >= to_utc_naive(start),
                    Booking.completed_at <= to_utc_naive(end),
                )
                .order_by(Booking.completed_at)
                .all()
            )
        except SQLAlchemyError as e:
            logging.error(f"Error fetching completed bookings: {e}", exc_info=True)
            raise translate_db_error(e, "fetch completed bookings")

        return [
            CompletedBooking(
                id=row.id,
                service_type=row.service_type or '',
                category=row.category or '',
                total_revenue=_to_decimal(row.total_revenue),
                completed_at=row.completed_at,
                assigned_crew_ids=parse_crew_ids(row.assigned_crew_ids, row.id),
            )
            for row in rows
        ]
