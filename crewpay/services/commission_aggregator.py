"""
Commission aggregation over completed bookings and manual ledger entries.

Booking-derived commission is computed on the fly, never stored: every crew
member assigned to a booking is commissioned on the booking's full revenue
at their resolved rate. Two assigned crew members therefore each carry the
full ticket in their totals; this is attribution, not a split.

Manual entries (non-disputed, not materialized from a booking) add to
commission only, they carry no revenue.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from crewpay.models.commission_entry import CommissionEntry
from crewpay.services.booking_directory import BookingDirectory, CompletedBooking
from crewpay.services.crew_directory import CrewDirectory
from crewpay.services.errors import ServiceError, UpstreamUnavailableError
from crewpay.services.rate_resolver import get_rate_resolver, normalize_service_type
from crewpay.utils.timezone_utils import to_utc_naive

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
ZERO = Decimal('0.00')

SOURCE_BOOKINGS = 'bookings'
SOURCE_RATES = 'rates'
SOURCE_CREW = 'crew_directory'
SOURCE_ENTRIES = 'commission_entries'
ALL_SOURCES = (SOURCE_BOOKINGS, SOURCE_RATES, SOURCE_CREW, SOURCE_ENTRIES)


def commission_for(revenue: Decimal, rate_percent: Decimal) -> Decimal:
    return (revenue * rate_percent / Decimal('100')).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass
class CommissionLine:
    booking_id: str
    crew_user_id: str
    service_type: str
    category: str
    revenue: Decimal
    rate_percent: Decimal
    commission: Decimal
    completed_at: datetime


@dataclass
class CrewBucket:
    crew_id: str
    crew_name: str
    total_revenue: Decimal = ZERO
    booking_commission: Decimal = ZERO
    manual_commission: Decimal = ZERO
    total_bookings: int = 0

    @property
    def total_commission(self) -> Decimal:
        return self.booking_commission + self.manual_commission


@dataclass
class ServiceBucket:
    service_type: str
    booking_count: int = 0
    total_revenue: Decimal = ZERO
    total_commission: Decimal = ZERO


@dataclass
class AggregateResult:
    period_start: datetime
    period_end: datetime
    total_bookings: int = 0
    total_revenue: Decimal = ZERO
    total_commission: Decimal = ZERO
    per_crew: List[CrewBucket] = field(default_factory=list)
    per_service: List[ServiceBucket] = field(default_factory=list)
    lines: List[CommissionLine] = field(default_factory=list)
    manual_entries: List[CommissionEntry] = field(default_factory=list)
    unavailable_sources: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.unavailable_sources)


class CommissionAggregator:
    @staticmethod
    def aggregate(period_start, period_end, crew_user_id=None, include_unattributed=False) -> AggregateResult:
        """
        Aggregate commission for ``[period_start, period_end]``.

        Args:
            crew_user_id: restrict lines, buckets and manual entries to one crew member
            include_unattributed: count bookings with no assigned crew in the
                organization-level booking/revenue totals

        Any source that cannot be read yields a zeroed result listing the
        failed sources in ``unavailable_sources``.

        Raises:
            UpstreamUnavailableError: every source failed
        """
        start, end = to_utc_naive(period_start), to_utc_naive(period_end)
        result = AggregateResult(period_start=start, period_end=end)
        crew_filter = str(crew_user_id) if crew_user_id is not None else None

        bookings = CommissionAggregator._read(SOURCE_BOOKINGS, result,
                                              lambda: BookingDirectory.list_completed_bookings(start, end))
        profiles = CommissionAggregator._read(SOURCE_CREW, result, CrewDirectory.profiles_by_id)
        resolver = get_rate_resolver()
        rate_table = CommissionAggregator._read(SOURCE_RATES, result, resolver.rates)
        manual_entries = CommissionAggregator._read(
            SOURCE_ENTRIES, result,
            lambda: CommissionAggregator._active_manual_entries(start, end, crew_filter))

        if len(result.unavailable_sources) == len(ALL_SOURCES):
            raise UpstreamUnavailableError("Commission data is unavailable. Please try again later.")
        if result.degraded:
            logger.warning(f"Commission aggregation for {start} - {end} degraded to zero; "
                           f"unavailable: {', '.join(result.unavailable_sources)}")
            return result

        crew_buckets: Dict[str, CrewBucket] = {}
        service_buckets: Dict[str, ServiceBucket] = {}

        def bucket_for(crew_id):
            if crew_id not in crew_buckets:
                profile = profiles.get(crew_id)
                crew_buckets[crew_id] = CrewBucket(crew_id=crew_id,
                                                   crew_name=profile.display_name if profile else crew_id)
            return crew_buckets[crew_id]

        for booking in bookings:
            crew_ids = booking.assigned_crew_ids
            if crew_filter is not None:
                crew_ids = crew_ids & {crew_filter}

            if crew_ids or (include_unattributed and crew_filter is None):
                result.total_bookings += 1
                result.total_revenue += booking.total_revenue

            for crew_id in sorted(crew_ids):
                line = CommissionAggregator._line_for(booking, crew_id, profiles, resolver, rate_table)
                result.lines.append(line)

                bucket = bucket_for(crew_id)
                bucket.total_revenue += line.revenue
                bucket.booking_commission += line.commission
                bucket.total_bookings += 1

                service_key = normalize_service_type(booking.service_type) or 'unspecified'
                service = service_buckets.setdefault(
                    service_key, ServiceBucket(service_type=booking.service_type or 'unspecified'))
                service.booking_count += 1
                service.total_revenue += line.revenue
                service.total_commission += line.commission

                result.total_commission += line.commission

        for entry in manual_entries:
            amount = Decimal(str(entry.amount))
            bucket_for(entry.crew_user_id).manual_commission += amount
            result.total_commission += amount
            result.manual_entries.append(entry)

        result.per_crew = sorted(crew_buckets.values(),
                                 key=lambda b: (-b.total_commission, b.crew_name.lower()))
        result.per_service = sorted(service_buckets.values(),
                                    key=lambda s: (-s.total_commission, s.service_type.lower()))
        return result

    @staticmethod
    def _line_for(booking: CompletedBooking, crew_id, profiles, resolver, rate_table) -> CommissionLine:
        profile = profiles.get(crew_id)
        individual_rate = profile.individual_commission_rate_percent if profile else Decimal('0')
        rate = resolver.resolve(booking.service_type, booking.category, crew_id,
                                individual_rate=individual_rate, rate_table=rate_table)
        return CommissionLine(
            booking_id=booking.id,
            crew_user_id=crew_id,
            service_type=booking.service_type,
            category=booking.category,
            revenue=booking.total_revenue,
            rate_percent=rate,
            commission=commission_for(booking.total_revenue, rate),
            completed_at=booking.completed_at,
        )

    @staticmethod
    def _active_manual_entries(start, end, crew_user_id: Optional[str]):
        # Imported here to keep the ledger service free to depend on the aggregator
        from crewpay.services.commission_entry_service import CommissionEntryService
        return CommissionEntryService.list_active_manual_entries(start, end, crew_user_id=crew_user_id)

    @staticmethod
    def _read(source, result: AggregateResult, reader):
        try:
            return reader()
        except ServiceError as e:
            logger.warning(f"Commission source '{source}' unavailable: {e.message}")
        except Exception as e:
            logger.error(f"Unexpected error reading commission source '{source}': {e}", exc_info=True)
        result.unavailable_sources.append(source)
        return None
