import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from crewpay.extensions import db
from crewpay.models.commission_entry import CommissionEntry, STATUS_DISPUTED
from crewpay.services.errors import (
    ServiceError, ValidationError, NotFoundError, UpstreamUnavailableError,
    ConcurrentModificationError, translate_db_error,
)
from crewpay.services.status_policy import initial_status, require_status, check_transition
from crewpay.utils.timezone_utils import to_utc_naive

# Numeric(12, 2) holds ten integer digits
MAX_AMOUNT = Decimal('1e10')


def parse_amount(value) -> Decimal:
    """Finite amount with two decimals; negative amounts model deductions."""
    if value is None or isinstance(value, bool) or value == '':
        raise ValidationError("amount is required.", {'amount': ['Missing data for required field.']})
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("amount must be a number.", {'amount': ['Not a valid number.']})
    if not amount.is_finite():
        raise ValidationError("amount must be a finite number.", {'amount': ['Not a finite number.']})
    if abs(amount) >= MAX_AMOUNT:
        raise ValidationError("amount is too large.", {'amount': ['Must be less than 10000000000 in magnitude.']})
    try:
        return amount.quantize(Decimal('0.01'))
    except InvalidOperation:
        raise ValidationError("amount is too large.", {'amount': ['Must be less than 10000000000 in magnitude.']})


def _require_text(value, field_name):
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required.", {field_name: ['Missing data for required field.']})
    return str(value).strip()


class CommissionEntryService:
    @staticmethod
    def get_by_id(entry_id):
        try:
            return db.session.get(CommissionEntry, entry_id)
        except SQLAlchemyError as e:
            logging.error(f"Error fetching commission entry: {e}", exc_info=True)
            raise translate_db_error(e, "fetch commission entry")

    @staticmethod
    def create(crew_user_id, entry_date, amount, notes, recorded_by, status=None):
        """
        Record a manual commission entry.

        ``status`` falls back to pending when missing or not a known status.
        """
        crew_user_id = _require_text(crew_user_id, 'crewUserId')
        recorded_by = _require_text(recorded_by, 'recordedBy')
        if not isinstance(entry_date, datetime):
            raise ValidationError("entryDate is required.", {'entryDate': ['Not a valid datetime.']})
        amount = parse_amount(amount)

        try:
            entry = CommissionEntry(
                crew_user_id=crew_user_id,
                entry_date=to_utc_naive(entry_date),
                amount=amount,
                notes=notes,
                recorded_by=recorded_by,
                status=initial_status(status),
            )
            db.session.add(entry)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error creating commission entry: {e}", exc_info=True)
            raise translate_db_error(e, "create commission entry")

        logging.info(f"Commission entry {entry.id} recorded for crew {crew_user_id}: {amount} ({entry.status}) by {recorded_by}")
        return entry

    @staticmethod
    def list_entries(crew_user_id=None, status=None, start=None, end=None):
        """Entries matching the filters, newest ``entry_date`` first."""
        query = CommissionEntry.query
        if crew_user_id:
            query = query.filter(CommissionEntry.crew_user_id == str(crew_user_id))
        if status:
            query = query.filter(CommissionEntry.status == require_status(status))
        if start is not None:
            query = query.filter(CommissionEntry.entry_date >= to_utc_naive(start))
        if end is not None:
            query = query.filter(CommissionEntry.entry_date <= to_utc_naive(end))
        try:
            return query.order_by(CommissionEntry.entry_date.desc(), CommissionEntry.id.desc()).all()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching commission entries: {e}", exc_info=True)
            raise translate_db_error(e, "fetch commission entries")

    @staticmethod
    def list_active_manual_entries(start, end, crew_user_id=None):
        """Non-disputed manual entries dated inside ``[start, end]``."""
        query = CommissionEntry.query.filter(
            CommissionEntry.status != STATUS_DISPUTED,
            CommissionEntry.booking_id.is_(None),
            CommissionEntry.entry_date >= to_utc_naive(start),
            CommissionEntry.entry_date <= to_utc_naive(end),
        )
        if crew_user_id:
            query = query.filter(CommissionEntry.crew_user_id == str(crew_user_id))
        try:
            return query.order_by(CommissionEntry.entry_date).all()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching manual commission entries: {e}", exc_info=True)
            raise translate_db_error(e, "fetch commission entries")

    @staticmethod
    def update_status(entry_id, new_status):
        status = require_status(new_status)
        try:
            entry = db.session.get(CommissionEntry, entry_id)
            if not entry:
                raise NotFoundError(f"Commission entry {entry_id} not found.")
            if entry.status == status:
                return entry
            check_transition(entry.status, status, 'commission entry')
            previous = entry.status
            entry.status = status
            db.session.commit()
        except ServiceError:
            db.session.rollback()
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error updating commission entry status: {e}", exc_info=True)
            raise translate_db_error(e, "update commission entry status")

        logging.info(f"Commission entry {entry_id} status {previous} -> {status}")
        return entry

    @staticmethod
    def materialize_booking_entries(crew_user_id, start, end, recorded_by, status=None):
        """
        Persist the crew member's booking-derived commission in the window as
        ledger entries so they can be attached to a payout.

        Bookings already materialized for this crew member are skipped.
        Returns the newly created entries.
        """
        from crewpay.services.commission_aggregator import CommissionAggregator

        crew_user_id = _require_text(crew_user_id, 'crewUserId')
        recorded_by = _require_text(recorded_by, 'recordedBy')
        result = CommissionAggregator.aggregate(start, end, crew_user_id=crew_user_id)
        if result.degraded:
            raise UpstreamUnavailableError(
                f"Cannot materialize commission while {', '.join(result.unavailable_sources)} is unavailable.")

        entry_status = initial_status(status)
        created = []
        try:
            existing = {
                booking_id for (booking_id,) in db.session.query(CommissionEntry.booking_id).filter(
                    CommissionEntry.crew_user_id == crew_user_id,
                    CommissionEntry.booking_id.in_([line.booking_id for line in result.lines]),
                )
            } if result.lines else set()

            for line in result.lines:
                if line.booking_id in existing:
                    continue
                entry = CommissionEntry(
                    crew_user_id=crew_user_id,
                    entry_date=line.completed_at,
                    amount=line.commission,
                    notes=f"Booking {line.booking_id} ({line.service_type}) at {line.rate_percent}%",
                    recorded_by=recorded_by,
                    status=entry_status,
                    booking_id=line.booking_id,
                )
                db.session.add(entry)
                created.append(entry)
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            logging.warning(f"Concurrent materialization for crew {crew_user_id}: {e}")
            raise ConcurrentModificationError("Booking commission was materialized concurrently. Please retry.")
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error materializing booking commission: {e}", exc_info=True)
            raise translate_db_error(e, "materialize booking commission")

        logging.info(f"Materialized {len(created)} booking commission entries for crew {crew_user_id} by {recorded_by}")
        return created
