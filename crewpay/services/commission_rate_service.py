import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import SQLAlchemyError

from crewpay.extensions import db
from crewpay.models.commission_rate import CommissionRate
from crewpay.services.errors import ServiceError, ValidationError, NotFoundError, translate_db_error
from crewpay.services.rate_resolver import get_rate_resolver, normalize_service_type

MAX_RATE_PERCENT = Decimal('100')


def parse_rate_percent(value) -> Decimal:
    if value is None or isinstance(value, bool) or value == '':
        raise ValidationError("ratePercent is required.", {'ratePercent': ['Missing data for required field.']})
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("ratePercent must be a number.", {'ratePercent': ['Not a valid number.']})
    if not rate.is_finite() or rate < 0 or rate > MAX_RATE_PERCENT:
        raise ValidationError("ratePercent must be between 0 and 100.", {'ratePercent': ['Must be between 0 and 100.']})
    return rate.quantize(Decimal('0.01'))


class CommissionRateService:
    @staticmethod
    def list_active_rates():
        try:
            return CommissionRate.query.filter_by(active=True).order_by(CommissionRate.service_type).all()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching active commission rates: {e}", exc_info=True)
            raise translate_db_error(e, "fetch commission rates")

    @staticmethod
    def list_rates(include_inactive=False):
        try:
            query = CommissionRate.query
            if not include_inactive:
                query = query.filter_by(active=True)
            return query.order_by(CommissionRate.service_type).all()
        except SQLAlchemyError as e:
            logging.error(f"Error fetching commission rates: {e}", exc_info=True)
            raise translate_db_error(e, "fetch commission rates")

    @staticmethod
    def upsert_rate(service_type, rate_percent):
        """
        Create or update the rate for a service type and mark it active.
        The rate resolver is refreshed after the write commits.
        """
        key = normalize_service_type(service_type)
        if not key:
            raise ValidationError("serviceType is required.", {'serviceType': ['Missing data for required field.']})
        rate = parse_rate_percent(rate_percent)

        try:
            record = CommissionRate.query.filter_by(service_type=key).first()
            if record:
                record.rate_percent = rate
                record.active = True
            else:
                record = CommissionRate(service_type=key, rate_percent=rate, active=True)
                db.session.add(record)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error upserting commission rate '{key}': {e}", exc_info=True)
            raise translate_db_error(e, "save commission rate")

        logging.info(f"Commission rate for '{key}' set to {rate}%")
        CommissionRateService._refresh_resolver()
        return record

    @staticmethod
    def deactivate_rate(service_type):
        key = normalize_service_type(service_type)
        try:
            record = CommissionRate.query.filter_by(service_type=key).first()
            if not record:
                raise NotFoundError(f"No commission rate configured for '{key}'.")
            record.active = False
            db.session.commit()
        except ServiceError:
            raise
        except SQLAlchemyError as e:
            db.session.rollback()
            logging.error(f"Error deactivating commission rate '{key}': {e}", exc_info=True)
            raise translate_db_error(e, "deactivate commission rate")

        logging.info(f"Commission rate for '{key}' deactivated")
        CommissionRateService._refresh_resolver()
        return record

    @staticmethod
    def _refresh_resolver():
        resolver = get_rate_resolver()
        try:
            resolver.refresh()
        except ServiceError as e:
            # The write already committed; the next read reloads the table.
            logging.warning(f"Rate resolver refresh failed after rate change: {e.message}")
            resolver.invalidate()
