from crewpay.extensions import db
from sqlalchemy import Numeric
from crewpay.utils.timezone_utils import utcnow_naive


class CommissionRate(db.Model):
    __tablename__ = 'commission_rate'
    id = db.Column(db.Integer, primary_key=True)
    # Stored trimmed and lower-cased
    service_type = db.Column(db.String(255), nullable=False, unique=True)
    rate_percent = db.Column(Numeric(precision=5, scale=2), nullable=False, default=0)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    def __repr__(self):
        return f"<CommissionRate {self.service_type} {self.rate_percent}%>"
