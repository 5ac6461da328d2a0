from crewpay.extensions import db
from sqlalchemy import Numeric
from crewpay.models.commission_entry import STATUS_PENDING
from crewpay.utils.timezone_utils import utcnow_naive


class Payout(db.Model):
    __tablename__ = 'payout'
    id = db.Column(db.Integer, primary_key=True)
    crew_user_id = db.Column(db.String(64), nullable=False, index=True)
    period_start = db.Column(db.DateTime, nullable=False)
    period_end = db.Column(db.DateTime, nullable=False)
    # Supplied by the caller at creation, never recomputed (see PayoutService.audit)
    total_amount = db.Column(Numeric(precision=12, scale=2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    created_by = db.Column(db.String(64), nullable=False)
    released_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    entries = db.relationship('CommissionEntry', backref='payout', lazy='select',
                              order_by='CommissionEntry.entry_date')

    def __repr__(self):
        return f"<Payout {self.id} {self.crew_user_id} - {self.status}>"
