from crewpay.extensions import db
from sqlalchemy import Numeric
from crewpay.utils.timezone_utils import utcnow_naive

STATUS_PENDING = 'pending'
STATUS_APPROVED = 'approved'
STATUS_RELEASED = 'released'
STATUS_DISPUTED = 'disputed'
COMMISSION_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_RELEASED, STATUS_DISPUTED)


class CommissionEntry(db.Model):
    """
    Ledger row for a discrete commission amount.

    Rows are never deleted, only status-transitioned. ``booking_id`` is set
    only on rows materialized from a completed booking.
    """
    __tablename__ = 'commission_entry'
    id = db.Column(db.Integer, primary_key=True)
    crew_user_id = db.Column(db.String(64), nullable=False, index=True)
    entry_date = db.Column(db.DateTime, nullable=False, index=True)
    amount = db.Column(Numeric(precision=12, scale=2), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    recorded_by = db.Column(db.String(64), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    payout_id = db.Column(db.Integer, db.ForeignKey('payout.id'), nullable=True, index=True)
    booking_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __table_args__ = (db.UniqueConstraint('booking_id', 'crew_user_id', name='_commission_entry_booking_crew_uc'),)

    @property
    def is_manual(self):
        return self.booking_id is None

    def __repr__(self):
        return f"<CommissionEntry {self.id} {self.crew_user_id} {self.amount} - {self.status}>"
