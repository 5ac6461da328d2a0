from crewpay.extensions import db
from sqlalchemy import Numeric
from crewpay.utils.timezone_utils import utcnow_naive

BOOKING_STATUS_COMPLETED = 'completed'


class Booking(db.Model):
    """
    Completed-service record owned by the booking system.

    The payroll engine only reads this table; assignment and status
    transitions happen elsewhere.
    """
    __tablename__ = 'booking'
    id = db.Column(db.String(64), primary_key=True)
    service_type = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(32), nullable=False, default='pending', index=True)
    total_revenue = db.Column(Numeric(precision=12, scale=2), nullable=False, default=0)
    completed_at = db.Column(db.DateTime, nullable=True, index=True)
    # JSON array of crew user ids, e.g. '["c1", "c2"]'
    assigned_crew_ids = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    def __repr__(self):
        return f"<Booking {self.id} - {self.status}>"
