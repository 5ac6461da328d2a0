from crewpay.extensions import db
from sqlalchemy import Numeric


class CrewMember(db.Model):
    __tablename__ = 'crew_member'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='active')
    # Individual fallback rate, percent
    commission_rate = db.Column(Numeric(precision=5, scale=2), nullable=True, default=0)

    def __repr__(self):
        return f"<CrewMember {self.user_id} - {self.name}>"
