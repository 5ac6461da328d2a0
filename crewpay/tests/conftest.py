import json
from datetime import datetime
from decimal import Decimal

import pytest

from crewpay.config import TestConfig
from crewpay.extensions import db
from crewpay.models.booking import Booking
from crewpay.models.commission_entry import CommissionEntry
from crewpay.models.crew_member import CrewMember
from crewpay.server import create_app
from crewpay.services.commission_rate_service import CommissionRateService

# Sunday 2025-01-05 .. Friday 2025-01-10 is the reference payroll window
WINDOW_START = datetime(2025, 1, 5, 0, 0, 0)
WINDOW_END = datetime(2025, 1, 10, 23, 59, 59, 999000)
MIDWEEK = datetime(2025, 1, 8, 14, 30)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_crew(app):
    def _make(user_id, name=None, commission_rate=0):
        member = CrewMember(user_id=user_id, name=name or f"Crew {user_id}", commission_rate=Decimal(str(commission_rate)))
        db.session.add(member)
        db.session.commit()
        return member
    return _make


@pytest.fixture
def make_booking(app):
    counter = {'n': 0}

    def _make(service_type='classic wash', revenue='500', crew=('c1',), category=None,
              completed_at=MIDWEEK, status='completed', raw_crew=None):
        counter['n'] += 1
        booking = Booking(
            id=f"bk-{counter['n']}",
            service_type=service_type,
            category=category,
            status=status,
            total_revenue=Decimal(str(revenue)),
            completed_at=completed_at,
            assigned_crew_ids=raw_crew if raw_crew is not None else json.dumps(list(crew)),
        )
        db.session.add(booking)
        db.session.commit()
        return booking
    return _make


@pytest.fixture
def set_rate(app):
    def _set(service_type, rate_percent):
        return CommissionRateService.upsert_rate(service_type, rate_percent)
    return _set


@pytest.fixture
def make_entry(app):
    def _make(crew_user_id='c1', amount='20', status='pending', entry_date=MIDWEEK, booking_id=None):
        entry = CommissionEntry(
            crew_user_id=crew_user_id,
            entry_date=entry_date,
            amount=Decimal(str(amount)),
            recorded_by='admin-1',
            status=status,
            booking_id=booking_id,
        )
        db.session.add(entry)
        db.session.commit()
        return entry
    return _make
