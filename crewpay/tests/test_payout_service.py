import threading
from datetime import datetime
from decimal import Decimal

import pytest

from crewpay.config import TestConfig
from crewpay.extensions import db
from crewpay.models.commission_entry import CommissionEntry
from crewpay.models.payout import Payout
from crewpay.server import create_app
from crewpay.services.errors import ConcurrentModificationError, NotFoundError, ValidationError
from crewpay.services.payout_service import PayoutService

PERIOD_START = datetime(2025, 1, 5)
PERIOD_END = datetime(2025, 1, 10, 23, 59, 59, 999000)


def create_payout(entry_ids, total='60', status=None, crew='c1'):
    return PayoutService.create_payout(
        crew_user_id=crew,
        period_start=PERIOD_START,
        period_end=PERIOD_END,
        total_amount=total,
        created_by='admin-1',
        status=status,
        entry_ids=entry_ids,
    )


class TestCreatePayout:

    def test_attaches_entries_and_propagates_status(self, app, make_entry):
        a = make_entry(amount='40')
        b = make_entry(amount='20')

        payout = create_payout([a.id, b.id], status='approved')

        assert payout.total_amount == Decimal('60')
        assert payout.status == 'approved'
        assert payout.released_at is None
        for entry in (a, b):
            db.session.refresh(entry)
            assert entry.payout_id == payout.id
            assert entry.status == 'approved'

    def test_released_payout_is_stamped(self, app, make_entry):
        payout = create_payout([make_entry().id], total='20', status='released')
        assert payout.released_at is not None

    def test_status_defaults_to_pending(self, app):
        payout = create_payout([], total='0', status='bogus')
        assert payout.status == 'pending'

    def test_total_is_stored_as_given(self, app, make_entry):
        payout = create_payout([make_entry(amount='20').id], total='25')
        assert payout.total_amount == Decimal('25')
        audit = PayoutService.audit(payout.id)
        assert audit['drift'] == Decimal('5')
        assert audit['balanced'] is False

    def test_duplicate_ids_are_collapsed(self, app, make_entry):
        entry = make_entry()
        payout = create_payout([entry.id, entry.id, str(entry.id)], total='20')
        assert len(payout.entries) == 1

    def test_missing_entry_leaves_no_partial_state(self, app, make_entry):
        entry = make_entry()

        with pytest.raises(NotFoundError):
            create_payout([entry.id, 9999], status='released')

        assert Payout.query.count() == 0
        db.session.refresh(entry)
        assert entry.payout_id is None
        assert entry.status == 'pending'

    def test_entry_already_in_a_payout_cannot_be_claimed_again(self, app, make_entry):
        entry = make_entry()
        first = create_payout([entry.id], total='20')

        with pytest.raises(ConcurrentModificationError):
            create_payout([entry.id], total='20', status='released')

        assert Payout.query.count() == 1
        db.session.refresh(entry)
        assert entry.payout_id == first.id
        assert entry.status == 'pending'

    def test_entries_of_another_crew_member_cannot_be_claimed(self, app, make_entry):
        own = make_entry('c1')
        other = make_entry('c2')

        with pytest.raises(ValidationError):
            create_payout([own.id, other.id], total='40', status='released', crew='c1')

        assert Payout.query.count() == 0
        for entry in (own, other):
            db.session.refresh(entry)
            assert entry.payout_id is None
            assert entry.status == 'pending'

    def test_lost_race_on_claim_rolls_back(self, app, make_entry, monkeypatch):
        # Another payout claims the entry after our pre-check passed
        entry = make_entry()
        winner = create_payout([], total='20')
        db.session.query(CommissionEntry).filter_by(id=entry.id).update({'payout_id': winner.id})
        db.session.commit()
        monkeypatch.setattr(PayoutService, '_check_claimable', staticmethod(lambda ids, entries, crew_user_id: None))

        with pytest.raises(ConcurrentModificationError):
            create_payout([entry.id], total='20')

        assert Payout.query.count() == 1
        db.session.refresh(entry)
        assert entry.payout_id == winner.id

    @pytest.mark.parametrize('overrides', [
        {'crew_user_id': ''},
        {'created_by': None},
        {'total_amount': 'abc'},
        {'total_amount': '1e10'},
        {'total_amount': '1e30'},
        {'period_end': datetime(2025, 1, 1)},
        {'entry_ids': ['x']},
    ])
    def test_validation(self, app, overrides):
        data = dict(crew_user_id='c1', period_start=PERIOD_START, period_end=PERIOD_END,
                    total_amount='10', created_by='admin-1', entry_ids=[])
        data.update(overrides)
        with pytest.raises(ValidationError):
            PayoutService.create_payout(**data)
        assert Payout.query.count() == 0

    def test_duplicate_period_allowed_by_default(self, app):
        create_payout([], total='0')
        create_payout([], total='0')
        assert Payout.query.count() == 2

    def test_duplicate_period_rejected_when_enforced(self, app):
        app.config['ENFORCE_UNIQUE_PAYOUT_PERIOD'] = True
        create_payout([], total='0')
        with pytest.raises(ValidationError):
            create_payout([], total='0')
        create_payout([], total='0', crew='c2')
        assert Payout.query.count() == 2


class TestUpdatePayoutStatus:

    def test_release_cascades_to_entries(self, app, make_entry):
        entry = make_entry()
        payout = create_payout([entry.id], total='20')

        updated = PayoutService.update_payout_status(payout.id, 'released')

        assert updated.status == 'released'
        assert updated.released_at is not None
        db.session.refresh(entry)
        assert entry.status == 'released'

    def test_leaving_released_clears_timestamp(self, app, make_entry):
        payout = create_payout([make_entry().id], total='20', status='released')
        updated = PayoutService.update_payout_status(payout.id, 'disputed')
        assert updated.released_at is None
        assert [e.status for e in updated.entries] == ['disputed']

    def test_cascade_can_be_disabled(self, app, make_entry):
        app.config['PAYOUT_STATUS_CASCADE'] = False
        entry = make_entry()
        payout = create_payout([entry.id], total='20')

        PayoutService.update_payout_status(payout.id, 'approved')

        db.session.refresh(entry)
        assert entry.status == 'pending'

    def test_locked_released_payout(self, app):
        app.config['LOCK_RELEASED_STATUS'] = True
        payout = create_payout([], total='0', status='released')
        with pytest.raises(ValidationError):
            PayoutService.update_payout_status(payout.id, 'pending')

    def test_unknown_payout_and_status(self, app):
        with pytest.raises(NotFoundError):
            PayoutService.update_payout_status(42, 'approved')
        payout = create_payout([], total='0')
        with pytest.raises(ValidationError):
            PayoutService.update_payout_status(payout.id, 'done')


def test_list_payouts_filters(app):
    create_payout([], total='0', crew='c1')
    create_payout([], total='0', crew='c2', status='released')
    assert [p.crew_user_id for p in PayoutService.list_payouts(crew_user_id='c2')] == ['c2']
    assert [p.status for p in PayoutService.list_payouts(status='released')] == ['released']


def test_audit_balanced_payout(app, make_entry):
    payout = create_payout([make_entry(amount='40').id, make_entry(amount='-5').id], total='35')
    audit = PayoutService.audit(payout.id)
    assert audit['entries_total'] == Decimal('35')
    assert audit['entry_count'] == 2
    assert audit['balanced'] is True


def test_concurrent_claims_attach_entry_exactly_once(tmp_path):
    config = type('FileConfig', (TestConfig,), {
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'payroll.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 10, 'check_same_thread': False}},
    })
    app = create_app(config)
    with app.app_context():
        db.create_all()
        entry = CommissionEntry(crew_user_id='c1', entry_date=datetime(2025, 1, 7), amount=Decimal('20'),
                                recorded_by='admin-1', status='pending')
        db.session.add(entry)
        db.session.commit()
        entry_id = entry.id

    barrier = threading.Barrier(2)
    outcomes = []

    def claim():
        with app.app_context():
            barrier.wait()
            try:
                payout = create_payout([entry_id], total='20')
                outcomes.append(('ok', payout.id))
            except ConcurrentModificationError as e:
                outcomes.append(('conflict', e))

    threads = [threading.Thread(target=claim) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert sorted(kind for kind, _ in outcomes) == ['conflict', 'ok']
    winner_id = next(value for kind, value in outcomes if kind == 'ok')
    with app.app_context():
        assert Payout.query.count() == 1
        assert db.session.get(CommissionEntry, entry_id).payout_id == winner_id
        db.drop_all()
