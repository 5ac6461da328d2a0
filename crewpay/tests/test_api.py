"""
HTTP surface tests through the Flask test client.
"""
from datetime import datetime

import pytest

from crewpay.services.booking_directory import BookingDirectory
from crewpay.services.errors import UpstreamUnavailableError

ADMIN = {'X-User-Id': 'admin-1'}


def test_rates_roundtrip(client):
    resp = client.put('/api/commission-rates', json={'serviceType': 'Classic Wash', 'ratePercent': 8}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.get_json()['serviceType'] == 'classic wash'
    assert resp.get_json()['ratePercent'] == '8.00'

    listed = client.get('/api/commission-rates').get_json()
    assert [r['serviceType'] for r in listed] == ['classic wash']

    resp = client.patch('/api/commission-rates/classic%20wash/deactivate', headers=ADMIN)
    assert resp.status_code == 200
    assert resp.get_json()['active'] is False
    assert client.get('/api/commission-rates').get_json() == []


def test_rate_validation_error_payload(client):
    resp = client.put('/api/commission-rates', json={'serviceType': 'x', 'ratePercent': 'lots'}, headers=ADMIN)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body['kind'] == 'ValidationError'
    assert 'ratePercent' in body['fields']


def test_write_requires_caller_identity(client):
    resp = client.put('/api/commission-rates', json={'serviceType': 'x', 'ratePercent': 5})
    assert resp.status_code == 400
    assert resp.get_json()['kind'] == 'ValidationError'


def test_commission_entry_lifecycle(client):
    resp = client.post('/api/commission-entries', json={
        'crewUserId': 'c1', 'entryDate': '2025-01-07T09:00:00Z', 'amount': '20', 'recordedBy': 'admin-1',
        'status': 'approved',
    })
    assert resp.status_code == 201
    entry = resp.get_json()
    assert entry['status'] == 'approved'
    assert entry['amount'] == '20.00'
    assert entry['entryDate'] == '2025-01-07T09:00:00.000Z'
    assert entry['payoutId'] is None

    resp = client.patch(f"/api/commission-entries/{entry['id']}/status", json={'status': 'Disputed'}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'disputed'

    resp = client.patch(f"/api/commission-entries/{entry['id']}/status", json={'status': 'paid'}, headers=ADMIN)
    assert resp.status_code == 400
    assert resp.get_json()['kind'] == 'ValidationError'

    listed = client.get('/api/commission-entries?crewUserId=c1&start=2025-01-05&end=2025-01-10').get_json()
    assert [e['id'] for e in listed] == [entry['id']]


def test_entry_rejects_non_numeric_amount(client):
    resp = client.post('/api/commission-entries', json={
        'crewUserId': 'c1', 'entryDate': '2025-01-07', 'amount': 'twenty', 'recordedBy': 'admin-1',
    })
    assert resp.status_code == 400
    assert 'amount' in resp.get_json()['fields']


def test_missing_entry_status_update_is_404(client):
    resp = client.patch('/api/commission-entries/404/status', json={'status': 'approved'}, headers=ADMIN)
    assert resp.status_code == 404
    assert resp.get_json()['kind'] == 'NotFound'


def test_payout_flow(client, make_entry):
    entry = make_entry(amount='20')
    resp = client.post('/api/payouts', json={
        'crewUserId': 'c1', 'periodStart': '2025-01-05T00:00:00Z', 'periodEnd': '2025-01-10T23:59:59.999Z',
        'totalAmount': 20, 'entryIds': [entry.id],
    }, headers=ADMIN)
    assert resp.status_code == 201
    payout = resp.get_json()
    assert payout['createdBy'] == 'admin-1'
    assert payout['totalAmount'] == '20.00'
    assert [e['payoutId'] for e in payout['entries']] == [payout['id']]

    conflict = client.post('/api/payouts', json={
        'crewUserId': 'c1', 'periodStart': '2025-01-05T00:00:00Z', 'periodEnd': '2025-01-10T23:59:59Z',
        'totalAmount': 20, 'entryIds': [entry.id], 'createdBy': 'admin-2',
    })
    assert conflict.status_code == 409
    assert conflict.get_json()['kind'] == 'ConcurrentModification'

    resp = client.patch(f"/api/payouts/{payout['id']}/status", json={'status': 'released'}, headers=ADMIN)
    assert resp.status_code == 200
    released = resp.get_json()
    assert released['releasedAt'] is not None
    assert [e['status'] for e in released['entries']] == ['released']

    audit = client.get(f"/api/payouts/{payout['id']}/audit").get_json()
    assert audit == {'payoutId': payout['id'], 'recordedTotal': '20.00', 'entriesTotal': '20.00',
                     'drift': '0.00', 'entryCount': 1, 'balanced': True}

    assert [p['id'] for p in client.get('/api/payouts?crewUserId=c1').get_json()] == [payout['id']]


def test_payout_with_unknown_entry_is_404(client):
    resp = client.post('/api/payouts', json={
        'crewUserId': 'c1', 'periodStart': '2025-01-05', 'periodEnd': '2025-01-10',
        'totalAmount': 20, 'entryIds': [12345], 'createdBy': 'admin-1',
    })
    assert resp.status_code == 404
    assert client.get('/api/payouts').get_json() == []


def test_commission_summary_endpoint(client, make_booking, make_crew, set_rate, make_entry):
    set_rate('classic wash', 8)
    make_crew('c1', 'Carlo')
    make_booking(revenue='500', crew=('c1',), completed_at=datetime(2025, 1, 8, 6, 0))
    make_entry('c1', amount='20', status='approved', entry_date=datetime(2025, 1, 8, 6, 0))

    resp = client.get('/api/commission-summary?start=2025-01-05T00:00:00Z&end=2025-01-10T23:59:59Z')

    assert resp.status_code == 200
    body = resp.get_json()
    assert body['totalRevenue'] == '500.00'
    assert body['totalCommission'] == '60.00'
    assert body['crewCount'] == 1
    assert body['crew'][0] == {'crewId': 'c1', 'crewName': 'Carlo', 'totalRevenue': '500.00',
                               'totalCommission': '60.00', 'totalBookings': 1}
    assert body['period']['startDate'] == '2025-01-05T00:00:00.000Z'


def test_commission_summary_degrades_instead_of_failing(client, monkeypatch):
    def unavailable(*args, **kwargs):
        raise UpstreamUnavailableError("down")
    monkeypatch.setattr(BookingDirectory, 'list_completed_bookings', staticmethod(unavailable))

    resp = client.get('/api/commission-summary?start=2025-01-05T00:00:00Z&end=2025-01-10T23:59:59Z')

    assert resp.status_code == 200
    body = resp.get_json()
    assert body['totalCommission'] == '0.00'
    assert body['degraded'] is True


def test_payroll_requires_crew(client):
    assert client.get('/api/payroll').status_code == 400


def test_payroll_detail_endpoint(client, make_booking, set_rate):
    set_rate('classic wash', 10)
    make_booking(revenue='100', crew=('c1',), completed_at=datetime(2025, 1, 8, 6, 0))
    body = client.get('/api/payroll?crewUserId=c1&start=2025-01-05T00:00:00Z&end=2025-01-10T23:59:59Z').get_json()
    assert body['totalCommission'] == '10.00'
    assert body['bookings'][0]['ratePercent'] == '10.00'


def test_payroll_window_endpoint(client):
    body = client.get('/api/payroll/window?reference=2025-01-08T12:00:00%2B08:00').get_json()
    assert body == {
        'start': '2025-01-05T00:00:00.000+08:00',
        'end': '2025-01-10T23:59:59.999+08:00',
        'payoutDate': '2025-01-11T09:00:00.000+08:00',
    }


def test_invalid_date_query(client):
    resp = client.get('/api/commission-summary?start=yesterday')
    assert resp.status_code == 400


def test_health(client):
    assert client.get('/api/health').get_json()['database'] == 'up'


@pytest.mark.parametrize('amount', ['1e30', '1e10'])
def test_entry_amount_too_large_is_validation_error(client, amount):
    resp = client.post('/api/commission-entries', json={
        'crewUserId': 'c1', 'entryDate': '2025-01-07', 'amount': amount, 'recordedBy': 'admin-1',
    })
    assert resp.status_code == 400
    assert resp.get_json()['kind'] == 'ValidationError'


@pytest.mark.parametrize('total', ['1e30', '1e10'])
def test_payout_total_too_large_is_validation_error(client, total):
    resp = client.post('/api/payouts', json={
        'crewUserId': 'c1', 'periodStart': '2025-01-05', 'periodEnd': '2025-01-10',
        'totalAmount': total, 'entryIds': [], 'createdBy': 'admin-1',
    })
    assert resp.status_code == 400
    assert resp.get_json()['kind'] == 'ValidationError'
    assert client.get('/api/payouts').get_json() == []


def test_payout_cannot_claim_another_crews_entry(client, make_entry):
    other = make_entry('c2', amount='20')
    resp = client.post('/api/payouts', json={
        'crewUserId': 'c1', 'periodStart': '2025-01-05', 'periodEnd': '2025-01-10',
        'totalAmount': '20', 'entryIds': [other.id], 'createdBy': 'admin-1', 'status': 'released',
    })
    assert resp.status_code == 400
    assert resp.get_json()['kind'] == 'ValidationError'
    assert client.get('/api/payouts').get_json() == []


def test_inverted_summary_period_is_validation_error(client):
    resp = client.get('/api/commission-summary?start=2025-01-10&end=2025-01-05')
    assert resp.status_code == 400
    assert resp.get_json()['kind'] == 'ValidationError'
