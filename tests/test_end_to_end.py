"""
End-to-end marketplace flow: booking, application, payment, withdrawal
"""
import json
from unittest.mock import Mock


def test_booking_to_withdrawal(app, client, register):
    """Test a worker's withdrawable balance drops by the net amount paid out"""
    flutterwave = Mock()
    app.extensions['flutterwave'] = flutterwave

    homeowner = register('homeowner', 'alice@example.com', 'Alice Uwase')
    worker = register('worker', 'grace@example.com', 'Grace Mukamana')
    admin = register('admin', 'admin@househelp.rw', 'Platform Admin')

    # Homeowner posts a booking
    response = client.post('/api/bookings', headers=homeowner['headers'], json={
        'serviceType': 'House Cleaning', 'bookingDate': '2026-11-02', 'amount': 10000,
    })
    booking = json.loads(response.data)['data']
    assert booking['status'] == 'pending'
    assert booking['amount'] == 10000

    # Worker applies, homeowner accepts
    response = client.post('/api/applications', headers=worker['headers'], json={'bookingId': booking['id']})
    application = json.loads(response.data)['data']
    response = client.put(f"/api/applications/{application['id']}/accept", headers=homeowner['headers'])
    assigned = json.loads(response.data)['data']['booking']
    assert assigned['status'] == 'assigned'
    assert assigned['worker_id'] == worker['id']

    # Homeowner pays; the gateway confirms
    response = client.post('/api/payments', headers=homeowner['headers'], json={
        'bookingId': booking['id'], 'paymentMethod': 'card',
    })
    payment = json.loads(response.data)['data']
    flutterwave.verify_transaction.return_value = {
        'status': 'success', 'tx_ref': payment['tx_ref'], 'transaction_id': '4242',
        'amount': 10000, 'currency': 'RWF', 'raw': {},
    }
    response = client.post('/api/payments/verify', headers=homeowner['headers'], json={'transactionId': '4242'})
    assert json.loads(response.data)['data']['status'] == 'success'

    # Admin marks the booking completed
    response = client.put(f"/api/bookings/{booking['id']}", headers=admin['headers'], json={'status': 'completed'})
    assert json.loads(response.data)['data']['status'] == 'completed'

    balance_url = f"/api/withdrawals/balance/{worker['id']}"
    before = json.loads(client.get(balance_url, headers=worker['headers']).data)['data']
    assert before['withdrawable_balance'] == 8500

    # Worker withdraws; admin approves, processes and completes
    response = client.post('/api/withdrawals', headers=worker['headers'], json={
        'requestedAmount': 5000, 'withdrawalMethod': 'Bank Transfer', 'accountNumber': '000123456789',
    })
    assert response.status_code == 201
    withdrawal = json.loads(response.data)['data']
    base = f"/api/withdrawals/{withdrawal['id']}"
    assert client.put(base + '/approve', headers=admin['headers']).status_code == 200
    assert client.put(base + '/process', headers=admin['headers'],
                      json={'transactionReference': 'BK-1'}).status_code == 200
    assert client.put(base + '/complete', headers=admin['headers']).status_code == 200

    after = json.loads(client.get(balance_url, headers=worker['headers']).data)['data']
    assert before['withdrawable_balance'] - after['withdrawable_balance'] == withdrawal['net_amount']

    # Every party heard about it
    response = client.get('/api/notifications/unread-count', headers=worker['headers'])
    assert json.loads(response.data)['data']['count'] >= 4
