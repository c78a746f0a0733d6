"""
Dispute and document verification tests
"""
import json

import pytest

from models import db, Booking, Notification, Payment


@pytest.fixture
def paid_booking(homeowner, worker):
    booking = Booking(homeowner_id=homeowner['id'], worker_id=worker['id'], service_type='Laundry',
                      booking_date='2026-10-20', amount=10000, status='in_progress', payment_status='paid')
    db.session.add(booking)
    db.session.flush()
    payment = Payment(booking_id=booking.id, payer_id=homeowner['user_id'], payee_id=worker['id'],
                      amount=10000, status='success', payment_method='card', tx_ref='HH-dispute-1',
                      worker_payout_amount=8500)
    db.session.add(payment)
    db.session.commit()
    return booking


def raise_dispute(client, homeowner, worker, booking, **extra):
    body = {
        'bookingId': booking.id,
        'againstUserId': worker['user_id'],
        'category': 'no_show',
        'title': 'Worker did not arrive',
        'description': 'Nobody came on the booked day.',
    }
    body.update(extra)
    return client.post('/api/disputes', headers=homeowner['headers'], json=body)


class TestDisputes:
    """Test raising and resolving disputes"""

    def test_raise_marks_booking_disputed(self, client, homeowner, worker, paid_booking):
        response = raise_dispute(client, homeowner, worker, paid_booking)

        assert response.status_code == 201
        data = json.loads(response.data)['data']
        assert data['status'] == 'open'
        assert data['raised_by'] == homeowner['user_id']
        assert db.session.get(Booking, paid_booking.id).status == 'disputed'
        assert Notification.query.filter_by(user_id=worker['user_id'], title='Dispute Raised').count() == 1

    def test_terminal_booking_keeps_status(self, client, homeowner, worker, paid_booking):
        paid_booking.status = 'completed'
        db.session.commit()

        raise_dispute(client, homeowner, worker, paid_booking)

        assert db.session.get(Booking, paid_booking.id).status == 'completed'

    def test_unknown_category(self, client, homeowner, worker, paid_booking):
        response = raise_dispute(client, homeowner, worker, paid_booking, category='vibes')

        assert response.status_code == 400

    def test_outsider_cannot_read(self, client, homeowner, worker, other_homeowner, paid_booking):
        dispute = json.loads(raise_dispute(client, homeowner, worker, paid_booking).data)['data']

        assert client.get(f"/api/disputes/{dispute['id']}", headers=worker['headers']).status_code == 200
        assert client.get(f"/api/disputes/{dispute['id']}", headers=other_homeowner['headers']).status_code == 403

    def test_resolve_with_refund(self, client, admin, homeowner, worker, paid_booking):
        dispute = json.loads(raise_dispute(client, homeowner, worker, paid_booking).data)['data']
        client.put(f"/api/disputes/{dispute['id']}/assign", headers=admin['headers'])

        response = client.put(f"/api/disputes/{dispute['id']}/resolve", headers=admin['headers'], json={
            'resolutionAction': 'refund_full', 'resolutionNotes': 'Confirmed no-show',
        })

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['dispute']['status'] == 'resolved'
        assert data['dispute']['refund_amount'] == 10000
        assert data['payment']['status'] == 'refunded'
        assert data['payment']['refunded_at'] is not None
        for party in (homeowner, worker):
            assert Notification.query.filter_by(user_id=party['user_id'], title='Dispute Resolved').count() == 1

    def test_resolve_without_refund(self, client, admin, homeowner, worker, paid_booking):
        dispute = json.loads(raise_dispute(client, homeowner, worker, paid_booking).data)['data']

        response = client.put(f"/api/disputes/{dispute['id']}/resolve", headers=admin['headers'],
                              json={'resolutionAction': 'warning'})

        assert json.loads(response.data)['data']['payment'] is None
        assert Payment.query.filter_by(tx_ref='HH-dispute-1').first().status == 'success'

    def test_resolved_dispute_is_final(self, client, admin, homeowner, worker, paid_booking):
        dispute = json.loads(raise_dispute(client, homeowner, worker, paid_booking).data)['data']
        client.put(f"/api/disputes/{dispute['id']}/resolve", headers=admin['headers'],
                   json={'resolutionAction': 'no_action'})

        response = client.put(f"/api/disputes/{dispute['id']}", headers=admin['headers'], json={'status': 'open'})

        assert response.status_code == 409

    def test_only_admin_resolves(self, client, homeowner, worker, paid_booking):
        dispute = json.loads(raise_dispute(client, homeowner, worker, paid_booking).data)['data']

        response = client.put(f"/api/disputes/{dispute['id']}/resolve", headers=homeowner['headers'],
                              json={'resolutionAction': 'refund_full'})

        assert response.status_code == 403

    def test_stats(self, client, admin, homeowner, worker, paid_booking):
        raise_dispute(client, homeowner, worker, paid_booking)

        data = json.loads(client.get('/api/disputes/stats/summary', headers=admin['headers']).data)['data']
        assert data['total'] == 1
        assert data['by_status']['open'] == 1
        assert data['by_category']['no_show'] == 1


class TestDocuments:
    """Test document upload and verification"""

    def _upload(self, client, user):
        response = client.post('/api/documents', headers=user['headers'], json={
            'documentType': 'national_id', 'documentName': 'National ID', 'fileUrl': 'https://files.test/id.png',
        })
        assert response.status_code == 201, response.data
        return json.loads(response.data)['data']

    def test_upload_notifies_admins(self, client, admin, worker):
        document = self._upload(client, worker)

        assert document['status'] == 'pending'
        assert Notification.query.filter_by(user_id=admin['user_id'], title='Document Uploaded').count() == 1

    def test_invalid_type(self, client, worker):
        response = client.post('/api/documents', headers=worker['headers'], json={
            'documentType': 'passport_photo_of_cat', 'documentName': 'x', 'fileUrl': 'https://files.test/x',
        })

        assert response.status_code == 400

    def test_verify(self, client, admin, worker):
        document = self._upload(client, worker)

        response = client.put(f"/api/documents/{document['id']}/verify", headers=admin['headers'])

        data = json.loads(response.data)['data']
        assert data['status'] == 'verified'
        assert data['verified_by'] == admin['user_id']
        pending = json.loads(client.get('/api/documents/admin/pending', headers=admin['headers']).data)
        assert pending['count'] == 0

    def test_reject_then_reupload_resets(self, client, admin, worker):
        document = self._upload(client, worker)
        client.put(f"/api/documents/{document['id']}/reject", headers=admin['headers'],
                   json={'rejectionReason': 'Blurry'})

        response = client.put(f"/api/documents/{document['id']}", headers=worker['headers'],
                              json={'fileUrl': 'https://files.test/id-v2.png'})

        data = json.loads(response.data)['data']
        assert data['status'] == 'pending'
        assert data['rejection_reason'] is None

    def test_cannot_review_twice(self, client, admin, worker):
        document = self._upload(client, worker)
        client.put(f"/api/documents/{document['id']}/verify", headers=admin['headers'])

        response = client.put(f"/api/documents/{document['id']}/reject", headers=admin['headers'],
                              json={'rejectionReason': 'Changed my mind'})

        assert response.status_code == 409

    def test_other_user_documents_forbidden(self, client, worker, homeowner):
        self._upload(client, worker)

        response = client.get(f"/api/documents/user/{worker['user_id']}", headers=homeowner['headers'])

        assert response.status_code == 403


class TestDisputeParties:
    """Test who may raise a dispute and against whom"""

    def test_outsider_cannot_raise(self, client, homeowner, worker, other_worker, paid_booking):
        response = client.post('/api/disputes', headers=other_worker['headers'], json={
            'bookingId': paid_booking.id,
            'againstUserId': homeowner['user_id'],
            'category': 'payment',
            'title': 'Not my booking',
            'description': 'Raised by someone unrelated',
        })

        assert response.status_code == 403
        assert db.session.get(Booking, paid_booking.id).status == 'in_progress'

    def test_worker_raises_against_homeowner(self, client, homeowner, worker, paid_booking):
        response = client.post('/api/disputes', headers=worker['headers'], json={
            'bookingId': paid_booking.id,
            'againstUserId': homeowner['user_id'],
            'category': 'payment',
            'title': 'Unpaid overtime',
            'description': 'Worked two extra hours',
        })

        assert response.status_code == 201

    def test_respondent_must_be_other_party(self, client, homeowner, worker, other_homeowner, paid_booking):
        response = raise_dispute(client, homeowner, other_homeowner, paid_booking)

        assert response.status_code == 400
        assert db.session.get(Booking, paid_booking.id).status == 'in_progress'

    def test_payment_must_belong_to_booking(self, client, homeowner, worker, paid_booking):
        other = Booking(homeowner_id=homeowner['id'], worker_id=worker['id'], service_type='Cooking',
                        booking_date='2026-10-21', amount=5000, status='completed')
        db.session.add(other)
        db.session.flush()
        foreign = Payment(booking_id=other.id, payer_id=homeowner['user_id'], payee_id=worker['id'],
                          amount=5000, status='success', payment_method='card', tx_ref='HH-other-1',
                          worker_payout_amount=4250)
        db.session.add(foreign)
        db.session.commit()

        response = raise_dispute(client, homeowner, worker, paid_booking, paymentId=foreign.id)

        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'Payment does not belong to this booking'

    def test_refund_skips_unsettled_payment(self, client, admin, homeowner, worker, paid_booking):
        failed = Payment(booking_id=paid_booking.id, payer_id=homeowner['user_id'], payee_id=worker['id'],
                         amount=10000, status='failed', payment_method='card', tx_ref='HH-dispute-failed',
                         worker_payout_amount=8500)
        db.session.add(failed)
        db.session.commit()
        dispute = json.loads(raise_dispute(client, homeowner, worker, paid_booking, paymentId=failed.id).data)['data']

        response = client.put(f"/api/disputes/{dispute['id']}/resolve", headers=admin['headers'],
                              json={'resolutionAction': 'refund_full'})

        assert json.loads(response.data)['data']['payment']['tx_ref'] == 'HH-dispute-1'
        assert db.session.get(Payment, failed.id).status == 'failed'

    def test_non_string_title_rejected(self, client, homeowner, worker, paid_booking):
        response = raise_dispute(client, homeowner, worker, paid_booking, title=123)

        assert response.status_code == 400
