"""
Worker and homeowner profile access tests
"""
import json


class TestHomeownerOwnership:
    """Test homeowners only see their own row"""

    def test_get_own_profile(self, client, homeowner):
        response = client.get(f"/api/homeowners/{homeowner['id']}", headers=homeowner['headers'])

        assert response.status_code == 200
        assert json.loads(response.data)['data']['id'] == homeowner['id']

    def test_get_other_homeowner_forbidden(self, client, homeowner, other_homeowner):
        """Test a homeowner never receives another homeowner's data"""
        response = client.get(f"/api/homeowners/{other_homeowner['id']}", headers=homeowner['headers'])

        assert response.status_code == 403
        data = json.loads(response.data)
        assert data['success'] is False
        assert 'data' not in data

    def test_list_is_scoped(self, client, homeowner, other_homeowner):
        response = client.get('/api/homeowners', headers=homeowner['headers'])

        data = json.loads(response.data)
        assert data['count'] == 1
        assert data['data'][0]['id'] == homeowner['id']

    def test_admin_lists_all(self, client, admin, homeowner, other_homeowner):
        response = client.get('/api/homeowners', headers=admin['headers'])

        assert json.loads(response.data)['count'] == 2

    def test_update_other_homeowner_forbidden(self, client, homeowner, other_homeowner):
        response = client.put(f"/api/homeowners/{other_homeowner['id']}", headers=homeowner['headers'],
                              json={'homeAddress': 'Hijacked'})

        assert response.status_code == 403

    def test_update_ignores_unknown_fields(self, client, homeowner):
        """Test an update with nothing allowed is rejected"""
        response = client.put(f"/api/homeowners/{homeowner['id']}", headers=homeowner['headers'],
                              json={'userId': 'someone-else', 'email': 'new@example.com'})

        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'No valid fields provided for update'

    def test_update_own_profile(self, client, homeowner):
        response = client.put(f"/api/homeowners/{homeowner['id']}", headers=homeowner['headers'],
                              json={'numberOfWorkersNeeded': '2', 'preferredGender': 'Any'})

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['number_of_workers_needed'] == '2'
        assert data['preferred_gender'] == 'any'

    def test_worker_cannot_list_homeowners(self, client, worker):
        assert client.get('/api/homeowners', headers=worker['headers']).status_code == 403

    def test_missing_homeowner(self, client, admin):
        response = client.get('/api/homeowners/does-not-exist', headers=admin['headers'])

        assert response.status_code == 404
        assert json.loads(response.data)['error'] == 'Homeowner not found'


class TestWorkerProfiles:
    """Test worker profile access"""

    def test_homeowner_cannot_list_workers(self, client, homeowner, worker):
        assert client.get('/api/workers', headers=homeowner['headers']).status_code == 403

    def test_homeowner_sees_public_profile(self, client, homeowner, worker):
        response = client.get(f"/api/workers/{worker['id']}", headers=homeowner['headers'])

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['full_name'] == 'Grace Mukamana'
        assert 'national_id' not in data

    def test_worker_cannot_read_other_worker(self, client, worker, other_worker):
        response = client.get(f"/api/workers/{other_worker['id']}", headers=worker['headers'])

        assert response.status_code == 403

    def test_worker_cannot_verify_self(self, client, worker):
        """Test verification status is admin-only"""
        response = client.put(f"/api/workers/{worker['id']}", headers=worker['headers'],
                              json={'verificationStatus': 'verified'})

        assert response.status_code == 400

    def test_admin_verifies_worker(self, client, admin, worker):
        response = client.put(f"/api/workers/{worker['id']}", headers=admin['headers'],
                              json={'verificationStatus': 'verified'})

        assert response.status_code == 200
        assert json.loads(response.data)['data']['verification_status'] == 'verified'

    def test_admin_filters_workers(self, client, admin, worker, other_worker):
        response = client.get('/api/workers?verification_status=pending', headers=admin['headers'])

        assert json.loads(response.data)['count'] == 2

    def test_delete_requires_admin(self, client, worker):
        response = client.delete(f"/api/workers/{worker['id']}", headers=worker['headers'])

        assert response.status_code == 403
