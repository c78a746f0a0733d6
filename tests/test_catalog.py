"""
Tests for the supporting routes: favorites, availability, notifications,
reports, trainings, services, options and health checks
"""
import json

from models import db, Notification, OptionItem
from routes.options import seed_options, OPTION_CATEGORIES


class TestHealth:
    """Test liveness endpoints"""

    def test_ping(self, client):
        response = client.get('/api/ping')

        assert response.status_code == 200
        assert json.loads(response.data)['message'] == 'pong'

    def test_database_health(self, client):
        response = client.get('/api/health/db')

        assert json.loads(response.data)['data']['database'] == 'connected'


class TestFavorites:
    """Test homeowner favorites"""

    def _add(self, client, homeowner, worker):
        return client.post('/api/favorites', headers=homeowner['headers'],
                           json={'workerId': worker['id'], 'notes': 'Great cook'})

    def test_add_and_list(self, client, homeowner, worker):
        assert self._add(client, homeowner, worker).status_code == 201

        data = json.loads(client.get('/api/favorites', headers=homeowner['headers']).data)
        assert data['count'] == 1
        assert data['data'][0]['worker']['full_name'] == 'Grace Mukamana'
        assert Notification.query.filter_by(user_id=worker['user_id'], title='Added to Favorites').count() == 1

    def test_duplicate(self, client, homeowner, worker):
        self._add(client, homeowner, worker)

        response = self._add(client, homeowner, worker)

        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'Worker already in favorites'

    def test_check_and_remove_by_worker(self, client, homeowner, worker):
        self._add(client, homeowner, worker)
        url = f"/api/favorites/check/{worker['id']}"
        assert json.loads(client.get(url, headers=homeowner['headers']).data)['data']['is_favorite'] is True

        response = client.delete(f"/api/favorites/worker/{worker['id']}", headers=homeowner['headers'])

        assert response.status_code == 200
        assert json.loads(client.get(url, headers=homeowner['headers']).data)['data']['is_favorite'] is False

    def test_other_homeowner_cannot_remove(self, client, homeowner, other_homeowner, worker):
        favorite = json.loads(self._add(client, homeowner, worker).data)['data']

        response = client.delete(f"/api/favorites/{favorite['id']}", headers=other_homeowner['headers'])

        assert response.status_code == 403

    def test_worker_cannot_favorite(self, client, worker, other_worker):
        response = client.post('/api/favorites', headers=worker['headers'], json={'workerId': other_worker['id']})

        assert response.status_code == 403


class TestAvailability:
    """Test the worker availability calendar"""

    def _slot(self, client, worker, start='08:00:00', end='12:00:00', kind='available'):
        return client.post('/api/availability', headers=worker['headers'], json={
            'date': '2026-11-02', 'startTime': start, 'endTime': end, 'availabilityType': kind,
        })

    def test_create_and_list(self, client, worker, homeowner):
        assert self._slot(client, worker).status_code == 201

        response = client.get(f"/api/availability/worker/{worker['id']}", headers=homeowner['headers'])

        data = json.loads(response.data)
        assert data['count'] == 1
        assert data['data'][0]['start_time'] == '08:00:00'

    def test_bad_time_format(self, client, worker):
        response = self._slot(client, worker, start='8am')

        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'Invalid time format. Use HH:MM:SS format'

    def test_end_before_start(self, client, worker):
        response = self._slot(client, worker, start='12:00:00', end='08:00:00')

        assert json.loads(response.data)['error'] == 'end_time must be after start_time'

    def test_check_overlap(self, client, worker, homeowner):
        self._slot(client, worker, kind='booked')
        body = {'workerId': worker['id'], 'date': '2026-11-02', 'startTime': '10:00:00', 'endTime': '11:00:00'}

        data = json.loads(client.post('/api/availability/check', headers=homeowner['headers'], json=body).data)

        assert data['data']['is_available'] is False
        assert len(data['data']['conflicts']) == 1

    def test_adjacent_slot_is_free(self, client, worker, homeowner):
        self._slot(client, worker, kind='booked')
        body = {'workerId': worker['id'], 'date': '2026-11-02', 'startTime': '12:00:00', 'endTime': '13:00:00'}

        data = json.loads(client.post('/api/availability/check', headers=homeowner['headers'], json=body).data)

        assert data['data']['is_available'] is True

    def test_bulk_is_all_or_nothing(self, client, worker):
        response = client.post('/api/availability/bulk', headers=worker['headers'], json={'slots': [
            {'date': '2026-11-03', 'startTime': '08:00:00', 'endTime': '10:00:00'},
            {'date': '2026-11-04', 'startTime': '10:00:00', 'endTime': '09:00:00'},
        ]})

        assert response.status_code == 400
        listing = client.get(f"/api/availability/worker/{worker['id']}", headers=worker['headers'])
        assert json.loads(listing.data)['count'] == 0

    def test_homeowner_cannot_create(self, client, homeowner):
        response = self._slot(client, homeowner)

        assert response.status_code == 403


class TestNotifications:
    """Test the notification inbox"""

    def _seed(self, user, count=2):
        for i in range(count):
            db.session.add(Notification(user_id=user['user_id'], type='system', title=f'Note {i}', message='Hello'))
        db.session.commit()

    def test_unread_count_and_read_all(self, client, homeowner):
        self._seed(homeowner)
        url = '/api/notifications/unread-count'
        assert json.loads(client.get(url, headers=homeowner['headers']).data)['data']['count'] == 2

        client.put('/api/notifications/read-all', headers=homeowner['headers'])

        assert json.loads(client.get(url, headers=homeowner['headers']).data)['data']['count'] == 0

    def test_unread_only_filter(self, client, homeowner):
        self._seed(homeowner)
        first = Notification.query.filter_by(user_id=homeowner['user_id']).first()
        client.put(f'/api/notifications/{first.id}/read', headers=homeowner['headers'])

        response = client.get('/api/notifications?unread_only=true', headers=homeowner['headers'])

        assert json.loads(response.data)['count'] == 1

    def test_cannot_touch_others(self, client, homeowner, worker):
        self._seed(homeowner, count=1)
        note = Notification.query.filter_by(user_id=homeowner['user_id']).first()

        assert client.put(f'/api/notifications/{note.id}/read', headers=worker['headers']).status_code == 403
        assert client.delete(f'/api/notifications/{note.id}', headers=worker['headers']).status_code == 403


class TestReports:
    """Test issue reports"""

    def _file(self, client, user, report_type='Payment Issue'):
        response = client.post('/api/reports', headers=user['headers'], json={
            'reportType': report_type, 'title': 'Charged twice', 'description': 'Two debits for one booking',
        })
        assert response.status_code == 201
        return json.loads(response.data)['data']

    def test_file_notifies_admins(self, client, admin, homeowner):
        report = self._file(client, homeowner)

        assert report['status'] == 'open'
        assert Notification.query.filter_by(user_id=admin['user_id'], title='New Report').count() == 1

    def test_owner_cannot_change_status(self, client, homeowner):
        report = self._file(client, homeowner)

        response = client.put(f"/api/reports/{report['id']}", headers=homeowner['headers'],
                              json={'status': 'resolved'})

        assert response.status_code == 403

    def test_admin_status_change_notifies_owner(self, client, admin, homeowner):
        report = self._file(client, homeowner)

        response = client.put(f"/api/reports/{report['id']}", headers=admin['headers'],
                              json={'status': 'in_review', 'adminNotes': 'Checking with the bank'})

        assert json.loads(response.data)['data']['status'] == 'in_review'
        assert Notification.query.filter_by(user_id=homeowner['user_id'], title='Report Updated').count() == 1

    def test_type_filter_and_scoping(self, client, admin, homeowner, worker):
        self._file(client, homeowner)
        self._file(client, worker, report_type='Safety Concern')

        mine = json.loads(client.get('/api/reports', headers=homeowner['headers']).data)
        assert mine['count'] == 1
        response = client.get('/api/reports', query_string={'type': 'Safety Concern'}, headers=admin['headers'])
        filtered = json.loads(response.data)
        assert filtered['count'] == 1
        assert filtered['data'][0]['user_id'] == worker['user_id']


class TestCatalogue:
    """Test admin-managed trainings and services"""

    def test_only_admin_creates_training(self, client, admin, worker):
        body = {'title': 'First Aid Basics', 'category': 'First Aid', 'startDate': '2026-11-10'}

        assert client.post('/api/trainings', headers=worker['headers'], json=body).status_code == 403
        response = client.post('/api/trainings', headers=admin['headers'], json=body)
        assert response.status_code == 201

        listing = json.loads(client.get('/api/trainings', headers=worker['headers']).data)
        assert listing['data'][0]['title'] == 'First Aid Basics'

    def test_inactive_services_hidden(self, client, admin, homeowner):
        client.post('/api/services', headers=admin['headers'], json={'name': 'Cooking', 'basePrice': 5000})
        client.post('/api/services', headers=admin['headers'], json={'name': 'Ironing', 'isActive': False})

        visible = json.loads(client.get('/api/services', headers=homeowner['headers']).data)
        everything = json.loads(client.get('/api/services?include_inactive=true', headers=homeowner['headers']).data)

        assert [s['name'] for s in visible['data']] == ['Cooking']
        assert everything['count'] == 2


class TestOptions:
    """Test dropdown option lookups"""

    def test_fallback_when_empty(self, client):
        response = client.get('/api/options/genders')

        names = [item['name'] for item in json.loads(response.data)['data']]
        assert names == ['Male', 'Female', 'Other']

    def test_database_rows_win(self, client):
        db.session.add_all([
            OptionItem(category='residence_types', name='Villa'),
            OptionItem(category='residence_types', name='Apartment'),
        ])
        db.session.commit()

        data = json.loads(client.get('/api/options/residence-types').data)['data']

        assert [item['name'] for item in data] == ['Apartment', 'Villa']

    def test_seed_fills_every_category(self, app):
        expected = sum(len(names) for _, names in OPTION_CATEGORIES.values())

        assert seed_options() == expected
        assert seed_options() == 0

    def test_every_fallback_value_registers(self, client, register):
        """Test dropdown values are accepted by the fields they feed"""
        def names(path):
            return [item['name'] for item in json.loads(client.get(path).data)['data']]

        for i, residence in enumerate(names('/api/options/residence-types')):
            register('homeowner', f'residence{i}@example.com', 'Home Owner', typeOfResidence=residence)
        for i, mode in enumerate(names('/api/options/payment-methods')):
            register('homeowner', f'mode{i}@example.com', 'Home Owner', paymentMode=mode)
        for i, answer in enumerate(names('/api/options/criminal-record-options')):
            register('homeowner', f'record{i}@example.com', 'Home Owner', criminalRecord=answer)
        for i, gender in enumerate(names('/api/options/genders')):
            register('worker', f'gender{i}@example.com', 'Work Er', gender=gender,
                     nationalId=f'11990800{i:08d}')
        for i, status in enumerate(names('/api/options/marital-statuses')):
            register('worker', f'marital{i}@example.com', 'Work Er', maritalStatus=status,
                     nationalId=f'11990900{i:08d}')
