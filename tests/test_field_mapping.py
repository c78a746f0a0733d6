"""
Field mapping tests: camelCase payloads to snake_case columns
"""
import json

import pytest
from flask import request

from errors import ValidationError
from field_mapping import (
    to_snake_case, keys_to_snake_case, map_fields, map_worker_fields, map_homeowner_fields,
    normalize_payment_method, to_bool,
)


class TestKeyConversion:
    """Test key conversion"""

    def test_camel_to_snake(self):
        assert to_snake_case('dateOfBirth') == 'date_of_birth'
        assert to_snake_case('typeOfResidence') == 'type_of_residence'
        assert to_snake_case('already_snake') == 'already_snake'

    def test_nested_keys_and_lists(self):
        """Test nested objects and lists are converted too"""
        data = keys_to_snake_case({'homeComposition': {'numChildren': 2}, 'slots': [{'startTime': '08:00:00'}]})
        assert data == {'home_composition': {'num_children': 2}, 'slots': [{'start_time': '08:00:00'}]}

    def test_dangerous_keys_dropped(self):
        """Test prototype-pollution keys never reach the mapping"""
        data = keys_to_snake_case({'__proto__': {'admin': True}, 'constructor': 1, 'bio': 'hi'})
        assert data == {'bio': 'hi'}

    def test_snake_case_input_is_idempotent(self):
        """Test mapping an already-mapped payload only drops excluded keys"""
        payload = {
            'date_of_birth': '1990-01-01',
            'type_of_work': 'Cooking',
            'expected_wages': '50000',
            'email': 'x@example.com',
            'role': 'admin',
            'password': 'secret',
            'full_name': 'X',
        }
        once = map_fields(payload)
        assert set(once) == {'date_of_birth', 'type_of_work', 'expected_wages'}
        assert map_fields(once) == once

    def test_none_values_are_skipped(self):
        assert map_fields({'bio': None, 'rating': 4}) == {'rating': 4}


class TestRoleMapping:
    """Test per-role renames and value transforms"""

    def test_worker_renames(self):
        mapped = map_worker_fields({'emergencyName': 'Jean', 'emergencyPhone': '+250700000000',
                                    'accountHolder': 'Grace'})
        assert mapped == {
            'emergency_contact_name': 'Jean',
            'emergency_contact_phone': '+250700000000',
            'account_holder_name': 'Grace',
        }

    def test_worker_enum_lowercased(self):
        mapped = map_worker_fields({'gender': 'Male', 'maritalStatus': 'Single', 'termsAccepted': 'yes'})
        assert mapped == {'gender': 'male', 'marital_status': 'single', 'terms_accepted': True}

    def test_homeowner_labels_mapped(self):
        mapped = map_homeowner_fields({'paymentMode': 'Mobile Money', 'criminalRecord': 'No',
                                       'typeOfResidence': 'Villa'})
        assert mapped == {'payment_mode': 'mobile', 'criminal_record_required': False,
                          'type_of_residence': 'villa'}

    def test_unknown_enum_rejected(self):
        with pytest.raises(ValidationError) as exc:
            map_homeowner_fields({'typeOfResidence': 'Castle'})
        assert exc.value.status_code == 400
        assert 'type_of_residence' in exc.value.message

    def test_bad_boolean_rejected(self):
        with pytest.raises(ValidationError):
            to_bool('terms_accepted', 'maybe')

    def test_payment_method_labels(self):
        assert normalize_payment_method('MTN MoMo') == 'mobile_money'
        assert normalize_payment_method('Bank Transfer') == 'bank_transfer'
        assert normalize_payment_method('card') == 'card'
        with pytest.raises(ValidationError):
            normalize_payment_method('bitcoin')


class TestRequestNormalization:
    """Test the request hook rewrites JSON bodies"""

    def test_profile_update_accepts_camel_case(self, client, worker):
        response = client.put(f"/api/workers/{worker['id']}", headers=worker['headers'], json={
            'expectedWages': '60000 RWF',
            'emergencyName': 'Jean',
            'maritalStatus': 'Widowed',
        })

        assert response.status_code == 200
        data = json.loads(response.data)['data']
        assert data['expected_wages'] == '60000 RWF'
        assert data['emergency_contact_name'] == 'Jean'
        assert data['marital_status'] == 'widowed'

    def test_profile_update_rejects_unknown_enum(self, client, worker):
        response = client.put(f"/api/workers/{worker['id']}", headers=worker['headers'],
                              json={'gender': 'unknown'})

        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'Invalid value for gender: unknown'


class TestJsonCache:
    """Test the hook replaces the cached JSON for every get_json() mode"""

    def test_both_get_json_modes_see_snake_case(self, app):
        with app.test_request_context('/api/workers', method='POST', json={'fullName': 'Grace', '__proto__': {}}):
            app.preprocess_request()

            assert request.get_json() == {'full_name': 'Grace'}
            assert request.get_json(silent=True) == {'full_name': 'Grace'}

    def test_webhook_body_untouched(self, app):
        with app.test_request_context('/api/webhooks/flutterwave', method='POST', json={'txRef': 'HH-1'}):
            app.preprocess_request()

            assert request.get_json() == {'txRef': 'HH-1'}
