"""
Client façade tests with a mocked requests session
"""
from unittest.mock import Mock

import requests

from api_client import ApiClient, ApiSession


def make_response(status_code, payload=None):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    if payload is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = payload
    return response


def make_client(*responses, session=None):
    http = Mock()
    http.request.side_effect = list(responses)
    client = ApiClient("http://api.test/api", session=session or ApiSession("old-access", "old-refresh"), http=http)
    return client, http


class TestRequests:
    """Test token attachment and envelope handling"""

    def test_attaches_bearer_token(self):
        client, http = make_client(make_response(200, {"success": True, "data": [1, 2]}))

        result = client.api_get("/bookings")

        assert result == {"success": True, "data": [1, 2]}
        args, kwargs = http.request.call_args
        assert args == ("GET", "http://api.test/api/bookings")
        assert kwargs["headers"]["Authorization"] == "Bearer old-access"

    def test_skip_auth_omits_header(self):
        client, http = make_client(make_response(200, {"success": True}))

        client.api_post("/auth/login", {"email": "a@b.rw"}, skip_auth=True)

        assert "Authorization" not in http.request.call_args[1]["headers"]

    def test_error_envelope(self):
        client, _ = make_client(make_response(404, {"success": False, "error": "Booking not found"}))

        assert client.api_get("/bookings/x") == {"success": False, "error": "Booking not found"}

    def test_non_json_error(self):
        client, _ = make_client(make_response(502))

        assert client.api_get("/bookings") == {"success": False, "error": "HTTP 502"}

    def test_network_error_never_raises(self):
        http = Mock()
        http.request.side_effect = requests.ConnectionError("refused")
        client = ApiClient("http://api.test/api", http=http)

        result = client.api_get("/ping")

        assert result["success"] is False
        assert "refused" in result["error"]


class TestRefresh:
    """Test the single refresh-and-retry on 401"""

    def test_refreshes_once_and_retries(self):
        client, http = make_client(
            make_response(401, {"success": False, "error": "Invalid or expired token"}),
            make_response(200, {"success": True, "data": {"session": {
                "access_token": "new-access", "refresh_token": "new-refresh"}}}),
            make_response(200, {"success": True, "data": {"id": "b1"}}),
        )

        result = client.api_get("/bookings/b1")

        assert result == {"success": True, "data": {"id": "b1"}}
        assert client.session.access_token == "new-access"
        assert client.session.refresh_token == "new-refresh"
        calls = http.request.call_args_list
        assert calls[1][0] == ("POST", "http://api.test/api/auth/refresh")
        assert calls[1][1]["json"] == {"refresh_token": "old-refresh"}
        assert calls[2][1]["headers"]["Authorization"] == "Bearer new-access"

    def test_second_401_is_returned(self):
        client, http = make_client(
            make_response(401, {"success": False, "error": "Invalid or expired token"}),
            make_response(200, {"success": True, "data": {"session": {"access_token": "new-access"}}}),
            make_response(401, {"success": False, "error": "Invalid or expired token"}),
        )

        result = client.api_get("/bookings")

        assert result == {"success": False, "error": "Invalid or expired token"}
        assert http.request.call_count == 3

    def test_failed_refresh_clears_session(self):
        client, http = make_client(
            make_response(401, {"success": False, "error": "Invalid or expired token"}),
            make_response(401, {"success": False, "error": "Invalid or expired refresh token"}),
        )

        result = client.api_get("/bookings")

        assert result["success"] is False
        assert client.session.access_token is None
        assert http.request.call_count == 2

    def test_no_refresh_token_no_retry(self):
        client, http = make_client(
            make_response(401, {"success": False, "error": "Authorization token required"}),
            session=ApiSession(),
        )

        client.api_get("/bookings")

        assert http.request.call_count == 1


class TestLogin:
    """Test login/logout session handling"""

    def test_login_stores_session(self):
        client, _ = make_client(
            make_response(200, {"success": True, "data": {
                "user": {"id": "u1"},
                "session": {"access_token": "a1", "refresh_token": "r1"},
                "profile": {"role": "worker"},
            }}),
            session=ApiSession(),
        )

        result = client.login("grace@example.com", "secret123", role="worker")

        assert result["success"] is True
        assert client.session.access_token == "a1"
        assert client.session.user == {"id": "u1"}

    def test_logout_clears_session(self):
        client, _ = make_client(make_response(200, {"success": True, "message": "Logged out"}))

        client.logout()

        assert client.session.authenticated is False

    def test_sessions_are_independent(self):
        first = ApiClient("http://api.test/api", session=ApiSession("a"), http=Mock())
        second = ApiClient("http://api.test/api", http=Mock())

        assert first.session.access_token == "a"
        assert second.session.access_token is None
