"""
Python client for the HouseHelp HTTP API.

Tokens live on an explicit ``ApiSession`` passed to the client rather than
in module globals, so several users (or tests) can hold independent
sessions side by side. Every call returns the server's envelope
``{"success": bool, "data"?: ..., "error"?: str}`` and never raises.
"""

import logging

import requests

logger = logging.getLogger(__name__)


class ApiSession:
    """Access/refresh token pair for one signed-in user."""

    def __init__(self, access_token=None, refresh_token=None, user=None):
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.user = user

    @property
    def authenticated(self):
        return bool(self.access_token)

    def update(self, session_data):
        self.access_token = session_data.get("access_token")
        self.refresh_token = session_data.get("refresh_token") or self.refresh_token

    def clear(self):
        self.access_token = None
        self.refresh_token = None
        self.user = None


class ApiClient:
    def __init__(self, base_url, session=None, http=None, timeout=15):
        self.base_url = base_url.rstrip("/")
        self.session = session if session is not None else ApiSession()
        self.http = http or requests.Session()
        self.timeout = timeout

    def _url(self, endpoint):
        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            return endpoint
        return "{}/{}".format(self.base_url, endpoint.lstrip("/"))

    def _send(self, method, endpoint, body, skip_auth):
        headers = {"Content-Type": "application/json"}
        if not skip_auth and self.session.access_token:
            headers["Authorization"] = "Bearer {}".format(self.session.access_token)
        return self.http.request(
            method,
            self._url(endpoint),
            json=body,
            headers=headers,
            timeout=self.timeout,
        )

    def refresh(self):
        """Exchange the refresh token for a new session. Returns True on success."""
        if not self.session.refresh_token:
            return False
        result = self.request(
            "POST", "/auth/refresh",
            {"refresh_token": self.session.refresh_token},
            skip_auth=True, retry=False,
        )
        session_data = (result.get("data") or {}).get("session") if result.get("success") else None
        if not session_data:
            logger.info("Session refresh failed; clearing tokens")
            self.session.clear()
            return False
        self.session.update(session_data)
        return True

    def request(self, method, endpoint, body=None, skip_auth=False, retry=True):
        try:
            resp = self._send(method, endpoint, body, skip_auth)
            if resp.status_code == 401 and not skip_auth and retry and self.refresh():
                resp = self._send(method, endpoint, body, skip_auth)

            try:
                payload = resp.json()
            except ValueError:
                payload = None

            if not isinstance(payload, dict):
                if resp.ok:
                    return {"success": True, "data": payload}
                return {"success": False, "error": "HTTP {}".format(resp.status_code)}

            if not resp.ok:
                return {
                    "success": False,
                    "error": payload.get("error") or payload.get("message") or "HTTP {}".format(resp.status_code),
                }
            payload.setdefault("success", True)
            return payload
        except requests.RequestException as e:
            logger.warning("API request %s %s failed: %s", method, endpoint, e)
            return {"success": False, "error": str(e) or "Network error"}

    def api_get(self, endpoint, skip_auth=False):
        return self.request("GET", endpoint, skip_auth=skip_auth)

    def api_post(self, endpoint, body=None, skip_auth=False):
        return self.request("POST", endpoint, body, skip_auth=skip_auth)

    def api_put(self, endpoint, body=None, skip_auth=False):
        return self.request("PUT", endpoint, body, skip_auth=skip_auth)

    def api_patch(self, endpoint, body=None, skip_auth=False):
        return self.request("PATCH", endpoint, body, skip_auth=skip_auth)

    def api_delete(self, endpoint, skip_auth=False):
        return self.request("DELETE", endpoint, skip_auth=skip_auth)

    def login(self, email, password, role=None):
        """Sign in and store the returned session on ``self.session``."""
        body = {"email": email, "password": password}
        if role:
            body["role"] = role
        result = self.api_post("/auth/login", body, skip_auth=True)
        data = result.get("data") or {}
        if result.get("success") and data.get("session"):
            self.session.update(data["session"])
            self.session.user = data.get("user")
        return result

    def logout(self):
        result = self.api_post("/auth/logout")
        self.session.clear()
        return result
