"""
Supabase Auth (GoTrue) client.

Accounts, passwords and sessions are owned by Supabase; this module only
speaks its REST API. Every call returns plain dicts:

    user    -> {"id", "email", "user_metadata", ...}
    session -> {"access_token", "refresh_token", "expires_in", "expires_at", "token_type"}

Provider failures raise AuthProviderError. The raw provider message is
kept on the exception for logging and never sent to API clients.
"""

import logging

import requests

logger = logging.getLogger(__name__)

_SESSION_KEYS = ("access_token", "refresh_token", "expires_in", "expires_at", "token_type")


class AuthProviderError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_client_error(self):
        return self.status_code is not None and 400 <= self.status_code < 500


def _extract_session(body):
    if not body or not body.get("access_token"):
        return None
    return {key: body.get(key) for key in _SESSION_KEYS}


class SupabaseAuth:
    def __init__(self, url, anon_key, service_role_key=None, timeout=15):
        self.base_url = url.rstrip("/") + "/auth/v1"
        self.anon_key = anon_key
        self.service_role_key = service_role_key
        self.timeout = timeout
        self.http = requests.Session()

    def _headers(self, access_token=None):
        headers = {"apikey": self.anon_key, "Content-Type": "application/json"}
        if access_token:
            headers["Authorization"] = "Bearer {}".format(access_token)
        return headers

    def _call(self, method, path, access_token=None, **kwargs):
        try:
            resp = self.http.request(
                method,
                self.base_url + path,
                headers=self._headers(access_token),
                timeout=self.timeout,
                **kwargs
            )
        except requests.RequestException as e:
            raise AuthProviderError("Auth provider unreachable: {}".format(e)) from e

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = {}
            message = (
                body.get("msg")
                or body.get("error_description")
                or body.get("message")
                or body.get("error")
                or resp.text
            )
            raise AuthProviderError(message, status_code=resp.status_code)

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise AuthProviderError("Malformed auth provider response", resp.status_code) from e

    # ------------------------------------------------------------------
    # Account lifecycle
    # ------------------------------------------------------------------
    def sign_up(self, email, password, metadata=None):
        """Create an account. Returns ``{"user", "session"}``; session is None
        when the project requires email confirmation."""
        body = self._call(
            "POST", "/signup",
            json={"email": email, "password": password, "data": metadata or {}},
        )
        user = body.get("user") or body
        return {"user": user, "session": _extract_session(body)}

    def sign_in_with_password(self, email, password):
        body = self._call(
            "POST", "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return {"user": body.get("user"), "session": _extract_session(body)}

    def refresh_session(self, refresh_token):
        body = self._call(
            "POST", "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return {"user": body.get("user"), "session": _extract_session(body)}

    def get_user(self, access_token):
        """Resolve an access token to its user, or None when it is invalid or expired."""
        try:
            return self._call("GET", "/user", access_token=access_token)
        except AuthProviderError as e:
            if e.is_client_error:
                return None
            raise

    def sign_out(self, access_token):
        self._call("POST", "/logout", access_token=access_token)

    # ------------------------------------------------------------------
    # Password recovery
    # ------------------------------------------------------------------
    def reset_password_for_email(self, email, redirect_to=None):
        """Ask Supabase to email a recovery link."""
        params = {"redirect_to": redirect_to} if redirect_to else None
        self._call("POST", "/recover", params=params, json={"email": email})

    def update_password(self, access_token, new_password):
        """Set a new password for the user behind a (recovery) access token."""
        return self._call("PUT", "/user", access_token=access_token, json={"password": new_password})
