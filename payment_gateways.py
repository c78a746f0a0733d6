"""
Payment gateway clients.

Flutterwave handles card payments (the browser completes checkout, the
server verifies the transaction id). PayPack handles MTN/Airtel mobile
money cash-in for homeowners and cash-out for worker withdrawals.

Both clients raise GatewayError on any transport or API failure; route
handlers log it and answer with a generic message.
"""

import hmac
import logging
import time

import requests

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _request(http, method, url, timeout, **kwargs):
    try:
        resp = http.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        raise GatewayError("Gateway unreachable: {}".format(e)) from e
    try:
        body = resp.json()
    except ValueError:
        body = {"raw": resp.text}
    if resp.status_code >= 400:
        message = body.get("message") if isinstance(body, dict) else None
        raise GatewayError(message or "HTTP {}".format(resp.status_code), resp.status_code)
    return body


# ---------------------------------------------------------------------------
# Flutterwave
# ---------------------------------------------------------------------------
FLUTTERWAVE_STATUS = {
    "successful": "success",
    "failed": "failed",
    "cancelled": "cancelled",
    "pending": "pending",
}


class FlutterwaveClient:
    BASE_URL = "https://api.flutterwave.com/v3"

    def __init__(self, secret_key, secret_hash=None, timeout=15):
        self.secret_key = secret_key
        self.secret_hash = secret_hash
        self.timeout = timeout
        self.http = requests.Session()

    @property
    def configured(self):
        return bool(self.secret_key)

    def _headers(self):
        return {
            "Authorization": "Bearer {}".format(self.secret_key),
            "Content-Type": "application/json",
        }

    def verify_transaction(self, transaction_id):
        """Return ``{"status", "tx_ref", "amount", "currency", "raw"}`` for a transaction.

        ``status`` is mapped onto payment statuses (success/failed/...).
        """
        if not self.configured:
            raise GatewayError("Flutterwave is not configured")
        body = _request(
            self.http, "GET",
            "{}/transactions/{}/verify".format(self.BASE_URL, transaction_id),
            self.timeout, headers=self._headers(),
        )
        if body.get("status") != "success":
            raise GatewayError(body.get("message") or "Verification failed")
        data = body.get("data") or {}
        return {
            "status": FLUTTERWAVE_STATUS.get(str(data.get("status", "")).lower(), "failed"),
            "tx_ref": data.get("tx_ref"),
            "transaction_id": str(data.get("id", transaction_id)),
            "amount": data.get("amount"),
            "currency": data.get("currency"),
            "raw": data,
        }

    def verify_webhook(self, signature):
        """Compare the ``verif-hash`` header with the configured secret hash."""
        if not self.secret_hash or not signature:
            return False
        return hmac.compare_digest(str(signature), str(self.secret_hash))


# ---------------------------------------------------------------------------
# PayPack
# ---------------------------------------------------------------------------
PAYPACK_STATUS = {
    "successful": "success",
    "success": "success",
    "failed": "failed",
    "pending": "pending",
}


class PayPackClient:
    BASE_URL = "https://payments.paypack.rw/api"

    def __init__(self, application_id, application_secret, timeout=15):
        self.application_id = application_id
        self.application_secret = application_secret
        self.timeout = timeout
        self.http = requests.Session()
        self._access_token = None
        self._token_expires = 0

    @property
    def configured(self):
        return bool(self.application_id and self.application_secret)

    def _token(self):
        if self._access_token and time.time() < self._token_expires:
            return self._access_token
        if not self.configured:
            raise GatewayError("PayPack is not configured")
        body = _request(
            self.http, "POST", self.BASE_URL + "/auth/agents/authorize", self.timeout,
            json={"client_id": self.application_id, "client_secret": self.application_secret},
        )
        self._access_token = body.get("access")
        if not self._access_token:
            raise GatewayError("PayPack authorization returned no token")
        # Tokens live 15 minutes; refresh a minute early.
        self._token_expires = time.time() + 14 * 60
        return self._access_token

    def _headers(self):
        return {"Authorization": "Bearer {}".format(self._token()), "Content-Type": "application/json"}

    def cashin(self, amount, phone_number):
        """Charge a mobile-money wallet. Returns ``{"ref", "status", "raw"}``."""
        body = _request(
            self.http, "POST", self.BASE_URL + "/transactions/cashin", self.timeout,
            headers=self._headers(), json={"amount": amount, "number": phone_number},
        )
        return {"ref": body.get("ref"), "status": PAYPACK_STATUS.get(body.get("status"), "pending"), "raw": body}

    def cashout(self, amount, phone_number):
        """Pay out to a mobile-money wallet. Returns ``{"ref", "status", "raw"}``."""
        body = _request(
            self.http, "POST", self.BASE_URL + "/transactions/cashout", self.timeout,
            headers=self._headers(), json={"amount": amount, "number": phone_number},
        )
        return {"ref": body.get("ref"), "status": PAYPACK_STATUS.get(body.get("status"), "pending"), "raw": body}

    def find_transaction(self, ref):
        body = _request(
            self.http, "GET", "{}/transactions/find/{}".format(self.BASE_URL, ref), self.timeout,
            headers=self._headers(),
        )
        return {"ref": body.get("ref", ref), "status": PAYPACK_STATUS.get(body.get("status"), "pending"),
                "amount": body.get("amount"), "raw": body}
