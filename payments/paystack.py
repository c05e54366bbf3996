import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from booking_schemas import GatewayCharge, GatewayVerification
from errors import GatewayRejected, GatewayUnavailable

logger = logging.getLogger(__name__)

PAYSTACK_BASE_URL = "https://api.paystack.co"
MINOR_UNITS_PER_MAJOR = 100


def to_minor_units(amount) -> int:
    """
    Convert a major-unit amount (e.g. 2500.50 NGN) to minor units (250050 kobo).
    Rounds half-up to the nearest minor unit: 0.005 -> 1, 0.004 -> 0.
    """
    value = Decimal(str(amount)) * MINOR_UNITS_PER_MAJOR
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_session(retries: int) -> requests.Session:
    # connection errors only: a POST that reached the provider is never replayed,
    # and 4xx/5xx answers come straight back to us
    retry = Retry(total=retries, connect=retries, read=0, status=0, other=0, backoff_factor=0.3)
    session = requests.Session()
    session.mount("https://", HTTPAdapter(max_retries=retry))
    session.mount("http://", HTTPAdapter(max_retries=retry))
    return session


class PaystackGateway:
    """
    Thin adapter over the Paystack transaction API.
    Callers see GatewayCharge/GatewayVerification models and two error types:
    GatewayUnavailable (retryable) and GatewayRejected (fix the input first).
    """

    def __init__(
        self,
        secret_key: str,
        base_url: str = PAYSTACK_BASE_URL,
        timeout: float = 10.0,
        retries: int = 2,
        session: Optional[requests.Session] = None,
    ):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or build_session(retries)

    to_minor_units = staticmethod(to_minor_units)

    def _request(self, method: str, path: str, **kwargs) -> dict:
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self.session.request(
                method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.error("Paystack %s %s failed: %s", method, path, exc)
            raise GatewayUnavailable(f"Payment provider unreachable: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 500:
            logger.error("Paystack %s %s returned %s", method, path, response.status_code)
            raise GatewayUnavailable(f"Payment provider error ({response.status_code})")
        if response.status_code >= 400 or body.get("status") is False:
            message = body.get("message") or f"Payment provider rejected the request ({response.status_code})"
            logger.warning("Paystack %s %s rejected: %s", method, path, message)
            raise GatewayRejected(message)
        if not isinstance(body.get("data"), dict):
            raise GatewayUnavailable("Payment provider returned an unreadable response")
        return body["data"]

    def initialize(
        self,
        payer_email: str,
        amount_minor_units: int,
        internal_reference: str,
        callback_url: str,
        metadata: Optional[dict] = None,
    ) -> GatewayCharge:
        data = self._request(
            "POST",
            "/transaction/initialize",
            json={
                "email": payer_email,
                "amount": amount_minor_units,
                "reference": internal_reference,
                "callback_url": callback_url,
                "metadata": metadata or {},
            },
        )
        try:
            return GatewayCharge(
                authorization_url=data["authorization_url"],
                gateway_reference=data.get("reference") or internal_reference,
                access_code=data.get("access_code"),
            )
        except KeyError as exc:
            raise GatewayUnavailable("Payment provider response is missing authorization_url") from exc

    def verify(self, internal_reference: str) -> GatewayVerification:
        """
        Ask the provider for the transaction's current state. Never cached.
        """
        data = self._request("GET", f"/transaction/verify/{quote(internal_reference, safe='')}")
        return GatewayVerification(
            gateway_status=str(data.get("status", "")),
            amount=data.get("amount"),
            raw_payload=data,
        )
