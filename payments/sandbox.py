import json
import uuid
from typing import Dict, Optional

from booking_schemas import GatewayCharge, GatewayVerification
from errors import GatewayRejected, GatewayUnavailable
from webhooks.signature import CHARGE_SUCCESS, compute_signature

from .paystack import to_minor_units


class SandboxGateway:
    """
    Offline payment provider for local runs, demos and tests.
    Same contract as PaystackGateway; the "customer" side is driven with
    complete()/fail(), and charge_success_webhook() builds a signed callback.
    """

    def __init__(self, secret_key: str = "sk_sandbox", base_url: str = "https://sandbox.local/pay"):
        self.secret_key = secret_key
        self.base_url = base_url
        self.transactions: Dict[str, dict] = {}
        self.outage = False              # simulate network failure / 5xx
        self.verify_calls = 0

    to_minor_units = staticmethod(to_minor_units)

    def initialize(
        self,
        payer_email: str,
        amount_minor_units: int,
        internal_reference: str,
        callback_url: str,
        metadata: Optional[dict] = None,
    ) -> GatewayCharge:
        if self.outage:
            raise GatewayUnavailable("Sandbox provider is down")
        if internal_reference in self.transactions:
            raise GatewayRejected("Duplicate Transaction Reference")
        if amount_minor_units <= 0:
            raise GatewayRejected("Invalid Amount Sent")
        access_code = uuid.uuid4().hex[:12]
        self.transactions[internal_reference] = {
            "id": len(self.transactions) + 1,
            "reference": internal_reference,
            "amount": amount_minor_units,
            "status": "ongoing",
            "customer": {"email": payer_email},
            "metadata": metadata or {},
            "callback_url": callback_url,
        }
        return GatewayCharge(
            authorization_url=f"{self.base_url}/{access_code}",
            gateway_reference=internal_reference,
            access_code=access_code,
        )

    def verify(self, internal_reference: str) -> GatewayVerification:
        if self.outage:
            raise GatewayUnavailable("Sandbox provider is down")
        self.verify_calls += 1
        txn = self.transactions.get(internal_reference)
        if txn is None:
            raise GatewayRejected("Transaction reference not found")
        return GatewayVerification(gateway_status=txn["status"], amount=txn["amount"], raw_payload=dict(txn))

    # --- customer side ---

    def complete(self, reference: str, amount: Optional[int] = None) -> dict:
        txn = self.transactions[reference]
        txn["status"] = "success"
        if amount is not None:
            txn["amount"] = amount
        return txn

    def fail(self, reference: str) -> dict:
        txn = self.transactions[reference]
        txn["status"] = "failed"
        return txn

    def charge_success_webhook(self, reference: str):
        """Return (raw_body, signature) for a charge.success callback."""
        txn = self.complete(reference)
        body = json.dumps({"event": CHARGE_SUCCESS, "data": txn}).encode()
        return body, compute_signature(body, self.secret_key)
