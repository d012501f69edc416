"""
Payment gateway clients.

The booking flow only needs "charge this amount for this payer" and a
success flag plus the gateway's own transaction reference back. Timeouts are
enforced by the caller, so a gateway implementation may block.
"""

import logging
import secrets
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import httpx

from src.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Payer:
    name: str
    email: str
    mobile_number: str


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    reference: Optional[str] = None
    reason: Optional[str] = None


class PaymentGatewayError(Exception):
    """The gateway could not be reached or answered with garbage"""


class PaymentGateway:
    """Interface for charging a commuter"""

    def charge(self, amount: Decimal, payer: Payer, description: str) -> PaymentResult:
        raise NotImplementedError


class SimulatedPaymentGateway(PaymentGateway):
    """Approves every charge; used when no real gateway is configured"""

    def charge(self, amount: Decimal, payer: Payer, description: str) -> PaymentResult:
        reference = f"PAY{secrets.token_hex(8).upper()}"
        logger.info(f"Simulated charge of {amount} for {payer.email} approved ({reference})")
        return PaymentResult(success=True, reference=reference)


class HttpPaymentGateway(PaymentGateway):
    """JSON-over-HTTP gateway client"""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        currency: str = "LKR",
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.currency = currency
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport
        )

    def charge(self, amount: Decimal, payer: Payer, description: str) -> PaymentResult:
        payload = {
            "amount": str(amount),
            "currency": self.currency,
            "description": description,
            "payer": {
                "name": payer.name,
                "email": payer.email,
                "mobileNumber": payer.mobile_number,
            },
        }

        try:
            response = self._client.post("/charges", json=payload)
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"Payment gateway unreachable: {e}") from e

        if response.status_code >= 500:
            raise PaymentGatewayError(f"Payment gateway error {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise PaymentGatewayError("Payment gateway returned a non-JSON response") from e

        if response.is_success and body.get("success"):
            return PaymentResult(success=True, reference=body.get("transactionRef"))

        return PaymentResult(
            success=False,
            reference=body.get("transactionRef"),
            reason=body.get("reason") or f"Declined with status {response.status_code}"
        )

    def close(self):
        self._client.close()


def build_payment_gateway() -> PaymentGateway:
    if settings.PAYMENT_GATEWAY_URL:
        return HttpPaymentGateway(
            base_url=settings.PAYMENT_GATEWAY_URL,
            api_key=settings.PAYMENT_GATEWAY_API_KEY,
            currency=settings.PAYMENT_CURRENCY,
            timeout=settings.PAYMENT_TIMEOUT_SECONDS
        )
    logger.warning("PAYMENT_GATEWAY_URL not set, using the simulated payment gateway")
    return SimulatedPaymentGateway()
