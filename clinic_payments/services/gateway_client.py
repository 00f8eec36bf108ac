"""
Payment gateway client.

Prepares a hosted payment with the gateway and returns the URL
the payer must be redirected to. The gateway later reports the
outcome to our webhook, correlated by clientTransactionId.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP

import httpx

from clinic_payments.config import Settings, get_settings
from clinic_payments.exceptions import GatewayUnavailable

logger = logging.getLogger(__name__)

# Field names the gateway has used for the hosted payment URL
PAYMENT_URL_FIELDS = ("payWithPayPhone", "paymentUrl")


def to_minor_units(amount: Decimal) -> int:
    """Convert an amount in currency units to integer cents."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentGatewayClient:

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.Client | None = None,
    ):
        self.settings = settings or get_settings()
        self._http_client = http_client

    def _client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(
                timeout=self.settings.PAYMENT_GATEWAY_TIMEOUT
            )
        return self._http_client

    def build_payload(self, amount: Decimal, reference: str) -> dict:
        cents = to_minor_units(amount)
        return {
            "amount": cents,
            "amountWithoutTax": cents,
            "tax": 0,
            "clientTransactionId": reference,
            "countryCode": self.settings.PAYMENT_COUNTRY_CODE,
            "reference": reference,
            "responseUrl": self.settings.response_url,
            "cancelUrl": self.settings.cancel_url,
        }

    def prepare(self, amount: Decimal, reference: str) -> str:
        """
        Ask the gateway to prepare a payment and return its URL.

        Raises GatewayUnavailable on transport errors, non-2xx
        answers, unparseable bodies or a missing payment URL.
        """
        payload = self.build_payload(amount, reference)
        try:
            response = self._client().post(
                self.settings.PAYMENT_GATEWAY_URL,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.settings.PAYMENT_GATEWAY_TOKEN}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Gateway request failed for {reference}: {e}")
            raise GatewayUnavailable(
                "Payment gateway unreachable", reference=reference
            ) from e

        if not response.is_success:
            logger.error(
                f"Gateway rejected {reference}: "
                f"{response.status_code} {response.text[:200]}"
            )
            raise GatewayUnavailable(
                f"Payment gateway answered {response.status_code}",
                reference=reference,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Gateway returned non-JSON body for {reference}")
            raise GatewayUnavailable(
                "Payment gateway returned an invalid body", reference=reference
            ) from e

        url = None
        if isinstance(data, dict):
            url = next((data[f] for f in PAYMENT_URL_FIELDS if data.get(f)), None)
        if not url:
            logger.error(f"Gateway response for {reference} has no payment URL")
            raise GatewayUnavailable(
                "Payment gateway did not return a payment URL",
                reference=reference,
            )
        return url

    def close(self) -> None:
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None


def get_gateway_client():
    """FastAPI dependency; tests override it with a fake."""
    client = PaymentGatewayClient()
    try:
        yield client
    finally:
        client.close()
