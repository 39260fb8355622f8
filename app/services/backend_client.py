"""HTTP client for the remote learning-platform REST API."""

import logging
from typing import Any, List, Optional

import httpx

from app.core.errors import ProviderError
from app.enums import SubscriptionStatus
from app.schemas_v1 import (
    CheckoutResponse,
    InternationalCheckoutRequest,
    PaymentRecord,
    PaymentRequest,
    PaymentResponse,
    Subscription,
    SubscriptionCreate,
    SubscriptionUpdate,
    WebhookPayload,
)

logger = logging.getLogger(__name__)


def unwrap_envelope(data: Any) -> Any:
    """Strip the response envelopes the backend and providers use.

    Accepts a bare list, `{data, success}`, the provider's `{error, msg, data}`
    or a bare object.
    """
    if isinstance(data, dict):
        if "error" in data and "msg" in data and "data" in data:
            if data["error"]:
                raise ProviderError(str(data.get("msg") or "Payment provider rejected the request"))
            return data["data"]
        if "data" in data and "success" in data:
            if data["success"] is False:
                raise ProviderError(str(data.get("message") or "Backend rejected the request"))
            return data["data"]
    return data


class BackendApiClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, endpoint: str, json: Optional[dict] = None) -> Any:
        try:
            response = await self._client.request(method, endpoint, json=json)
        except httpx.TimeoutException as exc:
            logger.error("Backend API %s %s timed out", method, endpoint)
            raise ProviderError("The payment service did not respond in time") from exc
        except httpx.HTTPError as exc:
            logger.error("Backend API %s %s failed: %s", method, endpoint, exc)
            raise ProviderError("The payment service is unreachable") from exc

        if response.is_error:
            logger.error(
                "Backend API %s %s returned %s: %s",
                method,
                endpoint,
                response.status_code,
                response.text[:500],
            )
            raise ProviderError(
                f"API Error: {response.status_code} - {response.reason_phrase}",
                upstream_status=response.status_code,
            )

        if not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderError("Backend API returned an invalid response") from exc
        return unwrap_envelope(payload)

    # --- payments ---

    async def create_payment(self, payload: PaymentRequest) -> PaymentResponse:
        data = await self._request("POST", "/payment", json=payload.to_wire())
        return PaymentResponse.model_validate(data)

    async def get_user_payments(self, user_id: str) -> List[PaymentRecord]:
        data = await self._request("GET", f"/payment/{user_id}")
        return [PaymentRecord.model_validate(item) for item in data or []]

    async def create_stripe_checkout(self, payload: InternationalCheckoutRequest) -> CheckoutResponse:
        data = await self._request("POST", "/stripe/stripe-checkout", json=payload.to_wire())
        return CheckoutResponse.model_validate(data)

    async def update_payment_status(self, payload: WebhookPayload) -> None:
        await self._request("POST", "/payment/responseStatus", json=payload.to_wire())

    # --- subscriptions ---

    async def create_subscription(self, payload: SubscriptionCreate) -> Subscription:
        data = await self._request("POST", "/subscriptions", json=payload.to_wire())
        return Subscription.model_validate(data)

    async def get_user_subscriptions(self, user_id: str) -> List[Subscription]:
        data = await self._request("GET", f"/subscriptions/user/{user_id}")
        return [Subscription.model_validate(item) for item in data or []]

    async def get_user_active_subscriptions(self, user_id: str) -> List[Subscription]:
        subscriptions = await self.get_user_subscriptions(user_id)
        return [s for s in subscriptions if s.status == SubscriptionStatus.ACTIVE]

    async def update_subscription(self, subscription_id: str, payload: SubscriptionUpdate) -> Subscription:
        data = await self._request("PATCH", f"/subscriptions/{subscription_id}", json=payload.to_wire())
        return Subscription.model_validate(data)
