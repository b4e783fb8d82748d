from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, Literal, TypeVar

import stripe

from src.core.billing.errors import ProcessorError
from src.core.config import settings

logger = logging.getLogger(__name__)

ProrationBehavior = Literal["none", "create_prorations"]
ResultT = TypeVar("ResultT")


class StripeGateway:
    """Thin async facade over the Stripe API.

    Every call runs the blocking SDK request in a worker thread, bounded by the
    configured timeout, and surfaces Stripe failures as ``ProcessorError``.
    Nothing here retries or touches local state.
    """

    def __init__(self, client: stripe.StripeClient | None = None) -> None:
        if client is None:
            if not settings.stripe_secret_key:
                raise ProcessorError("not_configured", "STRIPE_SECRET_KEY is not configured")
            client = stripe.StripeClient(
                settings.stripe_secret_key,
                http_client=stripe.RequestsClient(timeout=settings.stripe_request_timeout_seconds),
                max_network_retries=0,
            )
        self.client = client

    async def _call(self, operation: str, fn: Callable[..., ResultT], *args: Any, **kwargs: Any) -> ResultT:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except stripe.StripeError as exc:
            message = getattr(exc, "user_message", None) or str(exc) or "Stripe request failed"
            code = getattr(exc, "code", None)
            logger.error("Stripe %s failed code=%s message=%s", operation, code, message)
            raise ProcessorError(code, message) from exc

    async def create_customer(
        self,
        *,
        email: str,
        organization_id: str,
        organization_name: str = "",
    ) -> Mapping[str, Any]:
        return await self._call(
            "create_customer",
            self.client.customers.create,
            params={
                "email": email,
                "metadata": {
                    "organization_id": organization_id,
                    "organization_name": organization_name,
                },
            },
        )

    async def retrieve_customer(self, customer_id: str) -> Mapping[str, Any]:
        return await self._call("retrieve_customer", self.client.customers.retrieve, customer_id)

    async def retrieve_subscription(
        self,
        subscription_id: str,
        *,
        expand: list[str] | None = None,
    ) -> Mapping[str, Any]:
        params = {"expand": expand} if expand else None
        return await self._call(
            "retrieve_subscription",
            self.client.subscriptions.retrieve,
            subscription_id,
            params=params,
        )

    async def update_subscription_item(
        self,
        subscription_id: str,
        *,
        item_id: str,
        price_id: str,
        proration_behavior: ProrationBehavior,
    ) -> Mapping[str, Any]:
        return await self._call(
            "update_subscription_item",
            self.client.subscriptions.update,
            subscription_id,
            params={
                "items": [{"id": item_id, "price": price_id}],
                "proration_behavior": proration_behavior,
            },
        )

    async def set_cancel_at_period_end(self, subscription_id: str, cancel: bool) -> Mapping[str, Any]:
        return await self._call(
            "set_cancel_at_period_end",
            self.client.subscriptions.update,
            subscription_id,
            params={"cancel_at_period_end": cancel},
        )

    async def cancel_subscription(self, subscription_id: str) -> Mapping[str, Any]:
        return await self._call("cancel_subscription", self.client.subscriptions.cancel, subscription_id)

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        organization_id: str,
        return_url: str,
        trial_end: datetime | None = None,
    ) -> Mapping[str, Any]:
        subscription_data: dict[str, Any] = {"metadata": {"organization_id": organization_id}}
        if trial_end is not None:
            subscription_data["trial_end"] = int(trial_end.timestamp())

        return await self._call(
            "create_checkout_session",
            self.client.checkout.sessions.create,
            params={
                "customer": customer_id,
                "line_items": [{"price": price_id, "quantity": 1}],
                "mode": "subscription",
                "ui_mode": "embedded",
                "return_url": return_url,
                "metadata": {"organization_id": organization_id},
                "subscription_data": subscription_data,
            },
        )

    async def list_invoices(self, customer_id: str, *, limit: int = 10) -> list[Mapping[str, Any]]:
        page = await self._call(
            "list_invoices",
            self.client.invoices.list,
            params={"customer": customer_id, "limit": limit},
        )
        return list(page.get("data") or [])

    async def retrieve_payment_method(self, payment_method_id: str) -> Mapping[str, Any]:
        return await self._call(
            "retrieve_payment_method",
            self.client.payment_methods.retrieve,
            payment_method_id,
        )

    async def attach_default_payment_method(self, customer_id: str, payment_method_id: str) -> None:
        await self._call(
            "attach_payment_method",
            self.client.payment_methods.attach,
            payment_method_id,
            params={"customer": customer_id},
        )
        await self._call(
            "update_customer",
            self.client.customers.update,
            customer_id,
            params={"invoice_settings": {"default_payment_method": payment_method_id}},
        )

    async def set_subscription_payment_method(
        self,
        subscription_id: str,
        payment_method_id: str,
    ) -> Mapping[str, Any]:
        return await self._call(
            "update_subscription_payment_method",
            self.client.subscriptions.update,
            subscription_id,
            params={"default_payment_method": payment_method_id},
        )

    async def create_setup_intent(self, customer_id: str) -> Mapping[str, Any]:
        return await self._call(
            "create_setup_intent",
            self.client.setup_intents.create,
            params={
                "customer": customer_id,
                "payment_method_types": ["card"],
                "usage": "off_session",
            },
        )

    async def create_portal_session(self, customer_id: str, return_url: str) -> Mapping[str, Any]:
        return await self._call(
            "create_portal_session",
            self.client.billing_portal.sessions.create,
            params={"customer": customer_id, "return_url": return_url},
        )


def get_stripe_gateway() -> StripeGateway:
    return StripeGateway()


def get_stripe_gateway_factory() -> Callable[[], StripeGateway]:
    return get_stripe_gateway
