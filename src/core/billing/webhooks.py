from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any
from uuid import UUID

import stripe

from src.core.billing.errors import ProcessorError, SignatureInvalidError
from src.core.billing.events import publish_billing_status
from src.core.billing.gateway import StripeGateway
from src.core.billing.snapshots import (
    TERMINAL_PROCESSOR_STATUSES,
    current_price_id,
    from_timestamp,
    local_status,
    object_id,
    period_end,
)
from src.core.billing.tiers import TierCatalog
from src.core.repositories.billing_records import BillingRecordStore
from src.models.base import utcnow
from src.models.organization import Organization, SubscriptionStatus

logger = logging.getLogger(__name__)

StatusPublisher = Callable[[str, str], Awaitable[bool]]


@dataclass(slots=True)
class WebhookOutcome:
    event_type: str
    organization_id: str | None = None
    updated: bool = False


def verify_and_parse_event(raw_body: bytes, signature: str | None, secret: str) -> dict[str, Any]:
    """Authenticate a delivery and return its payload as plain data.

    Nothing is parsed or acted on before the signature checks out.
    """
    if not secret:
        raise SignatureInvalidError("Webhook signing secret is not configured")
    if not signature:
        raise SignatureInvalidError("Missing Stripe signature", error="No signature")

    try:
        stripe.Webhook.construct_event(payload=raw_body, sig_header=signature, secret=secret)
    except (ValueError, stripe.SignatureVerificationError) as exc:
        logger.warning("Webhook signature verification failed: %s", exc)
        raise SignatureInvalidError(str(exc)) from exc

    return json.loads(raw_body)


def _event_object(event: Mapping[str, Any]) -> Mapping[str, Any]:
    return (event.get("data") or {}).get("object") or {}


class WebhookReconciler:
    """Applies processor events to billing records as absolute snapshots.

    Each branch writes whole field values taken from the payload, so duplicate or
    reordered deliveries converge on the same record state.
    """

    def __init__(
        self,
        records: BillingRecordStore,
        gateway_factory: Callable[[], StripeGateway],
        catalog: TierCatalog,
        publisher: StatusPublisher = publish_billing_status,
    ) -> None:
        self.records = records
        self.gateway_factory = gateway_factory
        self._gateway: StripeGateway | None = None
        self.catalog = catalog
        self.publisher = publisher
        self._handlers: dict[str, Callable[[Mapping[str, Any]], Awaitable[Organization | None]]] = {
            "checkout.session.completed": self._checkout_completed,
            "customer.subscription.created": self._subscription_changed,
            "customer.subscription.updated": self._subscription_changed,
            "customer.subscription.deleted": self._subscription_deleted,
            "invoice.payment_failed": self._payment_failed,
            "invoice.payment_succeeded": self._payment_succeeded,
        }

    @property
    def gateway(self) -> StripeGateway:
        # Built on first use: most event types never call the processor.
        if self._gateway is None:
            self._gateway = self.gateway_factory()
        return self._gateway

    async def handle(self, event: Mapping[str, Any]) -> WebhookOutcome:
        event_type = event.get("type") or "unknown"
        logger.info("Stripe webhook received: %s id=%s", event_type, event.get("id"))

        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("Unhandled webhook event type: %s", event_type)
            return WebhookOutcome(event_type=event_type)

        record = await handler(_event_object(event))
        if record is None:
            return WebhookOutcome(event_type=event_type)

        await self.records.commit()
        await self.publisher(str(record.id), record.subscription_status)
        return WebhookOutcome(event_type=event_type, organization_id=str(record.id), updated=True)

    async def _record_for_customer(self, customer: Any, event_name: str) -> Organization | None:
        customer_id = object_id(customer)
        if not customer_id:
            logger.warning("%s event carries no customer id", event_name)
            return None
        record = await self.records.find_by_external_customer_id(customer_id)
        if record is None:
            logger.warning("%s: no organization for customer %s", event_name, customer_id)
        return record

    async def _checkout_completed(self, session: Mapping[str, Any]) -> Organization | None:
        raw_org_id = (session.get("metadata") or {}).get("organization_id")
        if not raw_org_id:
            logger.error("No organization_id in checkout session metadata (session=%s)", session.get("id"))
            return None

        try:
            organization_id = UUID(str(raw_org_id))
        except ValueError:
            logger.warning("Checkout session carries malformed organization_id=%s", raw_org_id)
            return None

        record = await self.records.get(organization_id)
        if record is None:
            logger.warning("Checkout completed for unknown organization=%s", organization_id)
            return None

        subscription_id = object_id(session.get("subscription"))
        customer_id = object_id(session.get("customer"))
        values: dict[str, object] = {"external_subscription_id": subscription_id}
        if customer_id:
            values["external_customer_id"] = customer_id

        if subscription_id:
            try:
                subscription = await self.gateway.retrieve_subscription(subscription_id)
            except ProcessorError:
                # The subscription.created event carries the status as well.
                logger.exception(
                    "Could not inspect subscription %s for organization=%s", subscription_id, record.id
                )
            else:
                # A trialing subscription must stay trialing even though checkout completed.
                values["subscription_status"] = (
                    SubscriptionStatus.TRIALING.value
                    if subscription.get("status") == "trialing"
                    else SubscriptionStatus.ACTIVE.value
                )
        else:
            values["subscription_status"] = SubscriptionStatus.ACTIVE.value

        await self.records.apply(record, **values)
        logger.info(
            "Organization %s linked to customer %s (status: %s)",
            record.id,
            record.external_customer_id,
            record.subscription_status,
        )
        return record

    async def _subscription_changed(self, subscription: Mapping[str, Any]) -> Organization | None:
        record = await self._record_for_customer(subscription.get("customer"), "subscription change")
        if record is None:
            return None

        subscription_id = subscription.get("id")
        processor_status = subscription.get("status")
        if (
            subscription_id != record.external_subscription_id
            and processor_status in TERMINAL_PROCESSOR_STATUSES
        ):
            logger.info(
                "Ignoring %s update for superseded subscription %s on organization=%s",
                processor_status,
                subscription_id,
                record.id,
            )
            return None

        profile = self.catalog.profile_for_price(current_price_id(subscription))
        status = local_status(subscription)
        values: dict[str, object] = {
            "external_subscription_id": subscription_id,
            "subscription_tier": profile.tier,
            "client_limit": profile.client_limit,
            "subscription_status": status.value,
        }
        if status is SubscriptionStatus.TRIALING and subscription.get("trial_end"):
            values["trial_ends_at"] = from_timestamp(subscription["trial_end"])
        elif status is SubscriptionStatus.CANCELING:
            values["trial_ends_at"] = period_end(subscription) or from_timestamp(subscription.get("cancel_at"))

        await self.records.apply(record, **values)
        logger.info(
            "Organization %s subscription updated: %s (%s)", record.id, profile.tier, status.value
        )
        return record

    async def _subscription_deleted(self, subscription: Mapping[str, Any]) -> Organization | None:
        record = await self._record_for_customer(subscription.get("customer"), "subscription deletion")
        if record is None:
            return None

        subscription_id = subscription.get("id")
        if record.external_subscription_id and record.external_subscription_id != subscription_id:
            logger.info(
                "Ignoring deletion of superseded subscription %s on organization=%s",
                subscription_id,
                record.id,
            )
            return None

        still_trialing = (
            record.subscription_status == SubscriptionStatus.TRIALING.value
            and record.trial_ends_at is not None
            and record.trial_ends_at > utcnow()
        )
        if still_trialing:
            logger.info(
                "Organization %s cancelled plan selection during trial - keeping trialing status",
                record.id,
            )
            if record.external_subscription_id is None:
                return None
            await self.records.apply(record, external_subscription_id=None)
            return record

        await self.records.apply(
            record,
            subscription_status=SubscriptionStatus.CANCELED.value,
            external_subscription_id=None,
        )
        logger.info("Organization %s subscription canceled", record.id)
        return record

    async def _payment_failed(self, invoice: Mapping[str, Any]) -> Organization | None:
        record = await self._record_for_customer(invoice.get("customer"), "payment failure")
        if record is None:
            return None

        await self.records.apply(record, subscription_status=SubscriptionStatus.PAST_DUE.value)
        logger.warning("Organization %s payment failed - marked as past_due", record.id)
        return record

    async def _payment_succeeded(self, invoice: Mapping[str, Any]) -> Organization | None:
        logger.info("Payment succeeded for invoice %s", invoice.get("id"))
        return None
