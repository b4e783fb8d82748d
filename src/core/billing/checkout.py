from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from src.core.billing.errors import InvalidRequestError, NotFoundError, ProcessorError
from src.core.billing.gateway import ProrationBehavior, StripeGateway
from src.core.billing.snapshots import first_item
from src.core.billing.tiers import TierCatalog
from src.core.config import settings
from src.core.repositories.billing_records import BillingRecordStore
from src.models.base import utcnow
from src.models.organization import Organization, SubscriptionStatus

logger = logging.getLogger(__name__)

CHECKOUT_SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


@dataclass(slots=True)
class CheckoutResult:
    updated: bool = False
    message: str | None = None
    client_secret: str | None = None


def build_return_url(origin: str) -> str:
    base = origin.rstrip("/")
    return f"{base}{settings.billing_return_path}?session_id={CHECKOUT_SESSION_PLACEHOLDER}"


class CheckoutOrchestrator:
    """Starts an embedded checkout or moves an existing subscription to a new tier."""

    def __init__(self, records: BillingRecordStore, gateway: StripeGateway, catalog: TierCatalog) -> None:
        self.records = records
        self.gateway = gateway
        self.catalog = catalog

    async def start(
        self,
        *,
        organization_id: UUID,
        tier: str,
        billing_email: str,
        origin: str,
    ) -> CheckoutResult:
        price_id = self.catalog.price_for(tier) if self.catalog.is_known(tier) else None
        if price_id is None:
            raise InvalidRequestError(f"Unknown subscription tier: {tier}", error="Invalid tier")

        record = await self.records.get(organization_id)
        if record is None:
            raise NotFoundError("No billing record for organization", error="Organization not found")

        customer_id = await self._ensure_customer(record, billing_email)

        if record.external_subscription_id:
            return await self._change_tier(record, tier, price_id)

        trial_end = None
        if (
            record.subscription_status == SubscriptionStatus.TRIALING.value
            and record.trial_ends_at is not None
            and record.trial_ends_at > utcnow()
        ):
            trial_end = record.trial_ends_at

        session = await self.gateway.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            organization_id=str(record.id),
            return_url=build_return_url(origin),
            trial_end=trial_end,
        )
        logger.info(
            "Created checkout session for organization=%s tier=%s trial_end=%s",
            record.id,
            tier,
            trial_end,
        )
        return CheckoutResult(client_secret=session.get("client_secret"))

    async def _ensure_customer(self, record: Organization, billing_email: str) -> str:
        if record.external_customer_id:
            return record.external_customer_id

        customer = await self.gateway.create_customer(
            email=billing_email,
            organization_id=str(record.id),
            organization_name=record.name or "",
        )
        await self.records.apply(record, external_customer_id=customer["id"])
        # Committed now so a retry after a later failure reuses this customer.
        await self.records.commit()
        logger.info("Created billing customer for organization=%s", record.id)
        return customer["id"]

    async def _change_tier(self, record: Organization, tier: str, price_id: str) -> CheckoutResult:
        is_trialing = record.subscription_status == SubscriptionStatus.TRIALING.value
        subscription = await self.gateway.retrieve_subscription(record.external_subscription_id)
        item = first_item(subscription)
        if item is None:
            raise ProcessorError("missing_subscription_item", "No subscription item found")

        proration: ProrationBehavior = "none" if is_trialing else "create_prorations"
        await self.gateway.update_subscription_item(
            record.external_subscription_id,
            item_id=item["id"],
            price_id=price_id,
            proration_behavior=proration,
        )

        await self.records.apply(record, subscription_tier=tier)
        await self.records.commit()
        logger.info(
            "Changed tier for organization=%s to %s proration=%s",
            record.id,
            tier,
            proration,
        )

        if is_trialing:
            message = f"Plan updated to {tier}. Billing will start when your trial ends."
        else:
            message = f"Plan upgraded to {tier}. Your billing has been adjusted."
        return CheckoutResult(updated=True, message=message)
