from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Literal
from uuid import UUID

from src.core.billing.errors import InvalidRequestError, NotFoundError
from src.core.billing.gateway import StripeGateway
from src.core.billing.snapshots import period_end
from src.core.billing.tiers import TierCatalog, get_tier_catalog
from src.core.config import settings
from src.core.repositories.billing_records import BillingRecordStore
from src.models.organization import Organization, SubscriptionStatus

logger = logging.getLogger(__name__)

SubscriptionAction = Literal["cancel", "reactivate"]


@dataclass(slots=True)
class LifecycleResult:
    message: str
    subscription_status: str
    cleared: bool = False
    period_end: datetime | None = None


class SubscriptionLifecycleController:
    """User and admin initiated cancel/reactivate transitions."""

    def __init__(
        self,
        records: BillingRecordStore,
        gateway: StripeGateway,
        catalog: TierCatalog | None = None,
    ) -> None:
        self.records = records
        self.gateway = gateway
        self.catalog = catalog or get_tier_catalog()

    async def _load_subscribed(self, organization_id: UUID) -> Organization:
        record = await self.records.get(organization_id)
        if record is None:
            raise NotFoundError("No billing record for organization", error="Organization not found")
        if not record.external_subscription_id:
            raise NotFoundError("There is no subscription to act on", error="No active subscription")
        return record

    async def apply(self, organization_id: UUID, action: SubscriptionAction) -> LifecycleResult:
        if action == "cancel":
            return await self.cancel(organization_id)
        if action == "reactivate":
            return await self.reactivate(organization_id)
        raise InvalidRequestError(f"Unsupported action: {action}", error="Invalid action")

    async def cancel(self, organization_id: UUID) -> LifecycleResult:
        record = await self._load_subscribed(organization_id)
        status = record.subscription_status

        if status == SubscriptionStatus.TRIALING.value:
            return await self._cancel_trial_selection(record)
        if status == SubscriptionStatus.CANCELING.value:
            raise InvalidRequestError(
                "Subscription is already scheduled to cancel",
                error="Already canceling",
            )
        if status == SubscriptionStatus.CANCELED.value:
            raise InvalidRequestError("Subscription is already canceled", error="Already canceled")
        return await self._cancel_at_period_end(record)

    async def _cancel_trial_selection(self, record: Organization) -> LifecycleResult:
        # Nothing has been charged yet, so the upstream subscription goes away now.
        await self.gateway.cancel_subscription(record.external_subscription_id)
        trial_profile = self.catalog.profile(settings.default_trial_tier)
        await self.records.apply(
            record,
            external_subscription_id=None,
            subscription_tier=trial_profile.tier,
            client_limit=trial_profile.client_limit,
        )
        await self.records.commit()
        logger.info("Cleared plan selection during trial for organization=%s", record.id)
        return LifecycleResult(
            message="Plan selection cancelled. You can select a new plan anytime before your trial ends.",
            subscription_status=record.subscription_status,
            cleared=True,
        )

    async def _cancel_at_period_end(self, record: Organization) -> LifecycleResult:
        subscription = await self.gateway.set_cancel_at_period_end(record.external_subscription_id, True)
        ends_at = period_end(subscription)
        await self.records.apply(
            record,
            subscription_status=SubscriptionStatus.CANCELING.value,
            trial_ends_at=ends_at,
        )
        await self.records.commit()
        logger.info("Subscription for organization=%s cancels at %s", record.id, ends_at)
        return LifecycleResult(
            message="Subscription will cancel at period end",
            subscription_status=SubscriptionStatus.CANCELING.value,
            period_end=ends_at,
        )

    async def reactivate(self, organization_id: UUID) -> LifecycleResult:
        record = await self._load_subscribed(organization_id)
        if record.subscription_status != SubscriptionStatus.CANCELING.value:
            raise InvalidRequestError(
                "Subscription is not scheduled for cancellation",
                error="Nothing to reactivate",
            )

        await self.gateway.set_cancel_at_period_end(record.external_subscription_id, False)
        await self.records.apply(record, subscription_status=SubscriptionStatus.ACTIVE.value)
        await self.records.commit()
        logger.info("Subscription reactivated for organization=%s", record.id)
        return LifecycleResult(
            message="Subscription reactivated",
            subscription_status=SubscriptionStatus.ACTIVE.value,
        )

    async def terminate(self, organization_id: UUID) -> LifecycleResult:
        record = await self._load_subscribed(organization_id)
        await self.gateway.cancel_subscription(record.external_subscription_id)
        await self.records.apply(record, subscription_status=SubscriptionStatus.CANCELED.value)
        await self.records.commit()
        logger.warning("Subscription terminated immediately for organization=%s", record.id)
        return LifecycleResult(
            message="Subscription canceled",
            subscription_status=SubscriptionStatus.CANCELED.value,
        )
