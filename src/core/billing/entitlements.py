from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth import AuthContext, require_auth_context
from src.core.billing.tiers import FEATURES, TierCatalog, TierProfile, get_tier_catalog
from src.core.db import get_db_session
from src.core.repositories.billing_records import BillingRecordRepository
from src.core.repositories.client_accounts import ClientAccountRepository
from src.models.organization import UNLIMITED_CLIENTS, Organization, SubscriptionStatus

INACTIVE_STATUSES = frozenset({SubscriptionStatus.CANCELED.value, SubscriptionStatus.PAST_DUE.value})


@dataclass(slots=True)
class ClientEntitlement:
    allowed: bool
    reason: str | None = None
    limit: int = UNLIMITED_CLIENTS
    current_count: int = 0


def evaluate_client_entitlement(record: Organization, current_count: int) -> ClientEntitlement:
    """Decide whether one more client account may be created."""
    limit = record.client_limit
    if record.subscription_status in INACTIVE_STATUSES:
        return ClientEntitlement(
            allowed=False,
            reason="subscription_inactive",
            limit=limit,
            current_count=current_count,
        )
    if limit != UNLIMITED_CLIENTS and current_count >= limit:
        return ClientEntitlement(
            allowed=False,
            reason="limit_reached",
            limit=limit,
            current_count=current_count,
        )
    return ClientEntitlement(allowed=True, limit=limit, current_count=current_count)


async def load_billing_record(
    context: AuthContext = Depends(require_auth_context),
    session: AsyncSession = Depends(get_db_session),
) -> Organization:
    # Always read fresh: webhooks may change the status between requests.
    record = await BillingRecordRepository(session).get(context.organization_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization is not provisioned",
        )
    return record


async def enforce_client_limit(
    record: Organization = Depends(load_billing_record),
    session: AsyncSession = Depends(get_db_session),
) -> ClientEntitlement:
    current_count = 0
    if record.client_limit != UNLIMITED_CLIENTS:
        current_count = await ClientAccountRepository(session).count_active()

    decision = evaluate_client_entitlement(record, current_count)
    if decision.allowed:
        return decision

    if decision.reason == "subscription_inactive":
        detail = {
            "error": "Subscription inactive",
            "details": "Please update your billing to add new clients.",
            "upgrade_required": True,
        }
    else:
        detail = {
            "error": "Client limit reached",
            "details": (
                f"You've reached your limit of {decision.limit} clients. "
                "Upgrade your plan to add more."
            ),
            "current_count": decision.current_count,
            "limit": decision.limit,
            "upgrade_required": True,
        }
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


async def get_current_entitlements(
    record: Organization = Depends(load_billing_record),
    catalog: TierCatalog = Depends(get_tier_catalog),
) -> TierProfile:
    return catalog.entitlements_for(record)


def require_feature(feature: str) -> Callable[..., Awaitable[TierProfile]]:
    if feature not in FEATURES:
        raise ValueError(f"Unknown feature: {feature}")

    async def _dependency(
        record: Organization = Depends(load_billing_record),
        catalog: TierCatalog = Depends(get_tier_catalog),
    ) -> TierProfile:
        entitlements = catalog.entitlements_for(record)
        if entitlements.has_feature(feature):
            return entitlements

        upgrade_to = catalog.upgrade_tier_for(record.subscription_tier, feature)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "Feature not available",
                "details": f"{feature} is not included in the {entitlements.tier} plan",
                "upgrade_tier": upgrade_to,
                "upgrade_required": True,
            },
        )

    return _dependency
