from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Literal

from src.core.config import settings
from src.models.organization import UNLIMITED_CLIENTS, Organization, SubscriptionStatus

logger = logging.getLogger(__name__)

SubscriptionTier = Literal["starter", "pro", "studio", "gym"]

TIER_ORDER: tuple[str, ...] = ("starter", "pro", "studio", "gym")
FALLBACK_TIER = "starter"

FEATURES: tuple[str, ...] = (
    "nutrition",
    "custom_branding",
    "api_access",
    "priority_support",
    "team_accounts",
    "white_label",
)


@dataclass(frozen=True, slots=True)
class TierProfile:
    tier: str
    client_limit: int
    nutrition: bool = False
    custom_branding: bool = False
    api_access: bool = False
    priority_support: bool = False
    team_accounts: bool = False
    white_label: bool = False

    @property
    def unlimited_clients(self) -> bool:
        return self.client_limit == UNLIMITED_CLIENTS

    def has_feature(self, feature: str) -> bool:
        if feature not in FEATURES:
            return False
        return bool(getattr(self, feature))

    def features(self) -> dict[str, bool]:
        return {feature: self.has_feature(feature) for feature in FEATURES}


TIER_PROFILES: dict[str, TierProfile] = {
    "starter": TierProfile(tier="starter", client_limit=10),
    "pro": TierProfile(tier="pro", client_limit=30, nutrition=True, priority_support=True),
    "studio": TierProfile(
        tier="studio",
        client_limit=75,
        nutrition=True,
        custom_branding=True,
        api_access=True,
        priority_support=True,
        team_accounts=True,
    ),
    "gym": TierProfile(
        tier="gym",
        client_limit=UNLIMITED_CLIENTS,
        nutrition=True,
        custom_branding=True,
        api_access=True,
        priority_support=True,
        team_accounts=True,
        white_label=True,
    ),
}

NO_ACCESS = TierProfile(tier="none", client_limit=0)


class TierCatalog:
    """Maps tier names, processor price references and entitlement profiles."""

    def __init__(
        self,
        price_ids: Mapping[str, str],
        profiles: Mapping[str, TierProfile] | None = None,
    ) -> None:
        self.profiles = dict(profiles or TIER_PROFILES)
        self.price_ids = {tier: price for tier, price in price_ids.items() if price}
        self._tiers_by_price = {price: tier for tier, price in self.price_ids.items()}

    def is_known(self, tier: str | None) -> bool:
        return bool(tier) and tier in self.profiles

    def profile(self, tier: str) -> TierProfile:
        return self.profiles.get(tier) or self.profiles[FALLBACK_TIER]

    def price_for(self, tier: str) -> str | None:
        return self.price_ids.get(tier)

    def profile_for_price(self, price_id: str | None) -> TierProfile:
        tier = self._tiers_by_price.get(price_id or "")
        if tier is None:
            logger.warning("Unknown price reference %s, falling back to %s", price_id, FALLBACK_TIER)
            return self.profile(FALLBACK_TIER)
        return self.profile(tier)

    def entitlements_for(self, record: Organization) -> TierProfile:
        if record.subscription_status == SubscriptionStatus.CANCELED.value:
            return NO_ACCESS
        # The persisted limit wins over the tier default: trials run unlimited on any tier.
        return replace(self.profile(record.subscription_tier), client_limit=record.client_limit)

    def upgrade_tier_for(self, current_tier: str, feature: str) -> str | None:
        start = TIER_ORDER.index(current_tier) + 1 if current_tier in TIER_ORDER else 0
        for tier in TIER_ORDER[start:]:
            if self.profile(tier).has_feature(feature):
                return tier
        return None


def get_tier_catalog() -> TierCatalog:
    return TierCatalog(settings.tier_price_ids())
