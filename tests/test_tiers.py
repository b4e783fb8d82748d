from __future__ import annotations

import logging

from src.core.billing.tiers import NO_ACCESS, TierCatalog, TierProfile
from support import PRICE_IDS, make_record


def test_price_lookups(catalog) -> None:  # noqa: ANN001
    assert catalog.price_for("studio") == "price_studio"
    assert catalog.price_for("platinum") is None
    assert catalog.profile_for_price("price_pro").client_limit == 30
    assert catalog.profile_for_price("price_gym").unlimited_clients is True


def test_unknown_price_falls_back_to_starter(catalog, caplog) -> None:  # noqa: ANN001
    with caplog.at_level(logging.WARNING, logger="src.core.billing.tiers"):
        profile = catalog.profile_for_price("price_retired")

    assert profile.tier == "starter"
    assert profile.client_limit == 10
    assert "price_retired" in caplog.text


def test_missing_price_config_is_dropped() -> None:
    catalog = TierCatalog({**PRICE_IDS, "studio": ""})

    assert catalog.price_for("studio") is None
    assert catalog.is_known("studio") is True
    assert catalog.is_known(None) is False


def test_entitlements_use_persisted_limit(catalog) -> None:  # noqa: ANN001
    trial = make_record(subscription_tier="starter", client_limit=-1)

    profile = catalog.entitlements_for(trial)

    assert profile.tier == "starter"
    assert profile.unlimited_clients is True
    assert profile.has_feature("nutrition") is False


def test_canceled_record_gets_no_access(catalog) -> None:  # noqa: ANN001
    record = make_record(subscription_status="canceled", subscription_tier="gym")

    assert catalog.entitlements_for(record) is NO_ACCESS
    assert not any(NO_ACCESS.features().values())


def test_upgrade_tier_for_feature(catalog) -> None:  # noqa: ANN001
    assert catalog.upgrade_tier_for("starter", "nutrition") == "pro"
    assert catalog.upgrade_tier_for("pro", "api_access") == "studio"
    assert catalog.upgrade_tier_for("studio", "white_label") == "gym"
    assert catalog.upgrade_tier_for("gym", "white_label") is None


def test_custom_profiles_are_injectable() -> None:
    catalog = TierCatalog(
        {"solo": "price_solo"},
        profiles={"starter": TierProfile(tier="starter", client_limit=5), "solo": TierProfile(tier="solo", client_limit=3)},
    )

    assert catalog.profile_for_price("price_solo").client_limit == 3
    assert catalog.profile("unknown").client_limit == 5
