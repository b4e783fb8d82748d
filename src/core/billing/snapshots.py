from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from src.models.organization import SubscriptionStatus

_STATUS_MAP: dict[str, SubscriptionStatus] = {
    "trialing": SubscriptionStatus.TRIALING,
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}

TERMINAL_PROCESSOR_STATUSES = frozenset({"canceled", "incomplete_expired"})


def from_timestamp(value: int | float | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def first_item(subscription: Mapping[str, Any]) -> Mapping[str, Any] | None:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else None


def current_price(subscription: Mapping[str, Any]) -> Mapping[str, Any]:
    item = first_item(subscription) or {}
    return item.get("price") or {}


def current_price_id(subscription: Mapping[str, Any]) -> str | None:
    return current_price(subscription).get("id")


def _period_field(subscription: Mapping[str, Any], field: str) -> datetime | None:
    # Newer API versions only report billing periods on subscription items.
    value = subscription.get(field)
    if value is None:
        value = (first_item(subscription) or {}).get(field)
    return from_timestamp(value)


def period_end(subscription: Mapping[str, Any]) -> datetime | None:
    return _period_field(subscription, "current_period_end")


def period_start(subscription: Mapping[str, Any]) -> datetime | None:
    return _period_field(subscription, "current_period_start")


def local_status(subscription: Mapping[str, Any]) -> SubscriptionStatus:
    """Translate the processor's subscription state into the local lifecycle enum."""
    raw = subscription.get("status") or ""
    status = _STATUS_MAP.get(raw, SubscriptionStatus.PAST_DUE)
    if status is SubscriptionStatus.ACTIVE and subscription.get("cancel_at_period_end"):
        return SubscriptionStatus.CANCELING
    return status


def object_id(value: Any) -> str | None:
    """Return the id of an expandable field, whether expanded or not."""
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return value.get("id")
