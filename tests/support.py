from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from src.core.billing.errors import ProcessorError
from src.models.base import utcnow
from src.models.organization import Organization

PRICE_IDS = {
    "starter": "price_starter",
    "pro": "price_pro",
    "studio": "price_studio",
    "gym": "price_gym",
}


def make_record(**overrides: Any) -> Organization:
    values: dict[str, Any] = {
        "id": uuid4(),
        "name": "Iron Temple",
        "slug": "iron-temple",
        "owner_subject": "user_owner",
        "subscription_status": "trialing",
        "subscription_tier": "gym",
        "client_limit": -1,
        "external_customer_id": None,
        "external_subscription_id": None,
        "trial_ends_at": utcnow() + timedelta(days=10),
        "created_at": utcnow(),
        "updated_at": utcnow(),
    }
    values.update(overrides)
    return Organization(**values)


def record_state(record: Organization) -> dict[str, Any]:
    return {
        "subscription_status": record.subscription_status,
        "subscription_tier": record.subscription_tier,
        "client_limit": record.client_limit,
        "external_customer_id": record.external_customer_id,
        "external_subscription_id": record.external_subscription_id,
        "trial_ends_at": record.trial_ends_at,
    }


class InMemoryBillingRecords:
    def __init__(self, *records: Organization) -> None:
        self.by_id = {record.id: record for record in records}
        self.commits = 0
        self.applied: list[dict[str, Any]] = []

    async def get(self, organization_id):  # noqa: ANN001
        return self.by_id.get(organization_id)

    async def get_by_slug(self, slug: str) -> Organization | None:
        return next((r for r in self.by_id.values() if r.slug == slug), None)

    async def find_by_external_customer_id(self, customer_id: str) -> Organization | None:
        return next(
            (r for r in self.by_id.values() if r.external_customer_id == customer_id),
            None,
        )

    async def create(self, **values: Any) -> Organization:
        record = make_record(**values)
        self.by_id[record.id] = record
        return record

    async def apply(self, record: Organization, **values: Any) -> Organization:
        self.applied.append(dict(values))
        for field, value in values.items():
            setattr(record, field, value)
        record.updated_at = utcnow()
        return record

    async def commit(self) -> None:
        self.commits += 1


class FakeGateway:
    """Records every call; canned responses are plain dicts like Stripe objects."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.subscription: dict[str, Any] = {
            "id": "sub_1",
            "status": "active",
            "items": {"data": [{"id": "si_1", "price": {"id": "price_pro"}}]},
        }
        self.period_end = int(datetime(2026, 11, 19, tzinfo=timezone.utc).timestamp())
        self.fail_on: set[str] = set()

    def _record(self, name: str, **kwargs: Any) -> None:
        self.calls.append((name, kwargs))
        if name in self.fail_on:
            raise ProcessorError("api_error", f"{name} failed")

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]

    def kwargs_for(self, name: str) -> dict[str, Any]:
        return next(kwargs for called, kwargs in self.calls if called == name)

    async def create_customer(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_customer", **kwargs)
        return {"id": "cus_new"}

    async def retrieve_customer(self, customer_id: str) -> dict[str, Any]:
        self._record("retrieve_customer", customer_id=customer_id)
        return {"id": customer_id, "invoice_settings": {"default_payment_method": None}}

    async def retrieve_subscription(self, subscription_id: str, **kwargs: Any) -> dict[str, Any]:
        self._record("retrieve_subscription", subscription_id=subscription_id, **kwargs)
        return self.subscription

    async def update_subscription_item(self, subscription_id: str, **kwargs: Any) -> dict[str, Any]:
        self._record("update_subscription_item", subscription_id=subscription_id, **kwargs)
        return self.subscription

    async def set_cancel_at_period_end(self, subscription_id: str, cancel: bool) -> dict[str, Any]:
        self._record("set_cancel_at_period_end", subscription_id=subscription_id, cancel=cancel)
        return {
            "id": subscription_id,
            "status": "active",
            "cancel_at_period_end": cancel,
            "current_period_end": self.period_end,
        }

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        self._record("cancel_subscription", subscription_id=subscription_id)
        return {"id": subscription_id, "status": "canceled"}

    async def create_checkout_session(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_checkout_session", **kwargs)
        return {"id": "cs_1", "client_secret": "cs_secret_1"}

    async def list_invoices(self, customer_id: str, **kwargs: Any) -> list[dict[str, Any]]:
        self._record("list_invoices", customer_id=customer_id, **kwargs)
        return []

    async def retrieve_payment_method(self, payment_method_id: str) -> dict[str, Any]:
        self._record("retrieve_payment_method", payment_method_id=payment_method_id)
        return {"id": payment_method_id, "card": {"brand": "visa", "last4": "4242"}}

    async def attach_default_payment_method(self, customer_id: str, payment_method_id: str) -> None:
        self._record(
            "attach_default_payment_method",
            customer_id=customer_id,
            payment_method_id=payment_method_id,
        )

    async def set_subscription_payment_method(self, subscription_id: str, payment_method_id: str) -> dict:
        self._record(
            "set_subscription_payment_method",
            subscription_id=subscription_id,
            payment_method_id=payment_method_id,
        )
        return {"id": subscription_id}

    async def create_setup_intent(self, customer_id: str) -> dict[str, Any]:
        self._record("create_setup_intent", customer_id=customer_id)
        return {"client_secret": "seti_secret_1"}

    async def create_portal_session(self, customer_id: str, return_url: str) -> dict[str, Any]:
        self._record("create_portal_session", customer_id=customer_id, return_url=return_url)
        return {"url": "https://billing.stripe.com/p/session_1"}

