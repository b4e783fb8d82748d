from __future__ import annotations

import re
import time
from datetime import timedelta

from src.core.billing.tiers import TierCatalog
from src.core.config import settings
from src.core.repositories.billing_records import BillingRecordRepository
from src.models.base import utcnow
from src.models.organization import Organization, SubscriptionStatus

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:50] or "organization"


async def provision_organization(
    records: BillingRecordRepository,
    catalog: TierCatalog,
    *,
    name: str,
    owner_subject: str | None = None,
) -> Organization:
    """Create an organization on a full-access trial."""
    slug = slugify(name)
    if await records.get_by_slug(slug) is not None:
        slug = f"{slug}-{_base36(int(time.time() * 1000))}"

    trial_tier = catalog.profile(settings.default_trial_tier)
    record = await records.create(
        name=name,
        slug=slug,
        owner_subject=owner_subject,
        subscription_status=SubscriptionStatus.TRIALING.value,
        subscription_tier=trial_tier.tier,
        client_limit=trial_tier.client_limit,
        trial_ends_at=utcnow() + timedelta(days=settings.trial_period_days),
    )
    await records.commit()
    return record
