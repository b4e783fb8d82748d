from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.billing.gateway import StripeGateway, get_stripe_gateway_factory
from src.core.billing.tiers import TierCatalog, get_tier_catalog
from src.core.billing.webhooks import WebhookReconciler, verify_and_parse_event
from src.core.config import settings
from src.core.db import get_db_session
from src.core.repositories.billing_records import BillingRecordRepository
from src.schemas.billing import BillingWebhookResponse

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe", response_model=BillingWebhookResponse)
async def stripe_webhook(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    gateway_factory: Callable[[], StripeGateway] = Depends(get_stripe_gateway_factory),
    catalog: TierCatalog = Depends(get_tier_catalog),
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> BillingWebhookResponse:
    raw_body = await request.body()
    event = verify_and_parse_event(raw_body, stripe_signature, settings.stripe_webhook_secret)

    reconciler = WebhookReconciler(BillingRecordRepository(session), gateway_factory, catalog)
    outcome = await reconciler.handle(event)
    return BillingWebhookResponse(
        received=True,
        event_type=outcome.event_type,
        organization_id=outcome.organization_id,
        updated=outcome.updated,
    )
