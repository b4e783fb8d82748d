from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth import (
    AuthContext,
    ensure_organization_access,
    require_billing_manager,
    require_super_admin,
)
from src.core.billing.checkout import CheckoutOrchestrator
from src.core.billing.entitlements import evaluate_client_entitlement, load_billing_record
from src.core.billing.errors import InvalidRequestError, NotFoundError
from src.core.billing.gateway import StripeGateway, get_stripe_gateway
from src.core.billing.lifecycle import SubscriptionLifecycleController
from src.core.billing.snapshots import (
    current_price,
    from_timestamp,
    object_id,
    period_end,
    period_start,
)
from src.core.billing.tiers import TierCatalog, get_tier_catalog
from src.core.config import settings
from src.core.db import get_db_session
from src.core.repositories.billing_records import BillingRecordRepository
from src.core.repositories.client_accounts import ClientAccountRepository
from src.models.organization import Organization, SubscriptionStatus
from src.schemas.billing import (
    CardSummary,
    CheckoutRequest,
    CheckoutResponse,
    EntitlementResponse,
    InvoiceSummary,
    OrganizationBillingRequest,
    PortalResponse,
    ProcessorSubscription,
    SetupIntentResponse,
    SubscriptionActionRequest,
    SubscriptionActionResponse,
    SubscriptionOverviewResponse,
)

router = APIRouter(prefix="/billing", tags=["billing"])


def request_origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


async def _customer_record(records: BillingRecordRepository, organization_id: UUID) -> Organization:
    record = await records.get(organization_id)
    if record is None or not record.external_customer_id:
        raise NotFoundError("Organization has no billing customer", error="No billing account found")
    return record


def _subscription_summary(subscription: Mapping[str, Any]) -> ProcessorSubscription:
    price = current_price(subscription)
    return ProcessorSubscription(
        id=subscription["id"],
        status=subscription.get("status") or "unknown",
        current_period_start=period_start(subscription),
        current_period_end=period_end(subscription),
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
        cancel_at=from_timestamp(subscription.get("cancel_at")),
        trial_end=from_timestamp(subscription.get("trial_end")),
        price_id=price.get("id"),
        amount=price.get("unit_amount"),
        interval=(price.get("recurring") or {}).get("interval"),
    )


def _card_summary(payment_method: Any) -> CardSummary | None:
    if not isinstance(payment_method, Mapping):
        return None
    card = payment_method.get("card")
    if not card:
        return None
    return CardSummary(
        id=payment_method["id"],
        brand=card.get("brand"),
        last4=card.get("last4"),
        exp_month=card.get("exp_month"),
        exp_year=card.get("exp_year"),
    )


def _invoice_summary(invoice: Mapping[str, Any]) -> InvoiceSummary:
    return InvoiceSummary(
        id=invoice["id"],
        number=invoice.get("number"),
        status=invoice.get("status"),
        amount=invoice.get("amount_paid"),
        currency=invoice.get("currency"),
        created=from_timestamp(invoice.get("created")),
        hosted_url=invoice.get("hosted_invoice_url"),
        pdf_url=invoice.get("invoice_pdf"),
    )


@router.post("/checkout", response_model=CheckoutResponse, response_model_exclude_none=True)
async def start_checkout(
    payload: CheckoutRequest,
    request: Request,
    auth: AuthContext = Depends(require_billing_manager),
    session: AsyncSession = Depends(get_db_session),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    catalog: TierCatalog = Depends(get_tier_catalog),
) -> CheckoutResponse:
    ensure_organization_access(auth, payload.organization_id)
    orchestrator = CheckoutOrchestrator(BillingRecordRepository(session), gateway, catalog)
    result = await orchestrator.start(
        organization_id=payload.organization_id,
        tier=payload.tier,
        billing_email=payload.billing_email,
        origin=request_origin(request),
    )
    return CheckoutResponse(
        updated=result.updated or None,
        message=result.message,
        client_secret=result.client_secret,
    )


@router.get("/subscription", response_model=SubscriptionOverviewResponse)
async def get_subscription(
    organization_id: UUID = Query(...),
    auth: AuthContext = Depends(require_billing_manager),
    session: AsyncSession = Depends(get_db_session),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> SubscriptionOverviewResponse:
    ensure_organization_access(auth, organization_id)
    record = await _customer_record(BillingRecordRepository(session), organization_id)

    subscription = None
    payment_method = None
    if record.external_subscription_id:
        raw = await gateway.retrieve_subscription(
            record.external_subscription_id,
            expand=["default_payment_method", "latest_invoice"],
        )
        subscription = _subscription_summary(raw)
        payment_method = _card_summary(raw.get("default_payment_method"))

    if payment_method is None:
        customer = await gateway.retrieve_customer(record.external_customer_id)
        default_pm = object_id((customer.get("invoice_settings") or {}).get("default_payment_method"))
        if default_pm:
            payment_method = _card_summary(await gateway.retrieve_payment_method(default_pm))

    invoices = await gateway.list_invoices(record.external_customer_id, limit=10)

    # trial_ends_at means the trial end only while trialing; while canceling it is the access end.
    status_value = record.subscription_status
    return SubscriptionOverviewResponse(
        tier=record.subscription_tier,
        status=status_value,
        client_limit=record.client_limit,
        trial_ends_at=record.trial_ends_at if status_value == SubscriptionStatus.TRIALING.value else None,
        access_ends_at=record.trial_ends_at if status_value == SubscriptionStatus.CANCELING.value else None,
        subscription=subscription,
        payment_method=payment_method,
        invoices=[_invoice_summary(invoice) for invoice in invoices],
    )


@router.post("/subscription", response_model=SubscriptionActionResponse)
async def subscription_action(
    payload: SubscriptionActionRequest,
    auth: AuthContext = Depends(require_billing_manager),
    session: AsyncSession = Depends(get_db_session),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    catalog: TierCatalog = Depends(get_tier_catalog),
) -> SubscriptionActionResponse:
    ensure_organization_access(auth, payload.organization_id)
    records = BillingRecordRepository(session)

    if payload.action == "update_payment_method":
        if not payload.payment_method_id:
            raise InvalidRequestError("payment_method_id is required", error="Missing payment method")
        record = await _customer_record(records, payload.organization_id)
        await gateway.attach_default_payment_method(record.external_customer_id, payload.payment_method_id)
        if record.external_subscription_id:
            await gateway.set_subscription_payment_method(
                record.external_subscription_id, payload.payment_method_id
            )
        return SubscriptionActionResponse(success=True, message="Payment method updated")

    controller = SubscriptionLifecycleController(records, gateway, catalog)
    result = await controller.apply(payload.organization_id, payload.action)
    return SubscriptionActionResponse(
        success=True,
        message=result.message,
        subscription_status=result.subscription_status,
        cleared=result.cleared,
        period_end=result.period_end,
    )


@router.delete("/subscription", response_model=SubscriptionActionResponse)
async def terminate_subscription(
    organization_id: UUID = Query(...),
    _: AuthContext = Depends(require_super_admin),
    session: AsyncSession = Depends(get_db_session),
    gateway: StripeGateway = Depends(get_stripe_gateway),
    catalog: TierCatalog = Depends(get_tier_catalog),
) -> SubscriptionActionResponse:
    controller = SubscriptionLifecycleController(BillingRecordRepository(session), gateway, catalog)
    result = await controller.terminate(organization_id)
    return SubscriptionActionResponse(
        success=True,
        message=result.message,
        subscription_status=result.subscription_status,
    )


@router.post("/portal", response_model=PortalResponse)
async def create_portal_session(
    payload: OrganizationBillingRequest,
    auth: AuthContext = Depends(require_billing_manager),
    session: AsyncSession = Depends(get_db_session),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> PortalResponse:
    ensure_organization_access(auth, payload.organization_id)
    record = await _customer_record(BillingRecordRepository(session), payload.organization_id)
    return_url = f"{settings.portal_return_url.rstrip('/')}{settings.billing_return_path}"
    portal = await gateway.create_portal_session(record.external_customer_id, return_url)
    return PortalResponse(url=portal["url"])


@router.post("/setup-intent", response_model=SetupIntentResponse)
async def create_setup_intent(
    payload: OrganizationBillingRequest,
    auth: AuthContext = Depends(require_billing_manager),
    session: AsyncSession = Depends(get_db_session),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> SetupIntentResponse:
    ensure_organization_access(auth, payload.organization_id)
    record = await _customer_record(BillingRecordRepository(session), payload.organization_id)
    intent = await gateway.create_setup_intent(record.external_customer_id)
    return SetupIntentResponse(client_secret=intent["client_secret"])


@router.get("/entitlements", response_model=EntitlementResponse)
async def get_entitlements(
    record: Organization = Depends(load_billing_record),
    session: AsyncSession = Depends(get_db_session),
    catalog: TierCatalog = Depends(get_tier_catalog),
) -> EntitlementResponse:
    entitlements = catalog.entitlements_for(record)
    current_count = await ClientAccountRepository(session).count_active()
    decision = evaluate_client_entitlement(record, current_count)
    return EntitlementResponse(
        tier=entitlements.tier,
        subscription_status=record.subscription_status,
        client_limit=entitlements.client_limit,
        current_client_count=current_count,
        can_add_clients=decision.allowed,
        features=entitlements.features(),
    )
