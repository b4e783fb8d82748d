from src.schemas.billing import (
    BillingWebhookResponse,
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
from src.schemas.client import ClientCreateRequest, ClientResponse
from src.schemas.organization import OrganizationBillingResponse, OrganizationCreateRequest

__all__ = [
    "BillingWebhookResponse",
    "CardSummary",
    "CheckoutRequest",
    "CheckoutResponse",
    "EntitlementResponse",
    "InvoiceSummary",
    "OrganizationBillingRequest",
    "PortalResponse",
    "ProcessorSubscription",
    "SetupIntentResponse",
    "SubscriptionActionRequest",
    "SubscriptionActionResponse",
    "SubscriptionOverviewResponse",
    "ClientCreateRequest",
    "ClientResponse",
    "OrganizationBillingResponse",
    "OrganizationCreateRequest",
]
