from src.core.billing.checkout import CheckoutOrchestrator, CheckoutResult
from src.core.billing.entitlements import (
    ClientEntitlement,
    enforce_client_limit,
    evaluate_client_entitlement,
    get_current_entitlements,
    require_feature,
)
from src.core.billing.errors import (
    BillingError,
    InvalidRequestError,
    NotFoundError,
    ProcessorError,
    SignatureInvalidError,
)
from src.core.billing.gateway import StripeGateway, get_stripe_gateway
from src.core.billing.lifecycle import LifecycleResult, SubscriptionLifecycleController
from src.core.billing.tiers import TierCatalog, TierProfile, get_tier_catalog
from src.core.billing.webhooks import WebhookOutcome, WebhookReconciler, verify_and_parse_event

__all__ = [
    "BillingError",
    "InvalidRequestError",
    "NotFoundError",
    "ProcessorError",
    "SignatureInvalidError",
    "CheckoutOrchestrator",
    "CheckoutResult",
    "ClientEntitlement",
    "enforce_client_limit",
    "evaluate_client_entitlement",
    "get_current_entitlements",
    "require_feature",
    "StripeGateway",
    "get_stripe_gateway",
    "LifecycleResult",
    "SubscriptionLifecycleController",
    "TierCatalog",
    "TierProfile",
    "get_tier_catalog",
    "WebhookOutcome",
    "WebhookReconciler",
    "verify_and_parse_event",
]
