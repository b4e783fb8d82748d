from src.models.base import Base, EntityBase, OrganizationScopedBase
from src.models.client_account import ClientAccount
from src.models.organization import UNLIMITED_CLIENTS, Organization, SubscriptionStatus

__all__ = [
    "Base",
    "EntityBase",
    "OrganizationScopedBase",
    "Organization",
    "SubscriptionStatus",
    "UNLIMITED_CLIENTS",
    "ClientAccount",
]
