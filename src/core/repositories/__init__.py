from src.core.repositories.base import OrganizationContextMissingError, OrganizationRepository
from src.core.repositories.billing_records import BillingRecordRepository, BillingRecordStore
from src.core.repositories.client_accounts import ClientAccountRepository

__all__ = [
    "OrganizationContextMissingError",
    "OrganizationRepository",
    "BillingRecordRepository",
    "BillingRecordStore",
    "ClientAccountRepository",
]
