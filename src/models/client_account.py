from __future__ import annotations

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import OrganizationScopedBase


class ClientAccount(OrganizationScopedBase):
    __tablename__ = "client_accounts"
    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_client_accounts_organization_email"),
    )

    email: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
