from __future__ import annotations

import time
from dataclasses import dataclass, field
from uuid import UUID

import requests
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from src.core.config import settings
from src.core.context import set_current_organization_id

bearer_scheme = HTTPBearer(auto_error=True)

SUPER_ADMIN_ROLE = "super_admin"
BILLING_MANAGER_ROLES = frozenset({"trainer", "admin", "company_admin", SUPER_ADMIN_ROLE})


@dataclass(slots=True)
class AuthContext:
    organization_id: UUID
    subject: str
    role: str
    claims: dict = field(default_factory=dict)


class JwksCache:
    def __init__(self, ttl_seconds: int = 300) -> None:
        self.ttl_seconds = ttl_seconds
        self._jwks: dict | None = None
        self._fetched_at = 0.0

    def get(self, url: str) -> dict:
        now = time.time()
        if self._jwks is None or (now - self._fetched_at) > self.ttl_seconds:
            response = requests.get(url, timeout=5)
            response.raise_for_status()
            self._jwks = response.json()
            self._fetched_at = now
        return self._jwks


jwks_cache = JwksCache()


def _get_signing_key(token: str) -> dict:
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication header",
        ) from exc

    kid = unverified_header.get("kid")
    if not kid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="JWT is missing key id",
        )

    jwks = jwks_cache.get(settings.auth_jwks_url)
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No matching signing key found",
    )


def _decode_jwt(token: str) -> dict:
    key = _get_signing_key(token)

    options = {"verify_aud": bool(settings.auth_audience)}
    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            issuer=settings.auth_issuer,
            audience=settings.auth_audience or None,
            options=options,
        )
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc


async def require_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> AuthContext:
    claims = _decode_jwt(credentials.credentials)

    org_id = claims.get("org_id")
    subject = claims.get("sub")
    if not org_id or not subject:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token is missing required claims",
        )

    try:
        organization_id = UUID(str(org_id))
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token carries an invalid organization id",
        ) from exc

    request.state.organization_id = organization_id
    request.state.user_subject = subject
    set_current_organization_id(organization_id)

    return AuthContext(
        organization_id=organization_id,
        subject=subject,
        role=str(claims.get("role") or ""),
        claims=claims,
    )


def is_super_admin(context: AuthContext) -> bool:
    return context.role == SUPER_ADMIN_ROLE or context.subject in settings.super_admin_subjects()


async def require_billing_manager(
    context: AuthContext = Depends(require_auth_context),
) -> AuthContext:
    if context.role not in BILLING_MANAGER_ROLES and not is_super_admin(context):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Billing access requires a trainer or admin role",
        )
    return context


async def require_super_admin(
    context: AuthContext = Depends(require_auth_context),
) -> AuthContext:
    if not is_super_admin(context):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Super admin privileges required",
        )
    return context


def ensure_organization_access(context: AuthContext, organization_id: UUID) -> None:
    if context.organization_id != organization_id and not is_super_admin(context):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to manage billing for this organization",
        )
