from __future__ import annotations

from collections.abc import Awaitable, Callable
from uuid import UUID

from fastapi import Request
from starlette import status
from starlette.responses import JSONResponse, Response

from src.core.context import reset_current_organization_id, set_current_organization_id

ORGANIZATION_HEADER = "X-Organization-Id"


async def organization_context_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Seed the organization context from the coach dashboard's header.

    Authenticated routes overwrite it with the token's ``org_id`` claim; the
    Stripe webhook sends no header and runs without one.
    """
    organization_header = request.headers.get(ORGANIZATION_HEADER)
    organization_id: UUID | None = None
    if organization_header:
        try:
            organization_id = UUID(organization_header)
        except ValueError:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={
                    "error": "Invalid organization",
                    "details": f"{ORGANIZATION_HEADER} must be an organization UUID",
                },
            )

    token = set_current_organization_id(organization_id)
    try:
        return await call_next(request)
    finally:
        reset_current_organization_id(token)
