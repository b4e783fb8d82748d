import logging

from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from src.api.middleware import organization_context_middleware
from src.api.routes.billing import router as billing_router
from src.api.routes.clients import router as clients_router
from src.api.routes.organizations import router as organizations_router
from src.api.routes.webhooks import router as webhooks_router
from src.core.billing.errors import BillingError
from src.core.config import settings

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Coaching Platform Billing")
app.middleware("http")(organization_context_middleware)
app.include_router(organizations_router, prefix="/api/v1")
app.include_router(billing_router, prefix="/api/v1")
app.include_router(clients_router, prefix="/api/v1")
app.include_router(webhooks_router, prefix="/api/v1")


@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError) -> JSONResponse:
    logger.info("Billing request %s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    return {"status": "ok"}
