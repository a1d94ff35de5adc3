import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from autoship.core.config import settings
from autoship.core.errors import ApiError, StoreError
from autoship.domains.addresses.router import router as addresses_router
from autoship.domains.admin.router import router as admin_router
from autoship.domains.attachments.router import router as attachments_router
from autoship.domains.identity.router import router as identity_router
from autoship.domains.orders.router import router as orders_router
from autoship.domains.payments.router import router as payments_router
from autoship.domains.quotes.router import router as quotes_router
from autoship.domains.vehicles.router import router as vehicles_router

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


app = FastAPI(title=settings.app_name)


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(request: Request, exc: RequestValidationError):
    # Helpful for debugging 422s in dev. Do not log full bodies in prod.
    # Validator errors carry the raised exception in `ctx`; encode before serializing.
    errors = jsonable_encoder(exc.errors())
    if settings.env == "dev":
        body = await request.body()
        logger.info("[422] path=%s errors=%s body=%r", request.url.path, errors, body[:500])
    return JSONResponse(status_code=422, content={"detail": errors})


@app.exception_handler(ApiError)
async def _api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StoreError)
async def _store_error_handler(request: Request, exc: StoreError):
    logger.error("store error path=%s table=%s status=%s: %s", request.url.path, exc.table, exc.status_code, exc.message)
    return JSONResponse(
        status_code=502,
        content={"detail": {"code": "STORE_UNAVAILABLE", "message": "Data service unavailable; please try again."}},
    )


# Dev CORS so a local frontend can call the API from the browser.
origins = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins if origins else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> dict:
    return {
        "ok": True,
        "service": settings.app_name,
        "env": settings.env,
        "payments_configured": bool(settings.stripe_secret_key and settings.stripe_webhook_secret),
        "maps_configured": bool(settings.google_maps_api_key),
        "local_jwt_verification": bool(settings.supabase_jwt_secret),
    }


app.include_router(identity_router, tags=["identity"])
app.include_router(orders_router, tags=["orders"])
app.include_router(quotes_router, tags=["quotes"])
app.include_router(payments_router, tags=["payments"])
app.include_router(admin_router, tags=["admin"])
app.include_router(vehicles_router, tags=["vehicles"])
app.include_router(addresses_router, tags=["addresses"])
app.include_router(attachments_router, tags=["attachments"])
