import logging
from datetime import datetime, timezone

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .app.db import initialize_schema
from .app.entitlements.exceptions import EntitlementStoreError
from .app.routes.accounts import router as accounts_router
from .app.routes.admin import router as admin_router
from .app.routes.billing import router as billing_router
from .app.routes.surveys import router as surveys_router
from .app_context import configure
from .config import load_app_config


load_dotenv()

APP_VERSION = "1.0.0"

CONFIG = load_app_config()

logger = logging.getLogger("turboniw")


def get_conn():
    return psycopg2.connect(**CONFIG.database.connect_kwargs())


configure(get_conn=get_conn, config=CONFIG)

app = FastAPI(title="TurboNIW Survey API", version=APP_VERSION)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[CONFIG.app_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(accounts_router)
app.include_router(billing_router)
app.include_router(surveys_router)
app.include_router(admin_router)


@app.exception_handler(EntitlementStoreError)
async def entitlement_store_error_handler(request: Request, exc: EntitlementStoreError) -> JSONResponse:
    logger.error("Unhandled %s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": dict(exc.payload)})


@app.on_event("startup")
def setup_schema() -> None:
    initialize_schema(get_conn)
    if not CONFIG.stripe_enabled:
        logger.warning("STRIPE_SECRET_KEY is not set; checkout endpoints will answer 503")
    if not CONFIG.webhook_enabled:
        logger.warning("STRIPE_WEBHOOK_SECRET is not set; the Stripe webhook will answer 503")


@app.get("/api/health")
def health():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": APP_VERSION,
    }
