from __future__ import annotations

import logging
from typing import Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from subgate.core.logging import setup_logging
from subgate.core.settings import S
from subgate.core.tables import Tables, build_tables
from subgate.metrics import metrics_endpoint, metrics_middleware, set_app_info
from subgate.routers.callbacks import router as callbacks_router
from subgate.routers.checkout import router as checkout_router
from subgate.routers.misc import router as misc_router
from subgate.routers.pricing import router as pricing_router
from subgate.routers.subscription import router as subscription_router
from subgate.services.payment_provider import PaymentProvider
from subgate.services.providers import build_providers
from subgate.services.subscriptions import SubscriptionWriteConflict

logger = logging.getLogger(__name__)


async def store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Store failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error."})


def create_app(
    tables: Optional[Tables] = None,
    providers: Optional[Dict[str, PaymentProvider]] = None,
) -> FastAPI:
    setup_logging(S.log_level)
    app = FastAPI(title="Subscription Gate", version="0.1.0")
    app.state.tables = tables or build_tables(S)
    app.state.providers = providers or build_providers(S)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    if S.metrics_enabled:
        app.middleware("http")(metrics_middleware)
        set_app_info(app.title, app.version)
        app.get("/metrics")(metrics_endpoint)

    for exc_type in (ClientError, BotoCoreError, SubscriptionWriteConflict):
        app.add_exception_handler(exc_type, store_error_handler)

    app.include_router(misc_router)
    app.include_router(subscription_router)
    app.include_router(pricing_router)
    app.include_router(checkout_router)
    app.include_router(callbacks_router)

    return app

app = create_app()
