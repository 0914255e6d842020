import importlib
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import sentry_sdk
from fastapi import FastAPI, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

from eventpass.config import settings
from eventpass.logging_setup import TRACE_ID_CTX, setup_logging
from eventpass.services.container import Services, build_services


# List of module names to include as routers
MODULES = [
    "payments",
    "tickets",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    owned = app.state.services is None
    if owned:
        from eventpass.db.session import async_session
        from eventpass.redis_client import redis_client

        app.state.services = await build_services(settings, async_session, redis_client)
    yield
    if owned:
        await app.state.services.aclose()


def create_app(services: Optional[Services] = None) -> FastAPI:
    """Build the ASGI app; pass `services` to run against substitute collaborators."""
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.services = services

    if settings.SENTRY_DSN:
        app.add_middleware(SentryAsgiMiddleware)

    @app.middleware("http")
    async def add_trace_id(request: Request, call_next):
        trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
        TRACE_ID_CTX.set(trace_id)
        response = await call_next(request)
        response.headers["X-Trace-Id"] = trace_id
        return response

    for mod in MODULES:
        pkg = importlib.import_module(f"eventpass.modules.{mod}.router")
        app.include_router(pkg.router, prefix=f"/{mod}")

    @app.get("/")
    async def root():
        return {"app": settings.APP_NAME, "status": "ok"}

    @app.get("/metrics")
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    async def health(request: Request):
        svc: Services = request.app.state.services
        storage = await svc.identities.ping()
        return {
            "status": "ok",
            "storage": "connected" if storage else "disconnected",
            "time": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/ready")
    async def ready(request: Request):
        svc: Services = request.app.state.services
        if not await svc.identities.ping():
            return Response(status_code=503, content="redis unavailable")
        if not await svc.database_ready():
            return Response(status_code=503, content="database unavailable")
        return {"status": "ready"}

    return app


# initialize logging and Sentry
setup_logging(settings.LOG_LEVEL)
if settings.SENTRY_DSN:
    sentry_sdk.init(dsn=settings.SENTRY_DSN)

app = create_app()
