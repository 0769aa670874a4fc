"""
Social Graph API - entry point.

Startup sequence:
  1. Configure OTel tracing (→ Jaeger via OTLP), if enabled
  2. Build the Store (async engine + pool)
  3. Create tables if not present
  4. Wire the core components around the store
  5. Expose Prometheus /metrics endpoint
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from socialgraph.config import Settings, settings as default_settings
from socialgraph.core import SocialGraph
from socialgraph.database import Store
from socialgraph.errors import SocialGraphError
from socialgraph.routers import comments, feed, posts, users
from socialgraph.telemetry import instrument_app, setup_tracing

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, clock=None) -> FastAPI:
    settings = settings or default_settings

    if settings.tracing_enabled:
        # Set up tracing before the app is created so all imports are instrumented
        setup_tracing(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Own the store for the lifetime of the process."""
        logger.info("Starting Social Graph API (env=%s)", settings.environment)

        store = Store.from_settings(settings)
        await store.init_db()
        app.state.core = SocialGraph.build(
            store, clock=clock, max_page_size=settings.max_page_size
        )

        logger.info("Store connected. API ready.")
        yield

        logger.info("Shutting down...")
        await store.dispose()

    app = FastAPI(
        title="Social Graph API",
        description=(
            "Follow graph, denormalized counters and fan-out-on-read feed."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.exception_handler(SocialGraphError)
    async def social_graph_error(request: Request, exc: SocialGraphError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    # ── Routers ────────────────────────────────────────────────────────────
    app.include_router(users.router, prefix="/users", tags=["Users"])
    app.include_router(posts.router, prefix="/posts", tags=["Posts"])
    app.include_router(comments.router, prefix="/comments", tags=["Comments"])
    app.include_router(feed.router, prefix="/feed", tags=["Feed"])

    # ── Prometheus metrics endpoint ────────────────────────────────────────
    app.mount("/metrics", make_asgi_app())

    if settings.tracing_enabled:
        instrument_app(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "service": settings.service_name}

    return app


app = create_app()
