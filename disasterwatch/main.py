import uuid
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from disasterwatch import config
from disasterwatch.agents.llm import close_generation_services
from disasterwatch.logging import bind_request_id, configure_logging
from disasterwatch.routes.dashboard import router as dashboard_router
from disasterwatch.routes.feed import router as feed_router
from disasterwatch.store import DashboardStore

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_generation_services()
    logger.info("app_shutdown")


def create_app(store: Optional[DashboardStore] = None) -> FastAPI:
    """Build the API around one dashboard store (a fresh one unless given)."""
    configure_logging(json_logs=config.JSON_LOGS, log_level=config.LOG_LEVEL)

    app = FastAPI(title="DisasterWatch AI", lifespan=lifespan)
    app.state.store = store or DashboardStore()
    app.include_router(dashboard_router)
    app.include_router(feed_router)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id", str(uuid.uuid4()))
        bind_request_id(request_id)
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "provider": config.GENERATION_PROVIDER,
            "credential_present": config.get_gemini_api_key() is not None,
        }

    logger.info("app_created", provider=config.GENERATION_PROVIDER)
    return app


app = create_app()
