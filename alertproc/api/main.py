import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from alertproc.api.routes_alerts import router as alerts_router
from alertproc.api.routes_health import router as health_router
from alertproc.api.routes_metrics import router as metrics_router
from alertproc.core.config import settings
from alertproc.core.errors import register_error_handlers
from alertproc.core.logger import init_logging
from alertproc.core.monitoring import init_monitoring

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Close the shared Redis pool used by the event publisher
    from alertproc.db.redis_client import close_redis_pool
    close_redis_pool()


def create_app() -> FastAPI:
    init_logging()
    init_monitoring()

    is_production = settings.ENV.lower() == "prod"
    app = FastAPI(
        title=settings.APP_NAME,
        debug=False,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
        lifespan=lifespan,
    )
    register_error_handlers(app)
    app.include_router(alerts_router, tags=["alerts"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(health_router)
    logger.info("Alert processor app created | env=%s", settings.ENV)
    return app


app = create_app()
