import uvicorn
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from autoclaim.main.config import get_settings
from autoclaim.main.logging import get_logger
from autoclaim.main.models import VersionResponse
from autoclaim.server import api_documentation
from autoclaim.server.dependencies.lifespan import lifespan
from autoclaim.server.exception_handlers import add_exception_handlers
from autoclaim.server.routers import router as api_router

logger = get_logger(__name__)


def get_application():
    app = FastAPI(lifespan=lifespan)

    app.include_router(api_router, prefix=get_settings().api_prefix)

    # Add handlers of all errors except 500
    add_exception_handlers(app)

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema

        app.openapi_schema = get_openapi(
            title=api_documentation.TITLE,
            version=get_settings().app_version,
            description=api_documentation.SUMMARY,
            tags=api_documentation.TAGS_METADATA,
            routes=app.routes,
        )
        return app.openapi_schema

    app.openapi = custom_openapi

    @app.get("/api/healthz")
    async def get_healthz():
        return {"status": "HEALTHY"}

    @app.get("/version", response_model=VersionResponse)
    async def get_version():
        return VersionResponse(version=get_settings().app_version)

    return app


app = get_application()


def start():
    settings = get_settings()
    logger.info(f"Serving auto-claim API on {settings.server_host}:{settings.server_port}")
    uvicorn.run(
        "autoclaim.server.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.dev,
    )
