import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.v1.router import v1_router
from app.core.config import get_settings
from app.core.errors import ArchiveError, to_http
from app.core.logging import configure_logging
from app.core.middleware import RequestIdMiddleware

logger = logging.getLogger(__name__)


async def archive_error_handler(request: Request, exc: ArchiveError) -> JSONResponse:
    # routers map their own errors; this catches anything that slipped past them
    http = to_http(exc)
    logger.warning("[app] unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(status_code=http.status_code, content={"detail": http.detail})


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )
    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)
    app.add_exception_handler(ArchiveError, archive_error_handler)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    logger.info("[app] %s started env=%s prefix=%s", settings.app_name, settings.environment, settings.api_prefix)
    return app


app = create_app()
