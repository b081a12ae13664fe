"""
NexusHR reference backend.

A small FastAPI service exposing the three record collections the client
syncs against. Run it with:

    uvicorn --factory nexushr.server.main:create_app
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Union

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from nexushr.core.config import Config, load_settings
from nexushr.core.exceptions import AppException
from nexushr.core.logging import correlation_scope, setup_logging
from nexushr.core.schemas import ApiResponse, ErrorInfo
from nexushr.database import make_engine, make_session_factory
from nexushr.server.models import ServerBase
from nexushr.server.routes import router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Config] = None, database_url: Optional[str] = None) -> FastAPI:
    if settings is None:
        settings = load_settings()
        setup_logging(settings.log_level)

    engine = make_engine(database_url or settings.server_database_url)
    ServerBase.metadata.create_all(bind=engine)

    app = FastAPI(
        title=f"{settings.app_name} Backend",
        version=settings.version,
        description="Record store for NexusHR clients",
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = make_session_factory(engine)
    logger.info(f"Backend ready ({settings.environment}, v{settings.version})")

    # ========================================================================
    # MIDDLEWARE
    # ========================================================================
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        header = settings.request_id_header
        with correlation_scope(request.headers.get(header)) as correlation_id:
            response = await call_next(request)
        response.headers[header] = correlation_id
        return response

    # ========================================================================
    # EXCEPTION HANDLERS
    # ========================================================================
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            field = error["loc"][-1] if len(error["loc"]) > 0 else "unknown"
            errors.append(ErrorInfo(code="VALIDATION_ERROR", msg=error["msg"], field=str(field)))
        logger.warning(f"Validation Error: {[e.msg for e in errors]}")
        return JSONResponse(
            status_code=422,
            content=ApiResponse(success=False, errors=errors).to_dict()
        )

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        logger.warning(f"AppException: {exc.message}", extra={"code": exc.error_code})
        return JSONResponse(
            status_code=exc.status_code,
            content=ApiResponse.fail(exc.message, code=exc.error_code).to_dict()
        )

    @app.exception_handler(StarletteHTTPException)
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: Union[HTTPException, StarletteHTTPException]):
        return JSONResponse(
            status_code=exc.status_code,
            content=ApiResponse.fail(exc.detail if isinstance(exc.detail, str) else "Request failed").to_dict()
        )

    # ========================================================================
    # ROUTES
    # ========================================================================
    app.include_router(router)

    @app.get("/health", tags=["Health"])
    def health_check():
        """Liveness probe used by clients to detect connectivity."""
        return {
            "status": "up",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": settings.version,
            "environment": settings.environment,
        }

    return app
