import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from shared.logging_config import RequestLoggingMiddleware, setup_logging
from shared.security_config import SecurityHeadersMiddleware, setup_rate_limiting
from shared.utils import (
    AppException, ErrorResponse, HealthResponse, Settings, create_engine_from_settings, create_session_factory,
    settings, utcnow,
)
from storefront.cart import CartTokenStore
from storefront.deps import Services
from storefront.models import init_models
from storefront.routes import account, admin, auth, cart, catalog, content

SERVICE_NAME = "storefront"
VERSION = "1.0.0"

logger = logging.getLogger(SERVICE_NAME)


async def app_exception_handler(request: Request, exc: AppException):
    extra = {
        "request_id": getattr(request.state, "request_id", None),
        "method": request.method,
        "path": request.url.path,
        "status_code": exc.status_code,
        "details": exc.context,
    }
    if exc.status_code >= 500:
        logger.error(exc.detail, extra=extra)
    else:
        logger.warning(exc.detail, extra=extra)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.detail, details=exc.context).model_dump(mode="json"),
        headers=exc.headers,
    )


def create_app(config: Settings = settings) -> FastAPI:
    setup_logging(SERVICE_NAME, config.LOG_LEVEL)

    engine = create_engine_from_settings(config)
    session_factory = create_session_factory(engine)

    app = FastAPI(title="Storefront", version=VERSION)
    app.state.config = config
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.services = Services(session_factory, config)
    app.state.cart_store = CartTokenStore(config)

    # Security Setup
    setup_rate_limiting(app)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware, service_name=SERVICE_NAME)

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AppException, app_exception_handler)

    @app.on_event("startup")
    async def startup_db():
        await init_models(engine)
        logger.info("Storefront started", extra={"action": "startup"})

    @app.on_event("shutdown")
    async def shutdown_db():
        await engine.dispose()

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            db_status = "connected"
        except SQLAlchemyError:
            logger.error("Health check failed", exc_info=True)
            db_status = "disconnected"

        if db_status != "connected":
            raise AppException(status.HTTP_503_SERVICE_UNAVAILABLE, f"Service Unhealthy: DB={db_status}")

        return HealthResponse(
            service=SERVICE_NAME,
            status="healthy",
            timestamp=utcnow(),
            version=VERSION,
            database=db_status,
        )

    for module in (auth, account, catalog, cart, content, admin):
        app.include_router(module.router)

    return app


app = create_app()
