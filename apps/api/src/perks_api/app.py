from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from perks_api import __version__
from perks_api.core.errors import PromotionError
from perks_api.core.settings import settings
from perks_api.db.session import async_session
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing
from .workers import CouponExpiryWorker


APP_VERSION = __version__


@asynccontextmanager
async def lifespan(app: FastAPI):
    expiry_worker = CouponExpiryWorker(
        async_session,
        interval_seconds=settings.coupon_expiry_interval_seconds,
        batch_size=settings.coupon_expiry_batch_size,
    )
    app.state.coupon_expiry_worker = expiry_worker

    expiry_enabled = settings.coupon_expiry_worker_enabled
    if expiry_enabled:
        expiry_worker.start()
        logger.info(
            "Coupon expiry worker enabled",
            interval_seconds=expiry_worker.interval_seconds,
            batch_size=settings.coupon_expiry_batch_size,
        )
    else:
        logger.info(
            "Coupon expiry worker disabled",
            reason="coupon_expiry_worker_enabled is false",
        )

    try:
        yield
    finally:
        if expiry_enabled and expiry_worker.is_running:
            await expiry_worker.stop()


async def _promotion_error_handler(request: Request, exc: PromotionError) -> JSONResponse:
    log = logger.warning if exc.status_code >= 500 else logger.info
    log(
        "Promotion request rejected",
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
        context={key: str(value) for key, value in exc.context.items()},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.as_payload())


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Request validation failed", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": jsonable_encoder(exc.errors()),
            "code": "validation_error",
            "retryable": False,
        },
    )


def create_app() -> FastAPI:
    """Application factory for the perks FastAPI service."""
    configure_logging(
        service_name="perks-api",
        environment=settings.environment,
        version=APP_VERSION,
        level=settings.log_level,
    )

    app = FastAPI(
        title="Perks API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name="perks-api",
        service_version=APP_VERSION,
        environment=settings.environment,
        console_fallback=settings.tracing_console_fallback,
    )

    app.add_exception_handler(PromotionError, _promotion_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        session_user = request.headers.get("X-Session-User") or None
        with logger.contextualize(request_id=request_id, user_id=session_user):
            response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
