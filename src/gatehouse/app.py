"""FastAPI application factory for Gatehouse."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gatehouse.common.config import get_settings
from gatehouse.common.exceptions import GatehouseError
from gatehouse.common.logging import get_logger, setup_logging
from gatehouse.common.schemas import ErrorResponse, HealthResponse

logger = get_logger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        from gatehouse.deps import get_db
        db = get_db()
        await db.init()
        await db.create_all()
        yield
        # Shutdown
        from gatehouse.notifications.email_delivery import drain
        await drain(timeout=10)
        await db.close()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GatehouseError)
    async def gatehouse_error_handler(request: Request, exc: GatehouseError):
        if exc.status_code >= 500:
            logger.error(
                "Request failed",
                extra={"path": request.url.path, "code": exc.code},
                exc_info=exc,
            )
        body = ErrorResponse(error=exc.message, code=exc.code)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(version=settings.api_version)

    # Mount routers
    from gatehouse.auth.router import router as auth_router
    from gatehouse.users.router import profile_router, router as users_router
    from gatehouse.tenants.router import current_router as tenant_router
    from gatehouse.tenants.router import router as tenants_router

    prefix = settings.api_prefix
    app.include_router(auth_router, prefix=prefix, tags=["auth"])
    app.include_router(users_router, prefix=prefix, tags=["users"])
    app.include_router(profile_router, prefix=prefix, tags=["profile"])
    app.include_router(tenant_router, prefix=prefix, tags=["tenant"])
    app.include_router(tenants_router, prefix=prefix, tags=["tenants"])

    return app
