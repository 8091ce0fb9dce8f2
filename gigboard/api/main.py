"""Gigboard API - FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from gigboard import __version__
from gigboard.api.context import AppContext, build_context
from gigboard.api.rate_limit import limiter
from gigboard.api.routes import auth_router, bids_router, gigs_router, maintenance_router, notifications_router
from gigboard.config import get_settings
from gigboard.errors import MarketplaceError
from gigboard.logging_config import configure_logging, get_logger
from gigboard.market.common import new_id

logger = get_logger("gigboard.api")

API_PREFIX = "/api"


def _describe_validation_error(error: dict) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    message = error.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed | error={exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = ", ".join(_describe_validation_error(e) for e in exc.errors())
    return JSONResponse(status_code=400, content={"detail": f"Validation failed: {details}"})


def create_app(context: AppContext | None = None) -> FastAPI:
    """Build the application around ``context`` (or one built from settings)."""
    ctx = context or build_context()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(ctx.settings.log_level)
        logger.info(f"Starting Gigboard API | version={__version__} | backend={ctx.settings.storage_backend}")
        yield
        await ctx.dispatcher.drain()
        logger.info("Shutting down Gigboard API")

    app = FastAPI(
        title="Gigboard API",
        description="Gig marketplace: post gigs, bid, hire exactly one freelancer",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.context = ctx

    # Rate limiting
    app.state.limiter = limiter
    app.state.rate_limit_namespace = new_id()
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ctx.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router, prefix=API_PREFIX)
    app.include_router(gigs_router, prefix=API_PREFIX)
    app.include_router(bids_router, prefix=API_PREFIX)
    app.include_router(maintenance_router, prefix=API_PREFIX)
    app.include_router(notifications_router)

    @app.get("/")
    async def root():
        return {
            "service": "gigboard",
            "version": __version__,
            "status": "ok",
        }

    @app.get("/health")
    async def health():
        """Health check with an actual storage round-trip."""
        storage_status = "connected"
        try:
            await ctx.gigs.list(limit=1)
        except Exception as e:
            storage_status = f"error: {str(e)[:50]}"
        return {
            "status": "healthy" if storage_status == "connected" else "degraded",
            "storage": storage_status,
            "backend": ctx.settings.storage_backend,
        }

    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(), host="0.0.0.0", port=8000, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
