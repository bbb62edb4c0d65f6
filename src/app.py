from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.infra.config.settings import settings
from src.core.logger.logger import logger
from src.core.dependencies import get_chain_client
from src.api.router import health, auth, vote, user
from src.api.middleware.security.rate_limiter import RateLimitMiddleware
from src.api.middleware.logging.request_logging import RequestLoggingMiddleware
from src.core.exceptions.handler import ServiceError, GlobalErrorHandler


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting API Gateway",
        extra={
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "store_backend": settings.STORE_BACKEND,
            "collection_id_scheme": settings.COLLECTION_ID_SCHEME
        }
    )
    yield
    if get_chain_client.cache_info().currsize:
        await get_chain_client().close()
    logger.info(
        "Shutting down API Gateway",
        extra={"service": settings.APP_NAME, "version": settings.APP_VERSION}
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="""
Token-gated community API.

## Services
- **Authentication**: Solana wallet sign-in with one-time nonces
- **Votes**: Up/down votes on posts and comments, gated by token ownership
- **Holdings**: Fungible token and NFT collection snapshot per wallet
- **Profile**: User name settings

## Authentication
All user endpoints require JWT Bearer token authentication.
        """,
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=600,  # 10 minutes
    )

    # Rate limiting middleware
    app.add_middleware(RateLimitMiddleware)

    # Request logging middleware (added last so it wraps everything else)
    app.add_middleware(RequestLoggingMiddleware)

    # Centralized error handlers
    app.add_exception_handler(ServiceError, GlobalErrorHandler.service_error_handler)
    app.add_exception_handler(StarletteHTTPException, GlobalErrorHandler.http_exception_handler)
    app.add_exception_handler(RequestValidationError, GlobalErrorHandler.validation_error_handler)
    app.add_exception_handler(Exception, GlobalErrorHandler.general_exception_handler)

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(auth.router, prefix="/api/v1")
    app.include_router(vote.router, prefix="/api/v1")
    app.include_router(user.router, prefix="/api/v1")

    return app
