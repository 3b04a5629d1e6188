"""ServiceHub Backend API - FastAPI application."""

import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from jose import JWTError
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .errors import CredentialExpired, MarketplaceError, StoreError, translate_exception
from .logging_config import get_logger, setup_logging
from .models import ApiResponse
from .rate_limit import limiter, rate_limit_exceeded_handler
from .routes import (
    admin_router,
    auth_router,
    job_posts_router,
    price_lists_router,
    providers_router,
    reviews_router,
    services_router,
    subscriptions_router,
    users_router,
)

settings = get_settings()
setup_logging(settings.log_level)
logger = get_logger("servicehub.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info(f"Starting ServiceHub Backend API (environment={settings.environment}, debug={settings.debug})")
    yield
    logger.info("Shutting down ServiceHub Backend API")


app = FastAPI(
    title="ServiceHub Backend API",
    description="Service marketplace backend for admins, providers and customers",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Error envelope
# =============================================================================


def error_response(error: MarketplaceError, cause: Exception | None = None) -> JSONResponse:
    """Render a failure as ``{success: false, statusCode, message, errors?, stack?}``."""
    body = ApiResponse(
        success=False,
        statusCode=error.status_code,
        message=error.message,
        errors=error.errors,
    ).model_dump(exclude_none=True)

    cause = cause or error
    if not settings.is_production and cause.__traceback__ is not None:
        body["stack"] = "".join(traceback.format_exception(type(cause), cause, cause.__traceback__))

    response = JSONResponse(status_code=error.status_code, content=body)
    if isinstance(error, CredentialExpired):
        response.delete_cookie(settings.auth_cookie_name, path="/")
    return response


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} | {exc.message}")
    return error_response(exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(translate_exception(exc), exc)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    error = translate_exception(exc)
    if error.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} | store failure: {exc}")
    return error_response(error, exc)


@app.exception_handler(JWTError)
async def jwt_error_handler(request: Request, exc: JWTError):
    return error_response(translate_exception(exc), exc)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = f"Route {request.url.path} not found" if exc.status_code == 404 else str(exc.detail)
    body = ApiResponse(success=False, statusCode=exc.status_code, message=message).model_dump(exclude_none=True)
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_response(translate_exception(exc), exc)


# Include routers
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(providers_router)
app.include_router(admin_router)
app.include_router(job_posts_router)
app.include_router(subscriptions_router)
app.include_router(services_router)
app.include_router(price_lists_router)
app.include_router(reviews_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "servicehub-backend",
        "version": "0.1.0",
        "status": "ok",
    }


@app.get("/health")
async def health():
    return {"status": "healthy", "storage": settings.storage_backend}
