"""FastAPI main application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orchestra.api.v1 import auth, users
from orchestra.config import settings
from orchestra.core.database import close_db, init_db
from orchestra.core.logging_config import setup_logging
from orchestra.crud.user import ConflictError
from orchestra.middleware.error_handler import ErrorHandlerMiddleware
from orchestra.middleware.request_logging import RequestLoggingMiddleware
from orchestra.schemas.auth import OAuth2ErrorResponse
from orchestra.services.accesstoken import InvalidAccessTokenError
from orchestra.services.oauth2.exceptions import OAuth2AuthenticationError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging()
    logger.info("Starting %s %s (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)

    await init_db()

    yield

    await close_db()
    logger.info("%s shutdown complete", settings.APP_NAME)


# Disable interactive API docs in production to reduce attack surface
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Authorization"],
)

app.add_middleware(ErrorHandlerMiddleware)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(InvalidAccessTokenError)
async def invalid_access_token_handler(request: Request, exc: InvalidAccessTokenError):
    # The cause (expired, bad signature...) stays in the logs
    logger.info("Rejected access token on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": "Invalid or expired token"},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(OAuth2AuthenticationError)
async def oauth2_authentication_handler(request: Request, exc: OAuth2AuthenticationError):
    logger.info("OAuth2 authentication failed on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=OAuth2ErrorResponse(error=exc.error_code).model_dump(),
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    logger.warning("Conflict on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": "The resource was modified concurrently, please retry"},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.debug("Validation error on %s: %s", request.url, exc.errors())
    return JSONResponse(
        status_code=422,
        content={"detail": [{"loc": e.get("loc"), "msg": e.get("msg")} for e in exc.errors()]},
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
