"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.admin import router as admin_router
from .api.auth import router as auth_router
from .api.certificates import router as certificates_router
from .api.dashboard import router as dashboard_router
from .api.modules import router as modules_router
from .api.quizzes import router as quizzes_router
from .api.rgpd import router as rgpd_router
from .core.config import settings
from .core.database import init_db
from .core.errors import AppError
from .core.rate_limit import build_rate_limiter
from .middleware.edge_auth import EdgeAuthMiddleware
from .middleware.rate_limit import RateLimitMiddleware
from .middleware.security import SecurityHeadersMiddleware

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")
    init_db()
    logger.info("Database initialized")
    yield
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url=None if settings.is_production() else "/docs",
    redoc_url=None if settings.is_production() else "/redoc",
    lifespan=lifespan,
)

# Middleware is added innermost first; SecurityHeaders ends up outermost.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(
    EdgeAuthMiddleware,
    secret=settings.jwt_secret(),
    protected_paths=settings.EDGE_PROTECTED_PATHS,
    admin_paths=settings.EDGE_ADMIN_PATHS,
    cookie_name=settings.AUTH_COOKIE_NAME,
)
app.state.rate_limiter = None
if settings.RATE_LIMIT_ENABLED:
    app.state.rate_limiter = build_rate_limiter(settings)
    app.add_middleware(
        RateLimitMiddleware,
        limiter=app.state.rate_limiter,
        trust_proxy_headers=settings.TRUST_PROXY_HEADERS,
    )
app.add_middleware(SecurityHeadersMiddleware)


# Exception handlers
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.detail,
                "type": "http_error",
                "status_code": exc.status_code
            }
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "message": "Validation error",
                "type": "validation_error",
                "status_code": status.HTTP_400_BAD_REQUEST,
                "details": jsonable_encoder(exc.errors(), custom_encoder={Exception: str}),
            }
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    error = {
        "message": "An internal error occurred",
        "type": "internal_error",
        "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR
    }
    if settings.DEBUG and not settings.is_production():
        error["debug"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": error})


@app.get("/health", tags=["Health"])
def health_check():
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }


app.include_router(auth_router, prefix=f"{settings.API_PREFIX}/auth", tags=["auth"])
app.include_router(modules_router, prefix=f"{settings.API_PREFIX}/modules", tags=["modules"])
app.include_router(quizzes_router, prefix=f"{settings.API_PREFIX}/quiz", tags=["quiz"])
app.include_router(certificates_router, prefix=f"{settings.API_PREFIX}/certificates", tags=["certificates"])
app.include_router(admin_router, prefix=f"{settings.API_PREFIX}/admin", tags=["admin"])
app.include_router(rgpd_router, prefix=f"{settings.API_PREFIX}/rgpd", tags=["rgpd"])
app.include_router(dashboard_router, tags=["dashboard"])
