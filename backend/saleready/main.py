from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from pathlib import Path
import logging

from dotenv import load_dotenv

# Load environment variables (try .env.local first, then .env)
env_path = Path('.env.local')
if env_path.exists():
    load_dotenv(dotenv_path=env_path)
else:
    load_dotenv()

from saleready.api.router import api_router
from saleready.core.config import settings
from saleready.core.database import supabase_service
from saleready.core.exceptions import SaleReadyError
from saleready.core.logging_config import setup_logging
from saleready.core.error_handlers import (
    http_exception_handler,
    validation_exception_handler,
    saleready_error_handler,
    general_exception_handler,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(
        log_dir=Path(settings.LOG_DIR) if settings.LOG_DIR else None,
        level=settings.LOG_LEVEL,
        enable_json=settings.LOG_JSON,
    )
    logger.info("Starting up SaleReady backend...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")
    if not supabase_service.is_configured():
        logger.warning("Database is not configured, data endpoints will return 503")
    yield
    logger.info("Shutting down SaleReady backend...")


app = FastAPI(
    title="SaleReady Backend",
    description="Valuation, sales readiness and DCF analysis API",
    version=settings.VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add exception handlers
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(SaleReadyError, saleready_error_handler)
app.add_exception_handler(Exception, general_exception_handler)

allowed_origins = list(settings.BACKEND_CORS_ORIGINS)
if settings.SITE_URL:
    allowed_origins.append(settings.SITE_URL)

# Only allow all origins in development
if settings.ENVIRONMENT == "development" and settings.DEBUG:
    allowed_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=allowed_origins != ["*"],
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    return {
        "message": "SaleReady Backend API",
        "version": settings.VERSION,
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "services": {
            "database": "connected" if supabase_service.is_configured() else "disconnected",
            "api": "running"
        }
    }
