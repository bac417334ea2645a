from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware
import logging

# Import database components
from app.database.database import create_tables

# Import routers
from app.modules.invoices.router import router as invoices_router

# Import models for table creation
import app.modules.invoices.models

from app.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Invoices Dashboard API",
    description="Form actions for creating, updating and deleting invoices",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

app.add_middleware(GZipMiddleware, minimum_size=1000)

# Include routers
app.include_router(invoices_router)

@app.get("/")
async def read_root():
    return {
        "message": "Invoices Dashboard API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }

@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}

@app.on_event("startup")
async def startup_event():
    logger.info("Invoices Dashboard API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    # Create database tables (only for development - use migrations in production)
    if settings.ENVIRONMENT == "development":
        try:
            await create_tables()
        except Exception as e:
            logger.warning(f"Table creation skipped or failed: {e}")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Invoices Dashboard API shutting down...")
