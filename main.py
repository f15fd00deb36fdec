"""
Fund Ledger - FastAPI Application Entry Point

This is the main entry point for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fundledger import __version__
from fundledger.config import settings
from fundledger.database import init_db, close_db, async_session_factory
from fundledger.utils.error_handling import setup_exception_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def seed_fund_accounts():
    """Make sure the configured fund accounts exist on startup."""
    from fundledger.services.fund_account_service import FundAccountService

    async with async_session_factory() as session:
        accounts, created = await FundAccountService(session).initialize_defaults()
        if created:
            logger.info(f"Initialized fund accounts: {', '.join(a.fund_type for a in accounts)}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name}...")
    logger.info(f"Environment: {settings.app_env}")

    # Initialize database (dev only - use migrations in production)
    if settings.is_development:
        await init_db()
        logger.info("Database tables initialized")

    try:
        await seed_fund_accounts()
    except Exception as e:
        logger.warning(f"Fund account seeding skipped: {e}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="Petty cash and bank fund ledger with recurring billing",
    version=__version__,
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url="/api/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Error handlers
setup_exception_handlers(app)


# ===========================================
# API ROUTES
# ===========================================

@app.get("/api")
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "status": "running",
        "environment": settings.app_env,
        "api_docs": "/api/docs" if settings.is_development else "disabled",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


from fundledger.routers import funds, expenses, transactions, recurring

app.include_router(funds.router, prefix="/api/v1", tags=["Funds"])
app.include_router(expenses.router, prefix="/api/v1", tags=["Expenses"])
app.include_router(transactions.router, prefix="/api/v1", tags=["Transactions"])
app.include_router(recurring.router, prefix="/api/v1", tags=["Recurring Payments"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
    )
