"""STILLHOUSE LEDGER - FastAPI Application.

Bulk spirit inventory: containers, physical operations and the audit ledger.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stillhouse.api import container_kinds, containers, conversions, transactions
from stillhouse.core.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.CREATE_TABLES_ON_STARTUP:
        from stillhouse.db.session import create_tables

        await create_tables()
        logger.info("Database tables created")
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="STILLHOUSE LEDGER - Bulk spirit inventory and transaction ledger",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(container_kinds.router)
app.include_router(containers.router)
app.include_router(transactions.router)
app.include_router(conversions.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "service": "STILLHOUSE LEDGER",
        "version": "1.0.0",
        "status": "operational",
    }


@app.get("/health")
async def health():
    return {"status": "healthy"}
