"""
Land Sales Ledger API - Main Application.

FastAPI application with CORS enabled for frontend communication.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from repositories.client import load_settings

logging.basicConfig(
    level=load_settings().log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

# Create FastAPI application
app = FastAPI(
    title="Land Sales Ledger API",
    description="REST API for land parcel sales, installments and financial reporting",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS - Allow all origins for development
# TODO: Restrict origins to the back-office frontend host in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "land-sales-ledger-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Land Sales Ledger API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import installments, reports, sales

app.include_router(sales.router, prefix="/api/v1", tags=["Sales"])
app.include_router(installments.router, prefix="/api/v1", tags=["Installments"])
app.include_router(reports.router, prefix="/api/v1", tags=["Reports"])
