"""
Loan Tracker API Application Factory
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from .directory import router as directory_router
from .entries import router as entries_router
from .payments import router as payments_router
from .installments import router as installments_router
from .allocations import router as allocations_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Loan Tracker API",
        description="Informal loan and expense tracking with installment plans",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(directory_router, tags=["Directory"])
    app.include_router(entries_router, prefix="/entries", tags=["Entries"])
    app.include_router(payments_router, prefix="/payments", tags=["Payments"])
    app.include_router(installments_router, prefix="/installments", tags=["Installments"])
    app.include_router(allocations_router, prefix="/allocations", tags=["Allocations"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "loan_tracker_api",
            "version": __version__
        }

    return app
