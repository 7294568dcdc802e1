"""
Loan Management API Application Factory
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import LoanConfig, get_config
from ..logging_config import setup_logging
from .auth import LoanSystem
from .login import router as login_router
from .customers import router as customers_router
from .loans import router as loans_router
from .repayments import router as repayments_router
from .payments import router as payments_router
from .users import router as users_router
from .reports import router as reports_router
from .audit import router as audit_router


def create_app(system: Optional[LoanSystem] = None,
               config: Optional[LoanConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application"""
    config = config or (system.config if system else get_config())
    setup_logging(config.log_level, config.log_format)

    app = FastAPI(
        title="Loan Management System API",
        description="Customers, loans, repayment schedules, payments and reports",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.system = system or LoanSystem(config=config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(login_router, prefix="/api/auth", tags=["Auth"])
    app.include_router(customers_router, prefix="/api/customers", tags=["Customers"])
    app.include_router(loans_router, prefix="/api/loans", tags=["Loans"])
    app.include_router(repayments_router, prefix="/api/repayments", tags=["Repayments"])
    app.include_router(payments_router, prefix="/api/payments", tags=["Payments"])
    app.include_router(users_router, prefix="/api/users", tags=["Users"])
    app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])
    app.include_router(audit_router, prefix="/api/audit", tags=["Audit"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "loan_management_api",
            "version": __version__
        }

    # Root endpoint
    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Loan Management System API",
            "version": __version__,
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "auth": "/api/auth",
                "customers": "/api/customers",
                "loans": "/api/loans",
                "repayments": "/api/repayments",
                "payments": "/api/payments",
                "users": "/api/users",
                "reports": "/api/reports",
                "audit": "/api/audit",
            }
        }

    return app
