"""
FastAPI Application Entry Point.

This is the main application file for the Gym Payment Ledger.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, HTTPException, Query
from fastapi.exceptions import RequestValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from gym_ledger.app.core.config import settings
from gym_ledger.app.api.v1.router import router as api_v1_router
from gym_ledger.app.core.jwt import create_access_token
from gym_ledger.app.core.observability import ObservabilityMiddleware, configure_logging
from gym_ledger.app.db.session import engine, Base, get_db
from gym_ledger.app.core.exceptions import (
    AppException,
    NotFoundError,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from gym_ledger.app.models.member import Member
from gym_ledger.app.models.staff import Staff
from gym_ledger.app.models.membership_type import MembershipType
from gym_ledger.app.models.pt_package import PTPackage
from gym_ledger.app.models.payment import Payment
from gym_ledger.app.models.payment_item import PaymentItem
from gym_ledger.app.models.membership_history import MembershipHistory
from gym_ledger.app.models.pt_membership import PTMembership
from gym_ledger.app.models.locker_assignment import LockerAssignment
from gym_ledger.app.models.refund import Refund
from gym_ledger.app.models.payment_history import PaymentHistory


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging.
    2. Creates database tables on startup.
    """
    configure_logging(settings.log_level)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Payment and refund ledger for the gym CRM",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Gym Payment Ledger API",
        "docs": "/docs",
        "health": "/health",
    }


# Development token endpoint
@app.post("/auth/staff-token", tags=["Authentication"])
async def generate_staff_token(
    staff_id: int = Query(..., description="Existing staff ID"),
    db: AsyncSession = Depends(get_db)
):
    """
    Mint a bearer token for an existing staff member.

    For local development and testing only; hidden unless settings.debug is on.
    """
    if not settings.debug:
        raise HTTPException(status_code=404, detail="Not Found")

    staff = await db.get(Staff, staff_id)
    if not staff:
        raise NotFoundError("Staff", staff_id)

    token = create_access_token(data={"sub": staff.staff_number, "staff_id": staff.id})
    return {
        "access_token": token,
        "token_type": "bearer",
        "staff_id": staff.id,
        "staff_number": staff.staff_number,
    }
