"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from gym_ledger.app.api.v1.endpoints import payments, refunds

router = APIRouter()

# Payment ledger
router.include_router(payments.router)
router.include_router(payments.member_router)

# Refund workflow
router.include_router(refunds.router)
