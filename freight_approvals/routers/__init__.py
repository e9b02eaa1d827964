from fastapi import APIRouter

from freight_approvals.routers import (
    approval_notifications,
    approval_settings,
    approvals,
    fee,
    role,
    supplier,
    user,
)

api_router = APIRouter()
api_router.include_router(approvals.router)
api_router.include_router(approval_settings.router)
api_router.include_router(approval_notifications.router)
api_router.include_router(user.router)
api_router.include_router(role.router)
api_router.include_router(supplier.router)
api_router.include_router(fee.router)

__all__ = ["api_router"]
