from fastapi import APIRouter

from app.api.routes.account import router as account_router
from app.api.routes.auth import router as auth_router
from app.api.routes.dashboard import router as dashboard_router
from app.api.routes.health import router as health_router
from app.api.routes.vesting import router as vesting_router

api_router = APIRouter(prefix="/api")
api_router.include_router(health_router)
api_router.include_router(auth_router)
api_router.include_router(account_router)
api_router.include_router(vesting_router)

__all__ = ["api_router", "dashboard_router"]
