"""Central router that includes all sub-routers."""

from fastapi import APIRouter

from app.api.work_orders import router as work_orders_router
from app.api.points import router as points_router
from app.api.admin import router as admin_router
from app.api.websocket import router as websocket_router

api_router = APIRouter()
api_router.include_router(work_orders_router)
api_router.include_router(points_router)
api_router.include_router(admin_router)
api_router.include_router(websocket_router)
