from fastapi import APIRouter

from app.api.v1.brand_monitor import router as brand_monitor_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(brand_monitor_router)
