from fastapi import APIRouter
from media_sync.api.endpoints import config, sync

api_router = APIRouter()
api_router.include_router(config.router, prefix="/config", tags=["config"])
api_router.include_router(sync.router, prefix="/sync", tags=["sync"])
