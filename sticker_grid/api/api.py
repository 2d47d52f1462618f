from fastapi import APIRouter

from sticker_grid.api.routers import segment_router, sheet_router

api = APIRouter()
api.include_router(sheet_router.router, tags=["sheet"])
api.include_router(segment_router.router, tags=["segment"])
