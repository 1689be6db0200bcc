from fastapi import APIRouter

from server.features.photos.api import router as photos_router

api_router = APIRouter()
api_router.include_router(photos_router)
