"""Public API router."""

from fastapi import APIRouter

from rewind.api.v1.chat import router as chat_router

v1_router = APIRouter(prefix="/v1", tags=["Chat"])

v1_router.include_router(chat_router)
