"""
API router - aggregates all route modules.
"""
from fastapi import APIRouter
from dealerchat.api.chat import router as chat_router
from dealerchat.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(chat_router)
api_router.include_router(health_router)
