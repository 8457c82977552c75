from fastapi import APIRouter

from persona_proxy.api.routes import chat, health

api_router = APIRouter()

api_router.include_router(chat.router)
api_router.include_router(health.router, tags=["Health"])
