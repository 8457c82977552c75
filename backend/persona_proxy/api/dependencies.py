"""Dependency helpers shared across FastAPI routes."""
import json
import logging

from fastapi import Request

from persona_proxy.services.chat import ChatService
from persona_proxy.services.personas import Persona

logger = logging.getLogger(__name__)


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_persona(request: Request, slug: str) -> Persona:
    return request.app.state.personas[slug]


async def read_json_body(request: Request) -> dict:
    """Parsed JSON object body, or ``{}`` when absent or not an object."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.debug(f"Ignoring non-JSON body on {request.url.path}")
        return {}
    return body if isinstance(body, dict) else {}
