"""Persona chat endpoints.

One handler per persona, built by ``build_persona_router``; personas differ
only in their system prompt.
"""
import logging

from fastapi import APIRouter, Depends, Request

from persona_proxy.api.dependencies import get_chat_service, get_persona, read_json_body
from persona_proxy.api.middleware import check_rate_limits
from persona_proxy.schemas.chat import ChatReplyResponse, ErrorResponse
from persona_proxy.services.chat import ChatService, validate_chat_payload
from persona_proxy.services.personas import PERSONAS, Persona

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


def build_persona_router(persona: Persona) -> APIRouter:
    """Router exposing ``POST /<slug>-chat`` for a single persona."""
    router = APIRouter()

    @router.post(
        persona.route_path,
        response_model=ChatReplyResponse,
        responses=ERROR_RESPONSES,
        name=f"{persona.slug}-chat",
        summary=f"Chat with {persona.name}",
    )
    async def persona_chat(
        request: Request,
        chat_service: ChatService = Depends(get_chat_service),
    ) -> ChatReplyResponse:
        payload = await read_json_body(request)

        check_rate_limits(request, payload.get("sessionId"))

        settings = request.app.state.settings
        message, session_id = validate_chat_payload(
            payload, max_length=settings.chat_max_message_length
        )

        loaded = get_persona(request, persona.slug)
        reply = await chat_service.reply(loaded, session_id, message)
        return ChatReplyResponse(reply=reply)

    return router


router = APIRouter(tags=["Chat"])
for _persona in PERSONAS:
    router.include_router(build_persona_router(_persona))
