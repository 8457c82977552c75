"""Persona chat service.

Builds the prompt from the persona's system prompt, the session history and
the new user message, calls the chat LLM and records the exchange.
"""
import logging
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from persona_proxy.schemas.chat import ChatTurn
from persona_proxy.services.history_store import HistoryStore
from persona_proxy.services.personas import Persona

logger = logging.getLogger(__name__)

_MESSAGE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


class InvalidChatRequest(Exception):
    """Raised when a chat request body is missing or has mistyped fields."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UpstreamError(Exception):
    """Raised when the completion call fails for any reason."""

    def __init__(self, message: str = "Something went wrong"):
        self.message = message
        super().__init__(message)


def validate_chat_payload(payload: dict, max_length: int | None = None) -> tuple[str, str]:
    """Return ``(message, session_id)`` from a request body or raise InvalidChatRequest."""
    message = payload.get("message")
    session_id = payload.get("sessionId")

    if not isinstance(message, str) or not message:
        raise InvalidChatRequest("Message is required")

    if not isinstance(session_id, str) or not session_id:
        raise InvalidChatRequest("sessionId is required")

    if max_length is not None and len(message) > max_length:
        raise InvalidChatRequest(f"Message exceeds {max_length} character limit")

    return message, session_id


def to_langchain_messages(turns: list[ChatTurn]) -> list[BaseMessage]:
    return [_MESSAGE_TYPES[turn.role](content=turn.content) for turn in turns]


def extract_reply_text(response: Any) -> str:
    """Pull the reply text out of an LLM response, falling back to ''."""
    content = getattr(response, "content", None)
    if isinstance(content, str):
        return content
    # Some providers return a list of content parts
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return ""


class ChatService:
    """Service for generating persona replies with per-session history."""

    def __init__(self, history: HistoryStore, llm: BaseChatModel):
        self.history = history
        self.llm = llm

    def build_messages(
        self, system_prompt: str, session_id: str, user_message: str
    ) -> list[ChatTurn]:
        """System prompt, then stored history, then the new user message."""
        return [
            ChatTurn(role="system", content=system_prompt),
            *self.history.get(session_id),
            ChatTurn(role="user", content=user_message),
        ]

    async def reply(self, persona: Persona, session_id: str, message: str) -> str:
        """Generate a reply for ``message`` and append the exchange to history.

        Raises:
            UpstreamError: If the LLM call fails. History is left untouched.
        """
        turns = self.build_messages(persona.system_prompt, session_id, message)

        try:
            response = await self.llm.ainvoke(to_langchain_messages(turns))
        except Exception as e:
            logger.exception(f"{persona.slug}-chat error: {e}")
            raise UpstreamError() from e

        reply_text = extract_reply_text(response)

        self.history.extend(
            session_id,
            [
                ChatTurn(role="user", content=message),
                ChatTurn(role="assistant", content=reply_text),
            ],
        )
        logger.debug(
            f"{persona.slug}: session={session_id!r} history_len={len(turns) - 2} reply_len={len(reply_text)}"
        )
        return reply_text
