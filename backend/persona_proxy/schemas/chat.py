from typing import Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["system", "user", "assistant"]


class ChatTurn(BaseModel):
    """A single message in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class ChatReplyResponse(BaseModel):
    """Successful chat (and health) response body."""

    reply: str


class ErrorResponse(BaseModel):
    error: str
