"""Health check endpoint."""
import logging

from fastapi import APIRouter, Request

from persona_proxy.api.middleware import check_rate_limits
from persona_proxy.schemas.chat import ChatReplyResponse, ErrorResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/health",
    response_model=ChatReplyResponse,
    responses={429: {"model": ErrorResponse}},
)
async def health_check(request: Request) -> ChatReplyResponse:
    """Liveness probe. Still counted against the caller's rate limits."""
    check_rate_limits(request)
    return ChatReplyResponse(reply="Server is running")
