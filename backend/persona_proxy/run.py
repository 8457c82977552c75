"""CLI entry point for launching the FastAPI app with uvicorn."""
import logging
import sys

import uvicorn

from persona_proxy.config import get_settings
from persona_proxy.main import StartupError, check_startup
from persona_proxy.services.llm_provider import LLMConfigError, get_chat_llm
from persona_proxy.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    """Validate configuration, then serve until interrupted."""
    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        check_startup(settings)
        get_chat_llm(settings)
    except (StartupError, LLMConfigError) as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Server running on port {settings.port}")
    uvicorn.run(
        "persona_proxy.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
