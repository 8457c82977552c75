"""Multi-provider LLM service abstraction.

Supports: OpenAI, Groq, Google (Gemini)
"""
import importlib
import logging
from typing import Literal

from langchain_core.language_models import BaseChatModel

from persona_proxy.config import Settings, get_settings

logger = logging.getLogger(__name__)

LLMProvider = Literal["openai", "groq", "google"]


class LLMConfigError(ValueError):
    """Raised when the LLM provider cannot be configured."""


def _import_provider(module_name: str, class_name: str, provider: str):
    """Import a provider's chat model class, which may not be installed."""
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise LLMConfigError(
            f"LLM provider '{provider}' requires the '{module_name.replace('_', '-')}' package: {e}"
        ) from e
    return getattr(module, class_name)


def get_llm(
    model: str | None = None,
    provider: LLMProvider | None = None,
    temperature: float | None = None,
    settings: Settings | None = None,
) -> BaseChatModel:
    """Get an LLM instance for the configured provider.

    Args:
        model: Model name. If None, uses LLM_CHAT_MODEL from settings.
        provider: Provider name. If None, uses LLM_PROVIDER from settings.
        temperature: Sampling temperature. If None, uses LLM_TEMPERATURE.
        settings: Settings to read from (defaults to the cached settings).

    Returns:
        BaseChatModel instance for the provider.

    Raises:
        LLMConfigError: If the API key is missing or the provider is unknown.
    """
    settings = settings or get_settings()
    provider = provider or settings.llm_provider
    model = model or settings.llm_chat_model
    temperature = settings.llm_temperature if temperature is None else temperature
    api_key = settings.llm_api_key

    if not settings.has_llm_credentials:
        raise LLMConfigError(
            f"LLM API key not configured. Set LLM_API_KEY (or OPENAI_API_KEY) for provider '{provider}'."
        )

    logger.info(f"Creating LLM: provider={provider}, model={model}")

    if provider == "openai":
        ChatOpenAI = _import_provider("langchain_openai", "ChatOpenAI", provider)

        return ChatOpenAI(
            model=model,
            api_key=api_key,
            temperature=temperature,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )

    elif provider == "groq":
        ChatGroq = _import_provider("langchain_groq", "ChatGroq", provider)

        return ChatGroq(
            model=model,
            api_key=api_key,
            temperature=temperature,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )

    elif provider == "google":
        ChatGoogleGenerativeAI = _import_provider(
            "langchain_google_genai", "ChatGoogleGenerativeAI", provider
        )

        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=api_key,
            temperature=temperature,
            timeout=settings.llm_timeout_seconds,
            max_retries=0,
        )

    else:
        raise LLMConfigError(
            f"Unknown LLM provider: '{provider}'. Supported: openai, groq, google."
        )


def get_chat_llm(settings: Settings | None = None) -> BaseChatModel:
    """Get the LLM configured for persona chat."""
    return get_llm(settings=settings)
