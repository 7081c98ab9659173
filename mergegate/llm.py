"""Chat model construction from configuration."""

import logging

from langchain_core.language_models import BaseChatModel

from .config import LLMConfig

logger = logging.getLogger(__name__)


def create_chat_model(config: LLMConfig) -> BaseChatModel:
    """Create the appropriate chat model based on config."""
    logger.debug("Creating %s chat model %s", config.provider, config.model)

    if config.provider == "anthropic":
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(
            model=config.model,
            api_key=config.api_key.get_secret_value(),
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )
    elif config.provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=config.model,
            api_key=config.api_key.get_secret_value(),
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )
    else:
        raise ValueError(f"Unsupported LLM provider: {config.provider}")
