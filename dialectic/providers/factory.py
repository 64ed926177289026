"""Provider construction keyed by provider type."""

import logging

from config.config_loader import ProviderConfig, default_provider_configs
from dialectic.errors import ConfigError
from dialectic.providers.anthropic import AnthropicProvider
from dialectic.providers.base import AIProvider
from dialectic.providers.openai_provider import OpenAIProvider
from dialectic.providers.openrouter import OpenRouterProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openai": OpenAIProvider,
    "openrouter": OpenRouterProvider,
    "anthropic": AnthropicProvider,
}


def create_provider(provider_type: str, configs: dict[str, ProviderConfig] | None = None) -> AIProvider:
    """Build the provider for an agent.

    Raises ConfigError for an unknown provider type or a missing API key.
    """
    configs = configs or default_provider_configs()
    if provider_type not in PROVIDER_CLASSES:
        raise ConfigError(
            f"Unsupported provider '{provider_type}'. Expected one of: {', '.join(sorted(PROVIDER_CLASSES))}"
        )
    config = configs.get(provider_type) or default_provider_configs()[provider_type]
    return PROVIDER_CLASSES[provider_type](config)


class ProviderPool:
    """Caches one provider instance per provider type."""

    def __init__(self, configs: dict[str, ProviderConfig] | None = None) -> None:
        self._configs = configs
        self._providers: dict[str, AIProvider] = {}

    def get(self, provider_type: str) -> AIProvider:
        if provider_type not in self._providers:
            self._providers[provider_type] = create_provider(provider_type, self._configs)
            logger.debug("Provider ready: %s", provider_type)
        return self._providers[provider_type]
