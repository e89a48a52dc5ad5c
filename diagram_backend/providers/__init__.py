"""Generation provider registry."""

from typing import Dict

from diagram_backend.providers import gemini as gemini_provider
from diagram_backend.providers import ollama as ollama_provider
from diagram_backend.providers import worker as worker_provider
from diagram_backend.providers.base import GenerationError, ProviderFn

# Provider registry
PROVIDERS: Dict[str, ProviderFn] = {
    "worker": worker_provider.generate,
    "ollama": ollama_provider.generate,
    "gemini": gemini_provider.generate,
}


def create_provider(name: str = "worker") -> ProviderFn:
    """Look up a provider by name.

    Raises:
        ValueError: If the provider is not registered
    """
    name = (name or "").strip().lower()
    provider = PROVIDERS.get(name)
    if provider is None:
        raise ValueError(
            f"Unsupported provider: '{name}'. "
            f"Supported providers are: {', '.join(PROVIDERS.keys())}"
        )
    return provider


__all__ = ["PROVIDERS", "GenerationError", "ProviderFn", "create_provider"]
