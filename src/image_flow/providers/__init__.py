"""
Image Generation Providers.

This package provides integrations with the two image generation families:
- Gemini: Gemini 2.5 Flash Image, Gemini 3 Pro Image Preview
- OpenAI: DALL-E 2, DALL-E 3

Usage:
    from image_flow.providers import BackendDispatcher, get_registry

    registry = get_registry()
    registry.load_config()

    dispatcher = BackendDispatcher(registry)
    images = await dispatcher.dispatch(prompt, [], "dall-e-3", 1, registry.credentials())
"""

from image_flow.providers.base import (
    AuthenticationError,
    BackendError,
    BackendFamily,
    Credentials,
    GenerationError,
    GenerationMode,
    GenerationRequest,
    GenerationResult,
    ImageProvider,
    MissingCredentialError,
    ModelCard,
    NoImageGeneratedError,
    OptimizationError,
    ProviderConfig,
    ProviderError,
    RateLimitError,
    UnsupportedModelError,
)

from image_flow.providers.registry import (
    BUILTIN_MODEL_CARDS,
    ProviderRegistry,
    get_model,
    get_registry,
)

from image_flow.providers.gemini import GeminiProvider
from image_flow.providers.openai import OpenAIProvider
from image_flow.providers.dispatcher import BackendDispatcher, plan_batches, select_mode


def register_builtin_providers(registry: ProviderRegistry) -> ProviderRegistry:
    """Register the Gemini and OpenAI providers on a registry."""
    registry.register_provider(GeminiProvider)
    registry.register_provider(OpenAIProvider)
    return registry


register_builtin_providers(get_registry())


__all__ = [
    # Base classes
    "BackendFamily",
    "Credentials",
    "GenerationMode",
    "GenerationRequest",
    "GenerationResult",
    "ImageProvider",
    "ModelCard",
    "ProviderConfig",
    # Exceptions
    "AuthenticationError",
    "BackendError",
    "GenerationError",
    "MissingCredentialError",
    "NoImageGeneratedError",
    "OptimizationError",
    "ProviderError",
    "RateLimitError",
    "UnsupportedModelError",
    # Registry
    "BUILTIN_MODEL_CARDS",
    "ProviderRegistry",
    "get_model",
    "get_registry",
    "register_builtin_providers",
    # Providers
    "GeminiProvider",
    "OpenAIProvider",
    # Dispatch
    "BackendDispatcher",
    "plan_batches",
    "select_mode",
]
