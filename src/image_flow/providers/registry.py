"""
Provider Registry - Central registry for providers and model cards.

This module manages:
- Built-in model cards and the prefix rules for unlisted identifiers
- Registration of one provider implementation per backend family
- Provider configuration loading/saving and credential lookup
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Callable

from image_flow.providers.base import (
    DEFAULT_TIMEOUT,
    BackendFamily,
    Credentials,
    GenerationMode,
    ImageProvider,
    ModelCard,
    ProviderConfig,
    ProviderError,
    UnsupportedModelError,
)


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "image_flow" / "providers.json"

# Checked in order when a family's key is not in the config file
CREDENTIAL_ENV_VARS: dict[BackendFamily, tuple[str, ...]] = {
    BackendFamily.GEMINI: ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    BackendFamily.OPENAI: ("OPENAI_API_KEY",),
}


# ============================================================================
# Built-in Model Cards
# ============================================================================

BUILTIN_MODEL_CARDS: dict[str, ModelCard] = {
    # -------------------------------------------------------------------------
    # Google Gemini image models
    # Source: https://ai.google.dev/gemini-api/docs/image-generation
    # -------------------------------------------------------------------------
    "gemini-2.5-flash-image": ModelCard(
        id="gemini-2.5-flash-image",
        family=BackendFamily.GEMINI,
        name="Gemini 2.5 Flash Image (Nano Banana)",
        description="Fast multimodal generation and image editing",
        modes={GenerationMode.TEXT_TO_IMAGE, GenerationMode.IMAGE_EDIT},
        max_images=1,
        max_reference_images=1,
    ),

    "gemini-3-pro-image-preview": ModelCard(
        id="gemini-3-pro-image-preview",
        family=BackendFamily.GEMINI,
        name="Gemini 3 Pro Image Preview",
        description="High-quality generation and image editing",
        modes={GenerationMode.TEXT_TO_IMAGE, GenerationMode.IMAGE_EDIT},
        max_images=1,
        max_reference_images=1,
    ),

    # -------------------------------------------------------------------------
    # OpenAI DALL-E models
    # Source: https://platform.openai.com/docs/api-reference/images
    # -------------------------------------------------------------------------
    "dall-e-3": ModelCard(
        id="dall-e-3",
        family=BackendFamily.OPENAI,
        name="DALL·E 3",
        description="Text only; image inputs are ignored",
        modes={GenerationMode.TEXT_TO_IMAGE},
        max_images=1,
        fixed_batch=True,
        size="1024x1024",
    ),

    "dall-e-2": ModelCard(
        id="dall-e-2",
        family=BackendFamily.OPENAI,
        name="DALL·E 2",
        description="Variations use the image only and ignore the prompt",
        modes={GenerationMode.TEXT_TO_IMAGE, GenerationMode.VARIATION},
        max_images=10,
        max_reference_images=1,
        size="1024x1024",
    ),
}


def _gemini_card(model_id: str) -> ModelCard:
    return ModelCard(
        id=model_id,
        family=BackendFamily.GEMINI,
        name=model_id,
        modes={GenerationMode.TEXT_TO_IMAGE, GenerationMode.IMAGE_EDIT},
        max_images=1,
        max_reference_images=1,
    )


def _dalle_card(model_id: str) -> ModelCard:
    return ModelCard(
        id=model_id,
        family=BackendFamily.OPENAI,
        name=model_id,
        modes={GenerationMode.TEXT_TO_IMAGE},
        max_images=10,
        size="1024x1024",
    )


# Fallback rules for identifiers without a card: (matcher, card factory)
MODEL_FAMILY_RULES: list[tuple[Callable[[str], bool], Callable[[str], ModelCard]]] = [
    (lambda model_id: model_id.startswith("gemini"), _gemini_card),
    (lambda model_id: "dall-e" in model_id, _dalle_card),
]


class ProviderRegistry:
    """
    Central registry for providers and model cards.

    Handles:
    - Provider registration (one class per backend family)
    - Model card lookup
    - Configuration management
    """

    _instance: ProviderRegistry | None = None

    def __init__(self) -> None:
        self._providers: dict[BackendFamily, type[ImageProvider]] = {}
        self._model_cards: dict[str, ModelCard] = dict(BUILTIN_MODEL_CARDS)
        self._configs: dict[BackendFamily, ProviderConfig] = {}
        self._config_path: Path | None = None

    @classmethod
    def instance(cls) -> ProviderRegistry:
        """The shared registry used when none is passed explicitly."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    # -------------------------------------------------------------------------
    # Provider Registration
    # -------------------------------------------------------------------------

    def register_provider(self, provider_class: type[ImageProvider]) -> None:
        """Register a provider implementation for its family."""
        self._providers[provider_class.family] = provider_class

    def create_provider(
        self,
        family: BackendFamily,
        api_key: str | None = None,
    ) -> ImageProvider:
        """
        Instantiate the provider for a family.

        ``api_key`` overrides the configured key for this instance only.
        """
        if family not in self._providers:
            raise ProviderError(f"No provider registered for {family.display_name}")
        config = self.get_config(family)
        if api_key is not None:
            config = replace(config, api_key=api_key)
        return self._providers[family](config)

    def list_providers(self) -> list[BackendFamily]:
        return list(self._providers.keys())

    # -------------------------------------------------------------------------
    # Model Cards
    # -------------------------------------------------------------------------

    def get_model(self, model_id: str) -> ModelCard | None:
        """Exact card, or a generic card from the family prefix rules."""
        card = self._model_cards.get(model_id)
        if card is not None:
            return card
        for matches, make_card in MODEL_FAMILY_RULES:
            if matches(model_id):
                return make_card(model_id)
        return None

    def resolve_model(self, model_id: str) -> ModelCard:
        """Like get_model, but raises UnsupportedModelError when nothing matches."""
        card = self.get_model(model_id)
        if card is None:
            raise UnsupportedModelError(model_id)
        return card

    def list_models(self, family: BackendFamily | None = None) -> list[ModelCard]:
        """List registered model cards, optionally filtered by family."""
        if family:
            return [m for m in self._model_cards.values() if m.family == family]
        return list(self._model_cards.values())

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    def set_config(self, family: BackendFamily, config: ProviderConfig) -> None:
        self._configs[family] = config

    def get_config(self, family: BackendFamily) -> ProviderConfig:
        return self._configs.get(family, ProviderConfig())

    def credentials(self) -> Credentials:
        """
        One key per family: configured key first, then environment variables.

        Disabled families get no key.
        """
        keys: dict[str, str | None] = {}
        for family in BackendFamily:
            config = self.get_config(family)
            key = config.api_key if config.enabled else ""
            if not key and config.enabled:
                key = next(
                    (os.environ[var] for var in CREDENTIAL_ENV_VARS[family]
                     if os.environ.get(var)),
                    "",
                )
            keys[family.value] = key or None
        return Credentials(**keys)

    def load_config(self, path: Path | None = None) -> None:
        """Load provider configurations from file."""
        if path is None:
            path = DEFAULT_CONFIG_PATH

        self._config_path = path

        if not path.exists():
            return

        try:
            with open(path) as f:
                data = json.load(f)

            for family_id, cfg_data in data.get("providers", {}).items():
                try:
                    family = BackendFamily(family_id)
                except ValueError:
                    logger.warning("Ignoring config for unknown provider %r", family_id)
                    continue
                self._configs[family] = ProviderConfig(
                    api_key=cfg_data.get("api_key", ""),
                    enabled=cfg_data.get("enabled", True),
                    base_url=cfg_data.get("base_url"),
                    timeout=float(cfg_data.get("timeout", DEFAULT_TIMEOUT)),
                    extra=cfg_data.get("extra", {}),
                )

        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Failed to load provider config from %s: %s", path, e)

    def save_config(self, path: Path | None = None) -> None:
        """Save provider configurations to file."""
        if path is None:
            path = self._config_path or DEFAULT_CONFIG_PATH

        path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "providers": {
                family.value: {
                    "api_key": cfg.api_key,
                    "enabled": cfg.enabled,
                    "base_url": cfg.base_url,
                    "timeout": cfg.timeout,
                    "extra": cfg.extra,
                }
                for family, cfg in self._configs.items()
            },
        }

        with open(path, "w") as f:
            json.dump(data, f, indent=2)


# ============================================================================
# Module-level convenience functions
# ============================================================================

def get_registry() -> ProviderRegistry:
    """Get the global provider registry."""
    return ProviderRegistry.instance()


def get_model(model_id: str) -> ModelCard | None:
    """Get a model card by ID."""
    return get_registry().get_model(model_id)
