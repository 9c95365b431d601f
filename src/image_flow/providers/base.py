"""
Provider Base - Abstract base classes and model card definitions.

This module provides the foundation for both image generation backends:
- BackendFamily: The two API families (Gemini and OpenAI)
- ModelCard: Capability descriptor of a model (batch limits, modes)
- ImageProvider: Abstract base class for provider implementations
- GenerationRequest/Result: Request/response data structures
- Provider errors, all of them WorkflowErrors

A provider performs exactly one API call per ``generate()``. Splitting a
requested image count into several calls is the dispatcher's job.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import aiohttp

from image_flow.core.errors import WorkflowError


DEFAULT_TIMEOUT = 120.0


class BackendFamily(Enum):
    """Image generation API families."""
    GEMINI = "gemini"
    OPENAI = "openai"

    @property
    def display_name(self) -> str:
        return {
            BackendFamily.GEMINI: "Gemini",
            BackendFamily.OPENAI: "OpenAI",
        }[self]


class GenerationMode(Enum):
    """Supported image generation modes."""
    TEXT_TO_IMAGE = "text_to_image"
    IMAGE_EDIT = "image_edit"      # Prompt plus an inline reference image
    VARIATION = "variation"        # Reference image only, prompt ignored


@dataclass
class ModelCard:
    """
    Capability descriptor of an image generation model.

    Adding a model is a data change: add a card, no new branches.

    Attributes:
        id: Model identifier sent to the API (e.g. "dall-e-3")
        family: Backend family that serves this model
        name: Human-readable display name
        modes: Supported generation modes
        max_images: Maximum images a single API call may return
        fixed_batch: Every call must request exactly ``max_images``
        max_reference_images: Reference images accepted (0 = none)
        size: Output resolution for fixed-resolution backends
    """
    id: str
    family: BackendFamily
    name: str
    description: str = ""
    modes: set[GenerationMode] = field(
        default_factory=lambda: {GenerationMode.TEXT_TO_IMAGE}
    )
    max_images: int = 1
    fixed_batch: bool = False
    max_reference_images: int = 0
    size: str | None = None

    @property
    def supports_image_input(self) -> bool:
        return self.max_reference_images > 0

    @property
    def supports_variation(self) -> bool:
        return GenerationMode.VARIATION in self.modes


@dataclass
class GenerationRequest:
    """A single API call's worth of generation."""
    model: ModelCard
    prompt: str
    mode: GenerationMode = GenerationMode.TEXT_TO_IMAGE
    num_images: int = 1
    reference_images: list[str] = field(default_factory=list)


@dataclass
class GenerationResult:
    """Result of a single API call."""
    images: list[str]  # data URIs or URLs
    model_id: str
    prompt: str
    # Text the backend returned alongside (or instead of) images
    text: str | None = None


@dataclass
class ProviderConfig:
    """Configuration for one backend family."""
    api_key: str = ""
    enabled: bool = True
    base_url: str | None = None  # Override default URL
    timeout: float = DEFAULT_TIMEOUT
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Credentials:
    """One optional API key per backend family. Never mutated by the engine."""
    gemini: str | None = None
    openai: str | None = None

    def for_family(self, family: BackendFamily) -> str | None:
        return getattr(self, family.value) or None


class ProviderError(WorkflowError):
    """Base exception for provider errors."""
    pass


class MissingCredentialError(ProviderError):
    """No API key configured for the family a model needs."""

    def __init__(self, family: BackendFamily):
        self.family = family
        super().__init__(
            f"{family.display_name} API Key is missing. Please add it in Settings."
        )


class UnsupportedModelError(ProviderError):
    """Model identifier matches no known backend family."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Unsupported model: {model_id}")


class NoImageGeneratedError(ProviderError):
    """Every call finished but none returned an image."""
    pass


class OptimizationError(ProviderError):
    """Prompt optimization request failed."""
    pass


class BackendError(ProviderError):
    """A backend call failed. Carries the backend's own message."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class AuthenticationError(BackendError):
    """API key invalid or rejected."""
    pass


class RateLimitError(BackendError):
    """Rate limit exceeded."""
    retry_after: float | None = None


class GenerationError(BackendError):
    """Error during generation."""
    pass


def error_message(data: dict) -> str | None:
    """
    The backend's own error text from a response body.

    Handles ``{"error": {"message": ...}}`` from the APIs themselves and
    ``{"error": "..."}`` from proxies and gateways.
    """
    err = data.get("error")
    if isinstance(err, dict):
        message = err.get("message")
        return str(message) if message else None
    if err:
        return str(err)
    return None


class ImageProvider(ABC):
    """
    Abstract base class for image generation providers.

    Each provider handles communication with one backend family.
    Model capabilities are defined separately in ModelCard.
    """

    family: BackendFamily
    name: str = ""
    base_url: str = ""

    def __init__(self, config: ProviderConfig):
        self.config = config
        if config.base_url:
            self.base_url = config.base_url

    @property
    def api_key(self) -> str:
        return self.config.api_key

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """
        Make one generation call.

        Raises:
            AuthenticationError: Invalid API key
            RateLimitError: Rate limit exceeded
            BackendError: Any other backend or transport failure
        """
        ...

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Check if API credentials are valid."""
        ...

    @abstractmethod
    def _check_error(self, status: int, data: dict) -> None:
        """Raise the matching BackendError for an HTTP error response."""
        ...

    def get_headers(self) -> dict[str, str]:
        """Get default headers for API requests."""
        return {"Authorization": f"Bearer {self.api_key}"}

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(total=self.config.timeout)

    async def _post(
        self,
        url: str,
        *,
        json: dict | None = None,
        data: aiohttp.FormData | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict:
        """
        POST to the backend and return its JSON body.

        Transport failures never leak as aiohttp exceptions: they are wrapped
        in BackendError with the backend's name in the message.
        """
        try:
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.post(
                    url,
                    json=json,
                    data=data,
                    headers=headers if headers is not None else self.get_headers(),
                ) as resp:
                    try:
                        body = await resp.json(content_type=None)
                    except ValueError:
                        body = {}
                    if not isinstance(body, dict):
                        body = {}
                    self._check_error(resp.status, body)
                    return body
        except asyncio.TimeoutError:
            raise BackendError(f"{self.name} API Error: request timed out") from None
        except aiohttp.ClientError as e:
            raise BackendError(f"{self.name} API Error: {e}") from e
