"""
Google Gemini Provider - Gemini image models via :generateContent.

Supports:
- Gemini 2.5 Flash Image: Fast generation and editing
- Gemini 3 Pro Image Preview: High-quality generation and editing

The endpoint returns at most one image per call.

API Reference: https://ai.google.dev/gemini-api/docs/image-generation
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from image_flow.providers.base import (
    AuthenticationError,
    BackendFamily,
    GenerationError,
    GenerationMode,
    GenerationRequest,
    GenerationResult,
    ImageProvider,
    RateLimitError,
    error_message,
)
from image_flow.providers.image_refs import inline_image_parts, to_data_uri


logger = logging.getLogger(__name__)


class GeminiProvider(ImageProvider):
    """
    Google Gemini image generation provider.

    Sends the prompt as a text part and, for image editing, the first
    reference image as an inline data part.
    """

    family = BackendFamily.GEMINI
    name = "Gemini"
    base_url = "https://generativelanguage.googleapis.com/v1beta"

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate (or edit) one image with :generateContent."""
        url = f"{self.base_url}/models/{request.model.id}:generateContent"
        response = await self._post(url, json=self.build_body(request))
        return self._parse_response(response, request)

    def get_headers(self) -> dict[str, str]:
        # Key travels in a header so it never appears in URLs or error text
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def build_body(self, request: GenerationRequest) -> dict[str, Any]:
        """Request body: prompt text, then at most one inline image."""
        parts: list[dict[str, Any]] = [{"text": request.prompt}]

        if request.mode == GenerationMode.IMAGE_EDIT and request.reference_images:
            mime_type, data = inline_image_parts(request.reference_images[0])
            parts.append({
                "inlineData": {
                    "mimeType": mime_type,
                    "data": data,
                }
            })

        body: dict[str, Any] = {"contents": [{"parts": parts}]}

        modalities = self.config.extra.get("response_modalities")
        if modalities:
            body["generationConfig"] = {"responseModalities": list(modalities)}
        return body

    async def validate_credentials(self) -> bool:
        """Validate API key by listing models."""
        try:
            url = f"{self.base_url}/models"
            async with aiohttp.ClientSession(timeout=self._timeout()) as session:
                async with session.get(url, headers=self.get_headers()) as resp:
                    return resp.status == 200
        except (aiohttp.ClientError, asyncio.TimeoutError):
            return False

    def _parse_response(self, data: dict, request: GenerationRequest) -> GenerationResult:
        """Collect inline image parts of the first candidate as data URIs."""
        images = []
        text_response = None

        candidates = data.get("candidates") or []
        if candidates:
            content = candidates[0].get("content") or {}
            for part in content.get("parts") or []:
                inline_data = part.get("inlineData")
                if inline_data and inline_data.get("data"):
                    images.append(
                        to_data_uri(inline_data["data"], inline_data.get("mimeType"))
                    )
                elif part.get("text") and text_response is None:
                    text_response = part["text"]

        if not images and text_response:
            logger.info("Received text instead of image: %s", text_response)

        return GenerationResult(
            images=images,
            model_id=request.model.id,
            prompt=request.prompt,
            text=text_response,
        )

    def _check_error(self, status: int, data: dict) -> None:
        """Check for API errors."""
        message = error_message(data)
        if status == 401 or status == 403:
            raise AuthenticationError(f"Gemini API Error: {message or 'invalid API key'}")
        elif status == 429:
            error = RateLimitError(f"Gemini API Error: {message or 'rate limit exceeded'}")
            error.retry_after = 60
            raise error
        elif status >= 400:
            raise GenerationError(f"Gemini API Error: {message or 'Unknown error'}")
