"""
OpenAI Provider - DALL-E models.

Supports:
- DALL-E 2: Text-to-image (n up to 10) and image variations
- DALL-E 3: Text-to-image, exactly one image per call
- Chat completions, used by the prompt optimizer

API Reference: https://platform.openai.com/docs/api-reference/images
"""

from __future__ import annotations

import asyncio
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
from image_flow.providers.image_refs import load_image_bytes, to_data_uri, to_png_bytes


DEFAULT_SIZE = "1024x1024"


class OpenAIProvider(ImageProvider):
    """
    OpenAI image generation provider.

    Handles DALL-E 2 and DALL-E 3.
    """

    family = BackendFamily.OPENAI
    name = "OpenAI"
    base_url = "https://api.openai.com/v1"

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate images using OpenAI API."""
        if request.mode == GenerationMode.VARIATION:
            return await self._generate_variation(request)
        return await self._generate_create(request)

    async def _generate_create(self, request: GenerationRequest) -> GenerationResult:
        """Standard text-to-image generation."""
        url = f"{self.base_url}/images/generations"

        body: dict[str, Any] = {
            "model": request.model.id,
            "prompt": request.prompt,
            "n": request.num_images,
            "size": request.model.size or DEFAULT_SIZE,
            "response_format": "b64_json",
        }

        response = await self._post(url, json=body)
        return self._parse_response(response, request)

    async def _generate_variation(self, request: GenerationRequest) -> GenerationResult:
        """Variations of the first reference image. The prompt is not sent."""
        url = f"{self.base_url}/images/variations"

        if not request.reference_images:
            raise GenerationError("OpenAI API Error: variation needs an input image")

        raw = await load_image_bytes(request.reference_images[0], self.config.timeout)
        img_bytes = to_png_bytes(raw)

        form = aiohttp.FormData()
        form.add_field("model", request.model.id)
        form.add_field("n", str(request.num_images))
        form.add_field("size", request.model.size or DEFAULT_SIZE)
        form.add_field("response_format", "b64_json")
        form.add_field("image", img_bytes, filename="image.png", content_type="image/png")

        response = await self._post(url, data=form)
        return self._parse_response(response, request)

    async def complete_chat(self, model: str, messages: list[dict[str, str]]) -> str:
        """Single chat completion; returns the first choice's content (may be empty)."""
        url = f"{self.base_url}/chat/completions"
        response = await self._post(url, json={"model": model, "messages": messages})

        choices = response.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""

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
        """Parse OpenAI response into GenerationResult."""
        images = []
        revised_prompt = None

        for item in data.get("data") or []:
            if item.get("b64_json"):
                images.append(to_data_uri(item["b64_json"], "image/png"))
            elif item.get("url"):
                images.append(item["url"])

            if "revised_prompt" in item and not revised_prompt:
                revised_prompt = item["revised_prompt"]

        return GenerationResult(
            images=images,
            model_id=request.model.id,
            prompt=request.prompt,
            text=revised_prompt,
        )

    def _check_error(self, status: int, data: dict) -> None:
        """Check for API errors."""
        message = error_message(data)
        if status == 401:
            raise AuthenticationError(f"OpenAI API Error: {message or 'invalid API key'}")
        elif status == 429:
            error = RateLimitError(f"OpenAI API Error: {message or 'rate limit exceeded'}")
            error.retry_after = 60
            raise error
        elif status >= 400:
            raise GenerationError(f"OpenAI API Error: {message or 'Unknown error'}")
