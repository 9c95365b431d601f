"""
Backend Dispatcher - Turn a resolved prompt into generated images.

Given (prompt, image references, model identifier, requested count) the
dispatcher:
1. Looks up the model's capability card (UnsupportedModelError if none)
2. Checks the family's credential before any network call
3. Picks a generation mode (text-to-image, image edit, or variation)
4. Plans batches: one call when the model can return everything at once,
   otherwise N sequential calls whose results are concatenated

Calls are awaited one after another. If any call fails the error
propagates and images from earlier calls are discarded.
"""

from __future__ import annotations

import logging

from image_flow.providers.base import (
    Credentials,
    GenerationMode,
    GenerationRequest,
    MissingCredentialError,
    ModelCard,
    NoImageGeneratedError,
)
from image_flow.providers.registry import ProviderRegistry, get_registry


logger = logging.getLogger(__name__)


def select_mode(card: ModelCard, images: list[str]) -> GenerationMode:
    """Generation mode for a model given the collected image references."""
    if images and card.supports_variation:
        return GenerationMode.VARIATION
    if images and GenerationMode.IMAGE_EDIT in card.modes and card.supports_image_input:
        return GenerationMode.IMAGE_EDIT
    return GenerationMode.TEXT_TO_IMAGE


def plan_batches(num_images: int, card: ModelCard) -> list[int]:
    """
    Images to request per call, in call order.

    A model that can return ``num_images`` in one call gets a single batch.
    Otherwise the request fans out into calls of ``max_images`` each; fixed
    batch models always ask for exactly ``max_images`` per call.
    """
    per_call = max(card.max_images, 1)
    if num_images <= per_call and not card.fixed_batch:
        return [num_images]

    batches = []
    remaining = num_images
    while remaining > 0:
        batch = per_call if card.fixed_batch else min(per_call, remaining)
        batches.append(batch)
        remaining -= batch
    return batches


class BackendDispatcher:
    """Routes generation to the provider of a model's backend family."""

    def __init__(self, registry: ProviderRegistry | None = None):
        self.registry = registry or get_registry()

    async def dispatch(
        self,
        prompt: str,
        images: list[str],
        model_id: str,
        num_images: int,
        credentials: Credentials,
    ) -> list[str]:
        """
        Generate ``num_images`` images and return their references.

        Raises:
            UnsupportedModelError: Unknown model identifier
            MissingCredentialError: No key for the model's family
            NoImageGeneratedError: All calls returned without an image
            BackendError: A backend call failed
        """
        card = self.registry.resolve_model(model_id)

        api_key = credentials.for_family(card.family)
        if not api_key:
            raise MissingCredentialError(card.family)

        provider = self.registry.create_provider(card.family, api_key)
        mode = select_mode(card, images)

        if mode == GenerationMode.VARIATION:
            # Variation takes the first image only and passes n straight through.
            batches = [num_images]
            references = images[:1]
        else:
            batches = plan_batches(num_images, card)
            references = images[:card.max_reference_images] if mode == GenerationMode.IMAGE_EDIT else []

        logger.debug(
            "Dispatching %s (%s, %s): batches=%s, reference_images=%d",
            card.id, card.family.value, mode.value, batches, len(references),
        )

        results: list[str] = []
        for batch in batches:
            request = GenerationRequest(
                model=card,
                prompt=prompt,
                mode=mode,
                num_images=batch,
                reference_images=list(references),
            )
            result = await provider.generate(request)
            results.extend(image for image in result.images if image)

        if not results:
            raise NoImageGeneratedError(
                f"No image generated by {card.family.display_name}."
            )

        return results
