"""Generation dispatch for the Artifex operations.

:class:`GenerationDispatcher` owns a single call primitive, :meth:`_call`,
which sends one prompt (text, optionally interleaved with a reference
image) to the image model.  Each operation is a thin builder around it:

============================  =====  ==========================================
Operation                     Calls  Empty model output
============================  =====  ==========================================
``generate_from_text``        1      :class:`ModelError`
``generate_variations``       N      skipped; recorded in ``result.skipped``
``enhance_image``             1      :class:`ModelError`
``apply_style_transfer``      1      :class:`ModelError`
``fix_image``                 1      :class:`ModelError`
============================  =====  ==========================================

Variation calls run sequentially unless ``config.variation_concurrency`` is
raised; in both cases results come back in iteration order and every call
keeps its ``(Variation i)`` numbering.

Usage
-----
::

    from artifex.core.config import config
    from artifex.core.dispatcher import GenerationDispatcher
    from artifex.core.model_client import GeminiImageClient

    async with GeminiImageClient(config) as model:
        dispatcher = GenerationDispatcher(model, config)
        result = await dispatcher.run("text-to-image", {"prompt": "A cat"})
        print(result.images)
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from .config import ArtifexConfig
from .errors import ModelError
from .model_client import ImageModel
from .prompt_builder import (
    enhance_parts,
    fix_parts,
    style_transfer_parts,
    variation_parts,
)
from .results import assemble_result
from .schemas import (
    EnhanceRequest,
    FixImageRequest,
    GenerationResult,
    ImageDataURI,
    ModelCallSpec,
    ModelReply,
    PromptPart,
    SkippedVariation,
    StyleTransferRequest,
    TextToImageRequest,
    VariationsRequest,
)
from .validation import require_valid, validate_request

logger = logging.getLogger(__name__)


class GenerationDispatcher:
    """Runs Artifex operations against an :class:`ImageModel`.

    The dispatcher keeps no state between calls, so one instance can serve
    concurrent requests.

    Attributes:
        _model (ImageModel):
            The image model every call is sent to.
        _config (ArtifexConfig):
            Supplies the model identifier and variation limits.
    """

    def __init__(self, model: ImageModel, config: ArtifexConfig) -> None:
        self._model = model
        self._config = config

    # -- Call primitive -----------------------------------------------------

    async def _call(
        self,
        operation: str,
        prompt: str | tuple[PromptPart, ...],
        *,
        required: bool = True,
    ) -> ModelReply:
        """Send one prompt to the model.

        Args:
            operation: Operation name, used in logs and errors.
            prompt: Plain text or an ordered tuple of parts.
            required: If ``True``, a reply without an image raises.

        Raises:
            ModelError: If ``required`` and the model returned no image.
        """
        spec = ModelCallSpec(prompt=prompt, model=self._config.model_id)
        logger.info("%s: calling %s with %d part(s).", operation, spec.model, len(spec.parts))

        reply = await self._model.generate(spec)

        if reply.image is None and required:
            reason = reply.describe_failure()
            logger.error("%s: model returned no image (%s).", operation, reason)
            raise ModelError(operation, f"Failed to generate image: {reason}")
        return reply

    # -- Operations ---------------------------------------------------------

    async def generate_from_text(self, request: TextToImageRequest) -> ImageDataURI:
        reply = await self._call("text-to-image", request.prompt)
        return reply.image

    async def generate_variations(
        self,
        request: VariationsRequest,
        *,
        cancel: asyncio.Event | None = None,
    ) -> GenerationResult:
        """Generate ``request.count`` variations of the reference image.

        A call that yields no image is skipped rather than failing the batch;
        the returned result may therefore hold fewer than ``count`` images.
        Exceptions from the model (transport failures) abort the batch.

        Args:
            request: Validated variations request.
            cancel: Optional event; once set, iterations not yet started are
                abandoned and the images collected so far are returned.

        Returns:
            Images in iteration order, plus the indices that were skipped.
        """
        concurrency = max(1, min(self._config.variation_concurrency, request.count))
        semaphore = asyncio.Semaphore(concurrency)

        async def run_one(index: int) -> ModelReply | None:
            async with semaphore:
                if cancel is not None and cancel.is_set():
                    return None
                parts = variation_parts(request.reference_image, request.prompt, index)
                return await self._call("variations", parts, required=False)

        if concurrency == 1:
            replies = []
            for index in range(request.count):
                if cancel is not None and cancel.is_set():
                    logger.info("variations: cancelled after %d iteration(s).", index)
                    break
                replies.append(await run_one(index))
        else:
            tasks = [asyncio.ensure_future(run_one(i)) for i in range(request.count)]
            try:
                replies = await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                raise

        images: list[ImageDataURI] = []
        skipped: list[SkippedVariation] = []
        for index, reply in enumerate(replies):
            if reply is None:
                continue  # cancelled before starting
            if reply.image is None:
                reason = reply.describe_failure()
                logger.warning("variations: iteration %d produced no image (%s).", index + 1, reason)
                skipped.append(SkippedVariation(index=index, reason=reason))
                continue
            images.append(reply.image)

        logger.info("variations: %d of %d image(s) generated.", len(images), request.count)
        return GenerationResult(images=images, skipped=skipped)

    async def enhance_image(self, request: EnhanceRequest) -> ImageDataURI:
        parts = enhance_parts(request.existing_image, request.enhancement_description)
        reply = await self._call("enhance", parts)
        return reply.image

    async def apply_style_transfer(self, request: StyleTransferRequest) -> ImageDataURI:
        parts = style_transfer_parts(request.reference_image, request.prompt_text)
        reply = await self._call("style-transfer", parts)
        return reply.image

    async def fix_image(self, request: FixImageRequest) -> ImageDataURI:
        parts = fix_parts(request.image, request.prompt, request.undesired_elements)
        reply = await self._call("fix", parts)
        return reply.image

    # -- Entry points -------------------------------------------------------

    async def dispatch(self, request: Any, *, cancel: asyncio.Event | None = None) -> GenerationResult:
        """Route a validated request to its handler and assemble the result."""
        if isinstance(request, TextToImageRequest):
            output = await self.generate_from_text(request)
        elif isinstance(request, VariationsRequest):
            output = await self.generate_variations(request, cancel=cancel)
        elif isinstance(request, EnhanceRequest):
            output = await self.enhance_image(request)
        elif isinstance(request, StyleTransferRequest):
            output = await self.apply_style_transfer(request)
        elif isinstance(request, FixImageRequest):
            output = await self.fix_image(request)
        else:
            raise TypeError(f"unsupported request type: {type(request).__name__}")
        return assemble_result(output)

    async def run(
        self,
        kind: str,
        payload: Mapping[str, Any],
        *,
        cancel: asyncio.Event | None = None,
    ) -> GenerationResult:
        """Validate a raw payload, then dispatch it.

        Raises:
            ValidationError: If the payload is rejected.  No model call is
                made in that case.
            ModelError: If a single-image operation gets no image back.
        """
        result = validate_request(
            kind,
            payload,
            default_variations=self._config.default_variations,
            max_variations=self._config.max_variations,
        )
        request = require_valid(result)
        return await self.dispatch(request, cancel=cancel)
