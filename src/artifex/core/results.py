"""Normalization of handler outputs into :class:`GenerationResult`."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Union

from .schemas import GenerationResult, ImageDataURI

HandlerOutput = Union[GenerationResult, ImageDataURI, str, Sequence[str], None]


def assemble_result(output: HandlerOutput) -> GenerationResult:
    """Wrap a handler's output in a :class:`GenerationResult`.

    Accepts a single image, a sequence of images, ``None`` (no image), or an
    existing result, which is returned unchanged.  Image strings are never
    altered, so assembling twice yields an equal result.

    Raises:
        TypeError: If ``output`` is none of the accepted shapes.
        ValueError: If a string is not an image data URI.
    """
    if isinstance(output, GenerationResult):
        return output
    if output is None:
        return GenerationResult()
    if isinstance(output, str):
        return GenerationResult(images=[ImageDataURI(output)])
    if isinstance(output, Sequence):
        return GenerationResult(images=[ImageDataURI(item) for item in output])
    raise TypeError(f"cannot assemble a result from {type(output).__name__}")
