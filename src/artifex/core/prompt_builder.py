"""Prompt composition for Artifex generation modes.

Text-to-image prompts are composed from structured form fields in a fixed
order.  The order is part of the contract: reordering the clauses changes
what the model draws, so identical inputs must always produce an identical
string.

Composed Structure::

    <prompt>, style: <style>[, in the style of <artist>], aspect ratio: <ratio>

The artist clause is omitted when no artist is given or when the artist is
the ``"none"`` sentinel sent by the form.

Reference-image modes (variations, enhance, style transfer, fix) are sent
as ordered part lists that interleave the image with instruction text.  The
builders for those lists live here too so every piece of wording the model
sees is defined in one module.

Usage
-----
::

    compiled = compose_text_prompt(
        "A majestic lion in a vibrant jungle",
        style="watercolor",
        artist="none",
        aspect_ratio="16:9",
    )
    # "A majestic lion in a vibrant jungle, style: watercolor, aspect ratio: 16:9"
"""

from __future__ import annotations

from .errors import ValidationError
from .schemas import ImageDataURI, MediaPart, PromptPart, TextPart

DEFAULT_STYLE = "realistic"
DEFAULT_ASPECT_RATIO = "1:1"
ARTIST_NONE = "none"

# Styles offered by the form; values outside this list are passed through.
STYLES: tuple[str, ...] = (
    "realistic",
    "watercolor",
    "filmic",
    "anime",
    "pixel-art",
    "3d-model",
)

ASPECT_RATIOS: dict[str, str] = {
    "1:1": "Square (1:1)",
    "16:9": "Widescreen (16:9)",
    "9:16": "Portrait (9:16)",
    "4:3": "Landscape (4:3)",
    "3:4": "Tall (3:4)",
}


def compose_text_prompt(
    prompt: str,
    style: str | None = None,
    artist: str | None = None,
    aspect_ratio: str | None = None,
) -> str:
    """Compose the text-to-image prompt from its structured fields.

    Args:
        prompt: Base scene description.  Must not be blank.
        style: Artistic style; blank or ``None`` means ``"realistic"``.
        artist: Artist to imitate; blank, ``None`` or ``"none"`` omits the
            clause.
        aspect_ratio: Requested aspect ratio; blank or ``None`` means
            ``"1:1"``.

    Returns:
        The composed prompt string.

    Raises:
        ValidationError: If ``prompt`` is blank.
    """
    base = (prompt or "").strip()
    if not base:
        raise ValidationError("prompt", "Prompt is required.")

    style_value = (style or "").strip() or DEFAULT_STYLE
    ratio_value = (aspect_ratio or "").strip() or DEFAULT_ASPECT_RATIO
    artist_value = (artist or "").strip()

    composed = f"{base}, style: {style_value}"
    if artist_value and artist_value.lower() != ARTIST_NONE:
        composed += f", in the style of {artist_value}"
    composed += f", aspect ratio: {ratio_value}"
    return composed


def variation_prompt(prompt: str, index: int) -> str:
    """Text for the ``index``-th (zero-based) variation call."""
    return f"{prompt}(Variation {index + 1})"


def variation_parts(reference_image: ImageDataURI, prompt: str, index: int) -> tuple[PromptPart, ...]:
    return (MediaPart(reference_image), TextPart(variation_prompt(prompt, index)))


def enhance_parts(existing_image: ImageDataURI, description: str) -> tuple[PromptPart, ...]:
    """Image first, then the edit instruction and the resolution constraint."""
    return (
        MediaPart(existing_image),
        TextPart(f"Enhance the provided image according to the following description: {description}."),
        TextPart("Keep the original resolution of the image."),
    )


def style_transfer_parts(reference_image: ImageDataURI, prompt_text: str) -> tuple[PromptPart, ...]:
    return (
        MediaPart(reference_image),
        TextPart(
            "Generate an image based on the following text prompt while maintaining "
            "the style of the reference image."
        ),
        TextPart(prompt_text),
    )


def fix_parts(image: ImageDataURI, prompt: str, undesired_elements: str) -> tuple[PromptPart, ...]:
    """Instruction text for regenerating an image without undesired elements."""
    return (
        TextPart(
            "You are an AI image editing expert. Your task is to fix undesired elements "
            "in an image based on a user's description.\n\n"
            f"The original prompt used to generate the image was: {prompt}\n\n"
            f"The user has identified the following undesired elements: {undesired_elements}\n\n"
            "Here is the image:"
        ),
        MediaPart(image),
        TextPart(
            "Please generate a new version of the image with the undesired elements removed "
            "or altered according to the user's description. Ensure that the new image "
            "maintains the overall style and composition of the original image while "
            "addressing the identified issues."
        ),
    )
