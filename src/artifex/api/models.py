"""Pydantic request models for the Artifex HTTP API.

Only the text-to-image form needs an HTTP-specific model: its structured
fields (style, artist, aspect ratio) are composed into a single prompt
before the core request is validated.  The reference-image routes accept
raw JSON objects and hand them to :func:`artifex.core.validation.validate_request`
so that every rejection names the offending field the same way.

Models
------
TextToImageForm
    Payload for ``POST /api/generate`` and ``POST /api/prompt/compile``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TextToImageForm(BaseModel):
    """Request body for the text-to-image form.

    Attributes:
        prompt: Base scene description.  Left optional here so that a
            missing value is reported by
            :func:`~artifex.core.prompt_builder.compose_text_prompt` like a
            blank one.
        style: Artistic style preset (e.g. ``"watercolor"``).  Defaults to
            ``"realistic"``.
        artist: Artist to imitate, or ``"none"`` to skip the clause.
        aspect_ratio: Aspect ratio preset (e.g. ``"16:9"``).  Defaults to
            ``"1:1"``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt: str | None = Field(
        default=None,
        description="Base scene description. Required; a missing or blank value is rejected with 400.",
    )
    style: str | None = Field(
        default="realistic",
        description="Artistic style preset.",
    )
    artist: str | None = Field(
        default="none",
        description="Artist to imitate, or 'none' to skip.",
    )
    aspect_ratio: str | None = Field(
        default="1:1",
        description="Aspect ratio preset (e.g. '1:1', '16:9').",
    )
