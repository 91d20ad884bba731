"""Request, response and model-call shapes for Artifex.

Models
------
ImageDataURI
    ``str`` subclass for ``data:<mime>;base64,<payload>`` strings.  Parsed
    once at the boundary; re-wrapping an existing instance is a no-op.
TextToImageRequest, VariationsRequest, EnhanceRequest,
StyleTransferRequest, FixImageRequest
    The request variants, discriminated on ``kind``.  Field names are
    accepted in snake_case or in the camelCase used by browser clients.
GenerationResult
    Uniform output of every operation: an ordered list of images plus any
    skipped variation indices.
TextPart, MediaPart, ModelCallSpec, ModelReply
    The normalized request sent to the image model and the reply it returns.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    GetCoreSchemaHandler,
    GetJsonSchemaHandler,
    StringConstraints,
)
from pydantic.alias_generators import to_camel
from pydantic.json_schema import JsonSchemaValue
from pydantic_core import core_schema

_DATA_URI_RE = re.compile(
    r"data:(?P<mime>[A-Za-z0-9.+-]+/[A-Za-z0-9.+-]+);base64,(?P<data>[A-Za-z0-9+/=\s]+)"
)

# Every request and response carries both modalities; IMAGE alone is refused
# by the preview image model.
RESPONSE_MODALITIES: tuple[str, ...] = ("TEXT", "IMAGE")


class ImageDataURI(str):
    """An image encoded inline as ``data:<mime>;base64,<payload>``.

    Construction validates the MIME type (must be ``image/*``) and the base64
    payload.  Wrapping an existing ``ImageDataURI`` returns it unchanged, so
    a value checked at the boundary is never re-validated downstream.

    Attributes:
        mime_type: Lower-cased MIME type, e.g. ``"image/png"``.
        payload: The base64 text after the comma.

    Raises:
        ValueError: If the string is not a base64 image data URI.
    """

    mime_type: str
    payload: str

    def __new__(cls, value: str) -> ImageDataURI:
        if isinstance(value, ImageDataURI):
            return value
        if not isinstance(value, str):
            raise ValueError("image must be a data URI string")

        text = value.strip()
        match = _DATA_URI_RE.fullmatch(text)
        if match is None:
            raise ValueError("expected a data URI of the form 'data:<mimetype>;base64,<encoded_data>'")

        mime_type = match.group("mime").lower()
        if not mime_type.startswith("image/"):
            raise ValueError(f"unsupported MIME type '{mime_type}', expected image/*")

        payload = match.group("data")
        try:
            base64.b64decode(payload, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"invalid base64 payload: {exc}") from exc

        obj = super().__new__(cls, text)
        obj.mime_type = mime_type
        obj.payload = payload
        return obj

    def to_bytes(self) -> bytes:
        """Decode the payload into raw image bytes."""
        return base64.b64decode(self.payload)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str = "image/png") -> ImageDataURI:
        """Encode raw image bytes as a data URI."""
        encoded = base64.b64encode(data).decode("ascii")
        return cls(f"data:{mime_type};base64,{encoded}")

    @classmethod
    def _validate(cls, value: Any) -> ImageDataURI:
        return cls(value)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.plain_serializer_function_ser_schema(str),
        )

    @classmethod
    def __get_pydantic_json_schema__(
        cls, schema: core_schema.CoreSchema, handler: GetJsonSchemaHandler
    ) -> JsonSchemaValue:
        return {
            "type": "string",
            "format": "data-uri",
            "description": "Image as 'data:<mimetype>;base64,<encoded_data>'.",
        }


RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class _RequestModel(BaseModel):
    """Shared model configuration for every request variant."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="forbid",
    )


class TextToImageRequest(_RequestModel):
    """Generate one image from a (composed) text prompt."""

    kind: Literal["text-to-image"] = "text-to-image"
    prompt: RequiredText = Field(
        ...,
        description="A detailed text prompt describing the desired image.",
    )


class VariationsRequest(_RequestModel):
    """Generate ``count`` independent variations of a reference image.

    Attributes:
        reference_image: The image every variation is derived from.
        prompt: Text describing the desired variations.
        count: Number of model calls to make (at least 1, default 4).
    """

    kind: Literal["variations"] = "variations"
    reference_image: ImageDataURI = Field(
        ...,
        description="Reference image as a data URI.",
    )
    prompt: RequiredText = Field(
        ...,
        description="A text prompt describing the desired variations.",
    )
    count: int = Field(
        default=4,
        ge=1,
        strict=True,
        validation_alias=AliasChoices("count", "numberOfVariations"),
        description="The number of image variations to generate.",
    )


class EnhanceRequest(_RequestModel):
    """Enhance or restyle an existing image according to a description."""

    kind: Literal["enhance"] = "enhance"
    existing_image: ImageDataURI = Field(
        ...,
        validation_alias=AliasChoices("existing_image", "existingImage", "existingImageDataUri"),
        description="The image to enhance, as a data URI.",
    )
    enhancement_description: RequiredText = Field(
        ...,
        description="The desired enhancements or style transformations.",
    )


class StyleTransferRequest(_RequestModel):
    """Generate a new image that keeps the style of a reference image."""

    kind: Literal["style-transfer"] = "style-transfer"
    reference_image: ImageDataURI = Field(
        ...,
        validation_alias=AliasChoices("reference_image", "referenceImage", "referenceImageDataUri"),
        description="Reference image whose style is kept, as a data URI.",
    )
    prompt_text: RequiredText = Field(
        ...,
        description="The text prompt to guide image generation.",
    )


class FixImageRequest(_RequestModel):
    """Regenerate an image with user-identified undesired elements removed."""

    kind: Literal["fix"] = "fix"
    image: ImageDataURI = Field(
        ...,
        description="The image to fix, as a data URI.",
    )
    prompt: RequiredText = Field(
        ...,
        description="The prompt originally used to generate the image.",
    )
    undesired_elements: RequiredText = Field(
        ...,
        validation_alias=AliasChoices(
            "undesired_elements", "undesiredElements", "descriptionOfUndesiredElements"
        ),
        description="Description of the elements in the image that are undesired.",
    )


GenerationRequest = Annotated[
    Union[
        TextToImageRequest,
        VariationsRequest,
        EnhanceRequest,
        StyleTransferRequest,
        FixImageRequest,
    ],
    Field(discriminator="kind"),
]

REQUEST_KINDS: tuple[str, ...] = ("text-to-image", "variations", "enhance", "style-transfer", "fix")


class SkippedVariation(BaseModel):
    """A variation call that produced no image."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., description="Zero-based iteration index.")
    reason: str = Field(..., description="Why the model returned no image.")


class GenerationResult(BaseModel):
    """Uniform output of every generation operation.

    An empty ``images`` list is a soft failure (the model returned nothing),
    not an exception.
    """

    model_config = ConfigDict(frozen=True)

    images: list[ImageDataURI] = Field(default_factory=list)
    skipped: list[SkippedVariation] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Model call shapes.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextPart:
    """A plain-text prompt part."""

    text: str


@dataclass(frozen=True)
class MediaPart:
    """An embedded reference image prompt part."""

    url: ImageDataURI


PromptPart = Union[TextPart, MediaPart]


@dataclass(frozen=True)
class ModelCallSpec:
    """The normalized request actually sent to the image model.

    Attributes:
        prompt: A plain string, or an ordered tuple of text and media parts.
        model: Model identifier.
        response_modalities: Always ``("TEXT", "IMAGE")``.
    """

    prompt: str | tuple[PromptPart, ...]
    model: str
    response_modalities: tuple[str, ...] = RESPONSE_MODALITIES

    @property
    def parts(self) -> tuple[PromptPart, ...]:
        """The prompt as a tuple of parts (a string becomes one text part)."""
        if isinstance(self.prompt, str):
            return (TextPart(self.prompt),)
        return self.prompt


@dataclass(frozen=True)
class ModelReply:
    """What the image model returned for one call.

    ``image`` is ``None`` when the model produced no image; ``text`` and
    ``finish_reason`` usually explain why.
    """

    image: ImageDataURI | None
    text: str = ""
    finish_reason: str | None = None

    def describe_failure(self) -> str:
        """Best available explanation for a missing image."""
        if self.text.strip():
            return self.text.strip()
        if self.finish_reason:
            return f"finish reason: {self.finish_reason}"
        return "model returned no image"
