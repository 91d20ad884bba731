"""Request validation for Artifex operations.

:func:`validate_request` checks a raw payload against the request variant
named by ``kind`` and returns a tagged result, :class:`Valid` or
:class:`Invalid`, instead of raising.  Callers that want an exception at
the operation boundary pass the result through :func:`require_valid`.

Validation never touches the image model, so a rejected request is
guaranteed to cost zero external calls.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union

import pydantic
from pydantic import AliasChoices, TypeAdapter

from .errors import ValidationError
from .schemas import (
    REQUEST_KINDS,
    EnhanceRequest,
    FixImageRequest,
    GenerationRequest,
    StyleTransferRequest,
    TextToImageRequest,
    VariationsRequest,
)

logger = logging.getLogger(__name__)

_MODELS_BY_KIND: dict[str, type[pydantic.BaseModel]] = {
    "text-to-image": TextToImageRequest,
    "variations": VariationsRequest,
    "enhance": EnhanceRequest,
    "style-transfer": StyleTransferRequest,
    "fix": FixImageRequest,
}

_REQUEST_ADAPTER: TypeAdapter[Any] = TypeAdapter(GenerationRequest)


@dataclass(frozen=True)
class Valid:
    """Successful validation; ``value`` is the parsed request model."""

    value: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Invalid:
    """Failed validation, naming the first offending field."""

    field: str
    message: str

    @property
    def ok(self) -> bool:
        return False


ValidationResult = Union[Valid, Invalid]


@lru_cache(maxsize=None)
def _field_names(kind: str) -> dict[str, str]:
    """Map every accepted input name of a variant to its canonical field name."""
    names: dict[str, str] = {}
    for name, info in _MODELS_BY_KIND[kind].model_fields.items():
        names[name] = name
        if info.alias:
            names[info.alias] = name
        if isinstance(info.validation_alias, AliasChoices):
            for choice in info.validation_alias.choices:
                if isinstance(choice, str):
                    names[choice] = name
        elif isinstance(info.validation_alias, str):
            names[info.validation_alias] = name
    return names


def _first_error(kind: str, exc: pydantic.ValidationError) -> Invalid:
    error = exc.errors()[0]
    loc = [str(part) for part in error.get("loc", ())]

    # Discriminated unions prefix the location with the tag value.
    if loc and loc[0] == kind:
        loc = loc[1:]

    names = _field_names(kind)
    if loc:
        loc[0] = names.get(loc[0], loc[0])
    field = ".".join(loc) or "request"
    return Invalid(field=field, message=error.get("msg", "invalid value"))


def validate_request(
    kind: str,
    payload: Mapping[str, Any],
    *,
    default_variations: int | None = None,
    max_variations: int | None = None,
) -> ValidationResult:
    """Validate a raw payload for the operation named by ``kind``.

    Args:
        kind: One of ``"text-to-image"``, ``"variations"``, ``"enhance"``,
            ``"style-transfer"`` or ``"fix"``.
        payload: Raw request fields (snake_case or camelCase names).
        default_variations: Count applied when a variations payload omits
            one.  ``None`` keeps the schema default of 4.
        max_variations: Upper bound for ``count``.  ``None`` means unbounded.

    Returns:
        :class:`Valid` wrapping the parsed request, or :class:`Invalid`
        naming the first missing or malformed field.
    """
    if kind not in _MODELS_BY_KIND:
        return Invalid(
            field="kind",
            message=f"unknown operation '{kind}', expected one of: {', '.join(REQUEST_KINDS)}",
        )
    if not isinstance(payload, Mapping):
        return Invalid(field="request", message="request body must be an object")

    data = dict(payload)
    data["kind"] = kind
    if (
        kind == "variations"
        and default_variations is not None
        and "count" not in data
        and "numberOfVariations" not in data
    ):
        data["count"] = default_variations

    try:
        request = _REQUEST_ADAPTER.validate_python(data)
    except pydantic.ValidationError as exc:
        invalid = _first_error(kind, exc)
        logger.debug("Rejected %s request: %s: %s", kind, invalid.field, invalid.message)
        return invalid

    if (
        isinstance(request, VariationsRequest)
        and max_variations is not None
        and request.count > max_variations
    ):
        return Invalid(field="count", message=f"must be at most {max_variations}")

    return Valid(request)


def require_valid(result: ValidationResult) -> Any:
    """Unwrap a validation result, raising on failure.

    Raises:
        ValidationError: If ``result`` is :class:`Invalid`.
    """
    if isinstance(result, Invalid):
        raise ValidationError(result.field, result.message)
    return result.value
