"""Exception hierarchy for Artifex.

Every failure raised by the core package derives from :class:`ArtifexError`
so that callers (the FastAPI layer, scripts) can catch the whole family in
one place.

Hierarchy
---------
::

    ArtifexError
    ├── ValidationError        request shape rejected before any model call
    └── ModelError             the model produced no usable image
        └── ModelTransportError  the model endpoint could not be reached
"""

from __future__ import annotations


class ArtifexError(Exception):
    """Base class for all Artifex errors."""


class ValidationError(ArtifexError):
    """A request field is missing or malformed.

    Raised before any external call is attempted.  The message is intended
    to be displayed directly to the user.

    Attributes:
        field: Dotted path of the offending field (e.g. ``"reference_image"``).
        message: Human-readable description of the problem.
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ModelError(ArtifexError):
    """The image model returned no usable image for an operation that needs one.

    Attributes:
        operation: Name of the operation that failed (e.g. ``"enhance"``).
        message: Reason reported by the model, or a generic description.
    """

    def __init__(self, operation: str, message: str) -> None:
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


class ModelTransportError(ModelError):
    """The model endpoint rejected the request or could not be reached."""
