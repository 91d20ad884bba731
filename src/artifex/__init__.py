"""Artifex - prompt and reference-image driven generation on a hosted model."""

__version__ = "0.1.0"

from artifex.core.config import ArtifexConfig, config
from artifex.core.dispatcher import GenerationDispatcher
from artifex.core.schemas import GenerationResult, ImageDataURI

__all__ = [
    "ArtifexConfig",
    "GenerationDispatcher",
    "GenerationResult",
    "ImageDataURI",
    "config",
]
