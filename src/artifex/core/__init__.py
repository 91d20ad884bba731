"""Core functionality for Artifex image generation.

This package holds everything between an incoming request and the hosted
image model:

- **Configuration** (config.py): Pydantic Settings, ``ARTIFEX_`` prefix
- **Schemas** (schemas.py): ``ImageDataURI``, request variants, results
- **Validation** (validation.py): tagged ``Valid`` / ``Invalid`` results
- **Prompt building** (prompt_builder.py): composed text-to-image prompt and
  per-mode instruction parts
- **Model client** (model_client.py): ``ImageModel`` protocol and the REST
  client for the hosted model
- **Dispatcher** (dispatcher.py): the five generation operations
- **Results** (results.py): normalization into ``GenerationResult``
- **Errors** (errors.py): ``ValidationError``, ``ModelError``,
  ``ModelTransportError``
"""

from artifex.core.config import ArtifexConfig, config
from artifex.core.dispatcher import GenerationDispatcher
from artifex.core.errors import ArtifexError, ModelError, ModelTransportError, ValidationError
from artifex.core.model_client import GeminiImageClient, ImageModel
from artifex.core.prompt_builder import compose_text_prompt
from artifex.core.results import assemble_result
from artifex.core.schemas import GenerationResult, ImageDataURI
from artifex.core.validation import Invalid, Valid, require_valid, validate_request

__all__ = [
    "ArtifexConfig",
    "ArtifexError",
    "GeminiImageClient",
    "GenerationDispatcher",
    "GenerationResult",
    "ImageDataURI",
    "ImageModel",
    "Invalid",
    "ModelError",
    "ModelTransportError",
    "Valid",
    "ValidationError",
    "assemble_result",
    "compose_text_prompt",
    "config",
    "require_valid",
    "validate_request",
]
