"""Configuration management for Artifex.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the ARTIFEX_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (ARTIFEX_* prefix)
2. .env file in the project root
3. Default values defined in ArtifexConfig

Example .env file:
    ARTIFEX_API_KEY=your-gemini-api-key
    ARTIFEX_MODEL_ID=gemini-2.0-flash-preview-image-generation
    ARTIFEX_VARIATION_CONCURRENCY=1
    ARTIFEX_LOG_LEVEL=DEBUG

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from artifex.core.config import config

    print(config.model_id)
    print(config.default_variations)

Model Constraints
-----------------
The configured model must be able to return text and image parts in the same
response.  Every request is sent with ``responseModalities = ["TEXT", "IMAGE"]``;
image-only modality is rejected by the preview image model.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# The only hosted model variant known to return images alongside text.
DEFAULT_MODEL_ID = "gemini-2.0-flash-preview-image-generation"


class ArtifexConfig(BaseSettings):
    """Main configuration for Artifex.

    Values are loaded from environment variables with the ARTIFEX_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Model Settings:
        api_key : str | None
            API key for the hosted model (sent as ``x-goog-api-key``)
        model_id : str
            Model identifier; must support TEXT+IMAGE output
        api_base : str
            Base URL of the generative language REST API
        request_timeout : float
            Per-request timeout in seconds

    Variation Settings:
        default_variations : int
            Number of variations when a request omits ``count``
        max_variations : int
            Upper bound accepted for ``count``
        variation_concurrency : int
            Calls in flight at once (1 = strictly sequential)

    Server Settings:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn (1024-65535)
        log_level : Literal["DEBUG", "INFO", "WARNING", "ERROR"]
            Root log level applied by the entry point

    Examples
    --------
        >>> custom_config = ArtifexConfig(api_key="abc", variation_concurrency=2)
        >>> custom_config.variation_concurrency
        2
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ARTIFEX_",
        case_sensitive=False,
        extra="ignore",
    )

    # Model settings
    api_key: str | None = Field(
        default=None,
        description="API key for the hosted image model",
    )
    model_id: str = Field(
        default=DEFAULT_MODEL_ID,
        description="Model identifier (must support TEXT and IMAGE output)",
    )
    api_base: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the generative language REST API",
    )
    request_timeout: float = Field(
        default=120.0,
        description="Per-request timeout in seconds",
        gt=0,
    )

    # Variation settings
    default_variations: int = Field(
        default=4,
        description="Number of variations generated when count is omitted",
        ge=1,
    )
    max_variations: int = Field(
        default=8,
        description="Maximum accepted variation count per request",
        ge=1,
    )
    variation_concurrency: int = Field(
        default=1,
        description="Variation calls in flight at once (1 = sequential)",
        ge=1,
        le=8,
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=7860,
        description="Server port",
        ge=1024,
        le=65535,
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level",
    )


# Global configuration instance
# Loads values from environment variables (ARTIFEX_* prefix) and .env file.
config = ArtifexConfig()
