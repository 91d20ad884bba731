"""Artifex: FastAPI Application.

This module defines the FastAPI ``app`` instance, all REST API routes, and
the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The application is stateless between requests:

- **Configuration** comes from :data:`artifex.core.config.config`
  (``ARTIFEX_*`` environment variables / ``.env``).
- **Generation** is delegated to a single
  :class:`~artifex.core.dispatcher.GenerationDispatcher` created in the
  lifespan handler and stored on ``app.state``.
- **Images** travel inline as data URIs in both directions; nothing is
  written to disk.

Endpoints
---------
========  ==========================  ======================================
Method    Path                        Purpose
========  ==========================  ======================================
GET       ``/api/config``             Model, styles, aspect ratios, limits
POST      ``/api/prompt/compile``     Preview the composed text prompt
POST      ``/api/generate``           Text-to-image from the form fields
POST      ``/api/variations``         Variations of a reference image
POST      ``/api/enhance``            Enhance an existing image
POST      ``/api/style-transfer``     New image in a reference image's style
POST      ``/api/fix``                Remove undesired elements
========  ==========================  ======================================

Errors
------
- :class:`~artifex.core.errors.ValidationError` → 400, detail names the field.
- :class:`~artifex.core.errors.ModelError` (including transport failures) → 502.

Usage
-----
CLI (installed entry point)::

    artifex

Direct invocation::

    python -m artifex.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from artifex import __version__
from artifex.api.models import TextToImageForm
from artifex.core.config import config
from artifex.core.dispatcher import GenerationDispatcher
from artifex.core.errors import ModelError, ValidationError
from artifex.core.model_client import GeminiImageClient
from artifex.core.prompt_builder import ASPECT_RATIOS, STYLES, compose_text_prompt
from artifex.core.schemas import (
    EnhanceRequest,
    FixImageRequest,
    GenerationResult,
    StyleTransferRequest,
    VariationsRequest,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Application lifecycle: model client setup and teardown.
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    On startup:
        Creates one :class:`GeminiImageClient` (one HTTP connection pool)
        and the :class:`GenerationDispatcher` that uses it.

    On shutdown:
        Closes the HTTP connection pool.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control back to the application for the duration of its lifetime.
    """
    # --- Startup -----------------------------------------------------------
    model_client = GeminiImageClient(config)
    app.state.model_client = model_client
    app.state.dispatcher = GenerationDispatcher(model_client, config)
    logger.info("Dispatcher ready (model=%s).", config.model_id)
    if not config.api_key:
        logger.warning("ARTIFEX_API_KEY is not set; generation requests will fail.")

    yield  # Application runs here.

    # --- Shutdown ----------------------------------------------------------
    await model_client.aclose()
    logger.info("Model client closed on shutdown.")


# ---------------------------------------------------------------------------
# FastAPI application instance.
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Artifex",
    description="Text and reference-image driven generation on a hosted image model.",
    version=__version__,
    lifespan=lifespan,
)

# Allow cross-origin requests so a browser front-end served from another
# port can call the API during development.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Helpers.
# ---------------------------------------------------------------------------


async def _run(kind: str, payload: dict[str, Any]) -> GenerationResult:
    """Run one operation, translating core errors into HTTP errors.

    Raises:
        HTTPException: 400 for rejected input, 502 when the model fails.
    """
    dispatcher: GenerationDispatcher = app.state.dispatcher
    try:
        return await dispatcher.run(kind, payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"{exc.field}: {exc.message}") from exc
    except ModelError as exc:
        raise HTTPException(status_code=502, detail=exc.message) from exc


def _response(mode: str, result: GenerationResult, **extra: Any) -> dict:
    body = {"success": True, "mode": mode, **extra}
    body.update(result.model_dump(mode="json"))
    return body


def _documented_body(model: type[BaseModel], **extra_properties: dict[str, Any]) -> dict[str, Any]:
    """OpenAPI ``requestBody`` for a route that validates its raw JSON body itself.

    The routes take a plain object so that rejections go through
    :func:`~artifex.core.validation.validate_request`; this only documents
    the accepted shape.  ``kind`` is set by the route and is left out.
    """
    schema = model.model_json_schema()
    schema["properties"].pop("kind", None)
    schema["properties"].update(extra_properties)
    return {"requestBody": {"content": {"application/json": {"schema": schema}}, "required": True}}


def _with_enhance_fallback(payload: dict[str, Any]) -> dict[str, Any]:
    """Use the main prompt when no enhancement description was given.

    The form always sends its main ``prompt`` field; the enhance request has
    no such field, so it is removed once it has served as the fallback.
    """
    data = dict(payload)
    prompt = data.pop("prompt", None)
    description = data.get("enhancement_description") or data.get("enhancementDescription")
    if not (description or "").strip() and prompt:
        data.pop("enhancementDescription", None)
        data["enhancement_description"] = prompt
    return data


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/config")
async def get_config() -> dict:
    """Return the configuration the front-end needs to build its form.

    Returns:
        Dictionary with keys ``version``, ``model_id``, ``styles``,
        ``aspect_ratios``, ``default_variations`` and ``max_variations``.
    """
    return {
        "version": __version__,
        "model_id": config.model_id,
        "styles": list(STYLES),
        "aspect_ratios": [{"id": key, "label": label} for key, label in ASPECT_RATIOS.items()],
        "default_variations": config.default_variations,
        "max_variations": config.max_variations,
    }


@app.post("/api/prompt/compile")
async def compile_prompt(form: TextToImageForm) -> dict:
    """Preview the composed text-to-image prompt without calling the model.

    Raises:
        HTTPException: 400 if the prompt is blank.
    """
    try:
        compiled = compose_text_prompt(form.prompt, form.style, form.artist, form.aspect_ratio)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"{exc.field}: {exc.message}") from exc
    return {"compiled_prompt": compiled}


@app.post("/api/generate")
async def generate_image(form: TextToImageForm) -> dict:
    """Generate one image from the text-to-image form.

    The structured fields are composed into a single prompt (see
    :func:`~artifex.core.prompt_builder.compose_text_prompt`) which is then
    sent to the model.

    Returns:
        Dictionary with ``success``, ``mode``, ``compiled_prompt``,
        ``images`` and ``skipped``.
    """
    try:
        compiled = compose_text_prompt(form.prompt, form.style, form.artist, form.aspect_ratio)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"{exc.field}: {exc.message}") from exc

    result = await _run("text-to-image", {"prompt": compiled})
    return _response("text-to-image", result, compiled_prompt=compiled)


@app.post("/api/variations", openapi_extra=_documented_body(VariationsRequest))
async def generate_variations(payload: dict[str, Any] = Body(...)) -> dict:
    """Generate variations of a reference image.

    Fewer images than requested is a normal outcome; the indices that
    produced nothing are listed under ``skipped``.
    """
    result = await _run("variations", payload)
    return _response("variations", result)


@app.post(
    "/api/enhance",
    openapi_extra=_documented_body(
        EnhanceRequest,
        prompt={"type": "string", "description": "Used when enhancementDescription is blank."},
    ),
)
async def enhance_image(payload: dict[str, Any] = Body(...)) -> dict:
    """Enhance an existing image according to a description."""
    result = await _run("enhance", _with_enhance_fallback(payload))
    return _response("enhance", result)


@app.post("/api/style-transfer", openapi_extra=_documented_body(StyleTransferRequest))
async def style_transfer(payload: dict[str, Any] = Body(...)) -> dict:
    """Generate a new image that keeps the style of a reference image."""
    result = await _run("style-transfer", payload)
    return _response("style-transfer", result)


@app.post("/api/fix", openapi_extra=_documented_body(FixImageRequest))
async def fix_image(payload: dict[str, Any] = Body(...)) -> dict:
    """Regenerate an image with the described undesired elements removed."""
    result = await _run("fix", payload)
    return _response("fix", result)


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Configure logging and launch the uvicorn ASGI server.

    Host, port and log level come from :data:`~artifex.core.config.config`
    (``ARTIFEX_SERVER_HOST``, ``ARTIFEX_SERVER_PORT``, ``ARTIFEX_LOG_LEVEL``).

    This function is registered as the ``artifex`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "artifex.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
