"""Shared pytest fixtures for Artifex tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from artifex.core.config import ArtifexConfig
from artifex.core.dispatcher import GenerationDispatcher
from artifex.core.schemas import ImageDataURI, ModelCallSpec, ModelReply

# Small but valid base64 payloads; the bytes need not be a decodable image.
PNG_URI = "data:image/png;base64,AAA="
REFERENCE_URI = "data:image/png;base64,iVBORw0KGgo="
JPEG_URI = "data:image/jpeg;base64,/9j/4AAQ"


class FakeImageModel:
    """Scripted stand-in for the hosted image model.

    Each call pops the next scripted reply; an ``Exception`` instance in the
    script is raised instead of returned.  Once the script is exhausted every
    call returns ``default``.

    Attributes:
        calls: Every :class:`ModelCallSpec` received, in order.
    """

    def __init__(self, replies=None, default: ModelReply | None = None) -> None:
        self.calls: list[ModelCallSpec] = []
        self._replies = list(replies or [])
        self._default = default or ModelReply(image=ImageDataURI(PNG_URI))

    async def generate(self, spec: ModelCallSpec) -> ModelReply:
        self.calls.append(spec)
        reply = self._replies.pop(0) if self._replies else self._default
        if isinstance(reply, Exception):
            raise reply
        return reply

    def script(self, *replies) -> None:
        """Replace the remaining script."""
        self._replies = list(replies)


def image_reply(uri: str = PNG_URI) -> ModelReply:
    return ModelReply(image=ImageDataURI(uri))


def empty_reply(text: str = "", finish_reason: str | None = None) -> ModelReply:
    return ModelReply(image=None, text=text, finish_reason=finish_reason)


@pytest.fixture
def test_config() -> ArtifexConfig:
    """Create a test configuration that ignores any local .env file.

    Returns:
        ArtifexConfig instance for testing
    """
    return ArtifexConfig(
        _env_file=None,
        api_key="test-key",
        model_id="gemini-2.0-flash-preview-image-generation",
        api_base="https://example.test/v1beta",
        default_variations=4,
        max_variations=8,
        variation_concurrency=1,
    )


@pytest.fixture
def fake_model() -> FakeImageModel:
    """Fake model that returns ``PNG_URI`` for every call by default."""
    return FakeImageModel()


@pytest.fixture
def dispatcher(fake_model: FakeImageModel, test_config: ArtifexConfig) -> GenerationDispatcher:
    return GenerationDispatcher(fake_model, test_config)


@pytest.fixture
def test_client(fake_model: FakeImageModel, test_config: ArtifexConfig) -> Iterator:
    """FastAPI TestClient whose dispatcher talks to ``fake_model``.

    The lifespan handler runs as usual; its dispatcher is then replaced so
    that no request ever leaves the process.
    """
    from fastapi.testclient import TestClient

    from artifex.api import main as api_main

    with TestClient(api_main.app) as client:
        api_main.app.state.dispatcher = GenerationDispatcher(fake_model, test_config)
        yield client
