"""Client for the hosted image-generation model.

The dispatcher depends only on the :class:`ImageModel` protocol: anything
with an ``async generate(spec) -> ModelReply`` method will do.  Tests use a
scripted fake; production uses :class:`GeminiImageClient`, which talks to the
generative language REST API with ``httpx``.

Request Shape
-------------
::

    POST {api_base}/models/{model}:generateContent
    x-goog-api-key: <key>

    {
      "contents": [{"role": "user", "parts": [
          {"inlineData": {"mimeType": "image/png", "data": "<base64>"}},
          {"text": "..."}
      ]}],
      "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]}
    }

The first inline image part of the first candidate becomes the reply image;
text parts are joined and kept as the model's explanation.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from .config import ArtifexConfig
from .errors import ModelTransportError
from .schemas import ImageDataURI, MediaPart, ModelCallSpec, ModelReply, TextPart

logger = logging.getLogger(__name__)


class ImageModel(Protocol):
    """Anything that can turn a :class:`ModelCallSpec` into a :class:`ModelReply`."""

    async def generate(self, spec: ModelCallSpec) -> ModelReply: ...


def build_payload(spec: ModelCallSpec) -> dict[str, Any]:
    """Translate a call spec into the ``generateContent`` JSON body."""
    parts: list[dict[str, Any]] = []
    for part in spec.parts:
        if isinstance(part, MediaPart):
            parts.append({"inlineData": {"mimeType": part.url.mime_type, "data": part.url.payload}})
        elif isinstance(part, TextPart):
            parts.append({"text": part.text})
    return {
        "contents": [{"role": "user", "parts": parts}],
        "generationConfig": {"responseModalities": list(spec.response_modalities)},
    }


def parse_reply(body: dict[str, Any]) -> ModelReply:
    """Extract the first image, any text, and the finish reason from a response body."""
    candidates = body.get("candidates") or []
    if not candidates:
        feedback = body.get("promptFeedback") or {}
        block_reason = feedback.get("blockReason")
        return ModelReply(image=None, finish_reason=block_reason)

    candidate = candidates[0]
    content_parts = (candidate.get("content") or {}).get("parts") or []

    image: ImageDataURI | None = None
    texts: list[str] = []
    for part in content_parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data") and image is None:
            mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            try:
                image = ImageDataURI(f"data:{mime};base64,{inline['data']}")
            except ValueError as exc:
                logger.warning("Discarding malformed inline image part: %s", exc)
        elif part.get("text"):
            texts.append(part["text"])

    return ModelReply(
        image=image,
        text="\n".join(texts),
        finish_reason=candidate.get("finishReason"),
    )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message") or response.text
    return response.text


class GeminiImageClient:
    """``ImageModel`` implementation backed by the generative language REST API.

    Attributes:
        _config (ArtifexConfig):
            Supplies the API key, base URL and timeout.
        _client (httpx.AsyncClient):
            Shared connection pool.  Closed by :meth:`aclose` only when this
            instance created it.
    """

    def __init__(self, config: ArtifexConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.request_timeout)

    async def __aenter__(self) -> GeminiImageClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def generate(self, spec: ModelCallSpec) -> ModelReply:
        """Send one ``generateContent`` request.

        Raises:
            ModelTransportError: If no API key is configured, the endpoint is
                unreachable, or it answers with an HTTP error status or a body
                that is not a JSON object.
        """
        if not self._config.api_key:
            raise ModelTransportError(
                spec.model, "ARTIFEX_API_KEY is not configured. Set it in your environment or .env file."
            )

        url = f"{self._config.api_base.rstrip('/')}/models/{spec.model}:generateContent"
        headers = {"x-goog-api-key": self._config.api_key, "Content-Type": "application/json"}

        try:
            response = await self._client.post(url, headers=headers, json=build_payload(spec))
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            detail = _error_detail(exc.response)
            logger.error("Model API returned %s: %s", exc.response.status_code, detail)
            raise ModelTransportError(spec.model, f"API error {exc.response.status_code}: {detail}") from exc
        except httpx.HTTPError as exc:
            logger.error("Model API request failed: %s", exc)
            raise ModelTransportError(spec.model, f"request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError as exc:
            logger.error("Model API returned a non-JSON body: %s", response.text[:200])
            raise ModelTransportError(spec.model, f"invalid response body: {exc}") from exc
        if not isinstance(body, dict):
            logger.error("Model API returned a %s body, expected an object.", type(body).__name__)
            raise ModelTransportError(
                spec.model, f"invalid response body: expected a JSON object, got {type(body).__name__}"
            )

        return parse_reply(body)
