"""Tests for artifex.core.dispatcher: generation operations.

All tests use the scripted ``FakeImageModel`` from ``conftest`` so that no
network access occurs.  Async operations are driven with ``asyncio.run``.
Tests cover:

- Call shape for each operation (parts, model id, modalities).
- Sequential variation numbering and partial-success collection.
- Fatal empty output for single-image operations.
- Validation before any model call.
- Bounded concurrency and cancellation for variations.
"""

from __future__ import annotations

import asyncio

import pytest

from artifex.core.dispatcher import GenerationDispatcher
from artifex.core.errors import ModelError, ModelTransportError, ValidationError
from artifex.core.schemas import (
    EnhanceRequest,
    GenerationResult,
    ImageDataURI,
    MediaPart,
    ModelReply,
    TextPart,
    TextToImageRequest,
    VariationsRequest,
)
from conftest import JPEG_URI, PNG_URI, REFERENCE_URI, FakeImageModel, empty_reply, image_reply

IMG_1 = "data:image/png;base64,AQ=="
IMG_2 = "data:image/png;base64,Ag=="
IMG_3 = "data:image/png;base64,Aw=="
IMG_4 = "data:image/png;base64,BA=="


def _variations(count: int = 4, prompt: str = "A cat") -> dict:
    return {"referenceImage": REFERENCE_URI, "prompt": prompt, "count": count}


class TestGenerateFromText:
    """Test the text-to-image operation."""

    def test_returns_model_image(self, dispatcher, fake_model):
        """A cat prompt with a stub image yields exactly that image."""
        fake_model.script(image_reply("data:image/png;base64,AAA="))
        result = asyncio.run(dispatcher.run("text-to-image", {"prompt": "A cat"}))
        assert result == GenerationResult(images=["data:image/png;base64,AAA="])
        assert result.images == ["data:image/png;base64,AAA="]

    def test_call_shape(self, dispatcher, fake_model, test_config):
        asyncio.run(dispatcher.generate_from_text(TextToImageRequest(prompt="A cat")))
        assert len(fake_model.calls) == 1
        spec = fake_model.calls[0]
        assert spec.prompt == "A cat"
        assert spec.model == test_config.model_id
        assert spec.response_modalities == ("TEXT", "IMAGE")

    def test_empty_output_raises(self, dispatcher, fake_model):
        fake_model.script(empty_reply(text="I cannot help with that."))
        with pytest.raises(ModelError) as excinfo:
            asyncio.run(dispatcher.run("text-to-image", {"prompt": "A cat"}))
        assert excinfo.value.operation == "text-to-image"
        assert "I cannot help with that." in excinfo.value.message


class TestGenerateVariations:
    """Test the variations operation."""

    def test_four_sequential_numbered_calls(self, dispatcher, fake_model):
        asyncio.run(dispatcher.run("variations", _variations(4)))
        assert len(fake_model.calls) == 4
        texts = [spec.parts[1].text for spec in fake_model.calls]
        assert texts == [f"A cat(Variation {i})" for i in range(1, 5)]

    def test_every_call_embeds_reference_image(self, dispatcher, fake_model):
        asyncio.run(dispatcher.run("variations", _variations(3)))
        for spec in fake_model.calls:
            assert spec.parts[0] == MediaPart(ImageDataURI(REFERENCE_URI))

    def test_partial_success_keeps_order(self, dispatcher, fake_model):
        """Two empty replies out of four leave two images, in call order."""
        fake_model.script(
            image_reply(IMG_1),
            empty_reply(finish_reason="SAFETY"),
            image_reply(IMG_3),
            empty_reply(text="No image this time."),
        )
        result = asyncio.run(dispatcher.run("variations", _variations(4)))
        assert result.images == [IMG_1, IMG_3]
        assert [s.index for s in result.skipped] == [1, 3]
        assert result.skipped[0].reason == "finish reason: SAFETY"
        assert result.skipped[1].reason == "No image this time."

    def test_all_empty_is_soft_failure(self, dispatcher, fake_model):
        fake_model.script(*[empty_reply() for _ in range(2)])
        result = asyncio.run(dispatcher.run("variations", _variations(2)))
        assert result.images == []
        assert len(result.skipped) == 2

    def test_default_count_from_config(self, fake_model, test_config):
        cfg = test_config.model_copy(update={"default_variations": 3})
        dispatcher = GenerationDispatcher(fake_model, cfg)
        payload = {"referenceImage": REFERENCE_URI, "prompt": "A cat"}
        result = asyncio.run(dispatcher.run("variations", payload))
        assert len(result.images) == 3
        assert len(fake_model.calls) == 3

    def test_transport_error_aborts_batch(self, dispatcher, fake_model):
        fake_model.script(image_reply(IMG_1), ModelTransportError("m", "boom"))
        with pytest.raises(ModelTransportError):
            asyncio.run(dispatcher.run("variations", _variations(4)))
        assert len(fake_model.calls) == 2

    def test_sequential_calls_do_not_overlap(self, test_config):
        """With the default concurrency of 1, calls never overlap."""

        class TrackingModel(FakeImageModel):
            def __init__(self):
                super().__init__()
                self.active = 0
                self.peak = 0

            async def generate(self, spec):
                self.active += 1
                self.peak = max(self.peak, self.active)
                await asyncio.sleep(0)
                self.active -= 1
                return await super().generate(spec)

        model = TrackingModel()
        asyncio.run(GenerationDispatcher(model, test_config).run("variations", _variations(4)))
        assert model.peak == 1

    def test_bounded_concurrency_preserves_order(self, test_config):
        """Concurrent calls are capped and results stay in index order."""
        uris = [IMG_1, IMG_2, IMG_3, IMG_4]

        class SlowFirstModel(FakeImageModel):
            def __init__(self):
                super().__init__()
                self.active = 0
                self.peak = 0

            async def generate(self, spec):
                self.calls.append(spec)
                self.active += 1
                self.peak = max(self.peak, self.active)
                index = int(spec.parts[1].text.rsplit(" ", 1)[1].rstrip(")")) - 1
                # Earlier variations finish later.
                await asyncio.sleep(0.01 * (4 - index))
                self.active -= 1
                return image_reply(uris[index])

        model = SlowFirstModel()
        cfg = test_config.model_copy(update={"variation_concurrency": 2})
        result = asyncio.run(GenerationDispatcher(model, cfg).run("variations", _variations(4)))
        assert result.images == uris
        assert model.peak == 2

    def test_cancel_abandons_remaining_calls(self, test_config):
        async def scenario():
            cancel = asyncio.Event()

            class CancellingModel(FakeImageModel):
                async def generate(self, spec):
                    reply = await super().generate(spec)
                    if len(self.calls) == 2:
                        cancel.set()
                    return reply

            model = CancellingModel()
            request = VariationsRequest(reference_image=REFERENCE_URI, prompt="A cat", count=4)
            result = await GenerationDispatcher(model, test_config).generate_variations(
                request, cancel=cancel
            )
            return model, result

        model, result = asyncio.run(scenario())
        assert len(model.calls) == 2
        assert len(result.images) == 2

    def test_cancel_set_before_start(self, dispatcher, fake_model):
        async def scenario():
            cancel = asyncio.Event()
            cancel.set()
            return await dispatcher.run("variations", _variations(4), cancel=cancel)

        result = asyncio.run(scenario())
        assert result.images == []
        assert fake_model.calls == []


class TestEnhanceImage:
    """Test the enhance operation."""

    def test_call_shape(self, dispatcher, fake_model):
        fake_model.script(image_reply(JPEG_URI))
        request = EnhanceRequest(existing_image=REFERENCE_URI, enhancement_description="sharper")
        image = asyncio.run(dispatcher.enhance_image(request))
        assert image == JPEG_URI
        parts = fake_model.calls[0].parts
        assert parts[0] == MediaPart(ImageDataURI(REFERENCE_URI))
        assert "sharper" in parts[1].text
        assert "original resolution" in parts[2].text

    def test_empty_output_raises(self, dispatcher, fake_model):
        fake_model.script(empty_reply())
        payload = {"existingImage": REFERENCE_URI, "enhancementDescription": "sharper"}
        with pytest.raises(ModelError):
            asyncio.run(dispatcher.run("enhance", payload))

    def test_missing_image_makes_no_call(self, dispatcher, fake_model):
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(dispatcher.run("enhance", {"enhancementDescription": "sharper"}))
        assert excinfo.value.field == "existing_image"
        assert len(fake_model.calls) == 0


class TestApplyStyleTransfer:
    """Test the style-transfer operation."""

    def test_call_shape(self, dispatcher, fake_model):
        payload = {"referenceImage": REFERENCE_URI, "promptText": "A harbour at dawn"}
        result = asyncio.run(dispatcher.run("style-transfer", payload))
        assert result.images == [PNG_URI]
        parts = fake_model.calls[0].parts
        assert parts[0] == MediaPart(ImageDataURI(REFERENCE_URI))
        assert parts[-1] == TextPart("A harbour at dawn")

    def test_empty_output_raises(self, dispatcher, fake_model):
        fake_model.script(empty_reply())
        payload = {"referenceImage": REFERENCE_URI, "promptText": "A harbour at dawn"}
        with pytest.raises(ModelError, match="Failed to generate image"):
            asyncio.run(dispatcher.run("style-transfer", payload))

    def test_missing_image_makes_no_call(self, dispatcher, fake_model):
        with pytest.raises(ValidationError):
            asyncio.run(dispatcher.run("style-transfer", {"promptText": "A harbour"}))
        assert len(fake_model.calls) == 0


class TestFixImage:
    """Test the fix-undesired-elements operation."""

    def test_call_shape(self, dispatcher, fake_model):
        payload = {"image": REFERENCE_URI, "prompt": "A dog", "undesiredElements": "extra leg"}
        result = asyncio.run(dispatcher.run("fix", payload))
        assert result.images == [PNG_URI]
        parts = fake_model.calls[0].parts
        assert "extra leg" in parts[0].text
        assert parts[1] == MediaPart(ImageDataURI(REFERENCE_URI))

    def test_empty_output_raises(self, dispatcher, fake_model):
        fake_model.script(empty_reply())
        payload = {"image": REFERENCE_URI, "prompt": "A dog", "undesiredElements": "extra leg"}
        with pytest.raises(ModelError):
            asyncio.run(dispatcher.run("fix", payload))


class TestDispatch:
    """Test routing and validation at the entry points."""

    def test_unknown_kind_makes_no_call(self, dispatcher, fake_model):
        with pytest.raises(ValidationError) as excinfo:
            asyncio.run(dispatcher.run("upscale", {"prompt": "A cat"}))
        assert excinfo.value.field == "kind"
        assert fake_model.calls == []

    def test_count_above_maximum_makes_no_call(self, dispatcher, fake_model):
        with pytest.raises(ValidationError):
            asyncio.run(dispatcher.run("variations", _variations(9)))
        assert fake_model.calls == []

    def test_dispatch_rejects_unknown_request(self, dispatcher):
        with pytest.raises(TypeError):
            asyncio.run(dispatcher.dispatch(object()))

    def test_dispatch_text_request(self, dispatcher):
        result = asyncio.run(dispatcher.dispatch(TextToImageRequest(prompt="A cat")))
        assert isinstance(result, GenerationResult)
        assert result.images == [PNG_URI]

    def test_model_reply_image_is_passed_through_unchanged(self, dispatcher, fake_model):
        reply = ModelReply(image=ImageDataURI(JPEG_URI), text="Here you go")
        fake_model.script(reply)
        result = asyncio.run(dispatcher.run("text-to-image", {"prompt": "A cat"}))
        assert result.images[0] is reply.image
