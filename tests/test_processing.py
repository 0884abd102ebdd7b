from dataclasses import dataclass

import pytest

from photo_manager.exceptions import ProcessingFailureError
from photo_manager.services.processing import (
    Blur,
    ProcessedImage,
    ProcessingPipeline,
    Resize,
    Sepia,
)


@dataclass(frozen=True)
class Exploding:
    name = "exploding"

    def apply(self, image):
        raise RuntimeError("codec error")


@dataclass
class Recording:
    calls: list
    label: str

    @property
    def name(self):
        return self.label

    def apply(self, image):
        self.calls.append(self.label)
        return image.with_effect(self.label)


def _image():
    return ProcessedImage(content=b"abc", format="jpg")


def test_empty_pipeline_is_identity():
    image = _image()
    assert ProcessingPipeline().apply(image) == image


def test_stages_run_in_composition_order():
    pipeline = ProcessingPipeline().then(Resize(800, 600)).then(Sepia()).then(Blur())

    result = pipeline.apply(_image())

    assert result.effects == ("resize(800x600)", "sepia", "blur")
    assert (result.width, result.height) == (800, 600)
    assert result.content == b"abc"


@pytest.mark.parametrize(
    "stages, expected",
    [
        ((Resize(640, 480), Sepia(), Blur()), ("resize(640x480)", "sepia", "blur")),
        ((Resize(640, 480), Sepia()), ("resize(640x480)", "sepia")),
        ((Resize(640, 480), Blur()), ("resize(640x480)", "blur")),
        ((Sepia(), Blur()), ("sepia", "blur")),
        ((Resize(640, 480),), ("resize(640x480)",)),
        ((Sepia(),), ("sepia",)),
        ((Blur(),), ("blur",)),
    ],
)
def test_effect_order_holds_when_stages_are_omitted(stages, expected):
    assert ProcessingPipeline.of(stages).apply(_image()).effects == expected


def test_sepia_records_effect_and_keeps_bytes_and_size():
    image = ProcessedImage(content=b"abc", format="png", width=10, height=20)

    result = Sepia().apply(image)

    assert result.effects == ("sepia",)
    assert (result.content, result.format, result.width, result.height) == (b"abc", "png", 10, 20)
    assert image.effects == ()


def test_blur_records_effect_and_keeps_bytes_and_size():
    image = ProcessedImage(content=b"abc", format="png", width=10, height=20).with_effect("sepia")

    result = Blur().apply(image)

    assert result.effects == ("sepia", "blur")
    assert (result.content, result.width, result.height) == (b"abc", 10, 20)


def test_each_stage_is_called_exactly_once():
    calls = []
    pipeline = ProcessingPipeline.of([Recording(calls, "a"), Recording(calls, "b"), Recording(calls, "c")])

    pipeline.apply(_image())

    assert calls == ["a", "b", "c"]


def test_stage_failure_becomes_processing_failure():
    calls = []
    pipeline = ProcessingPipeline.of([Recording(calls, "a"), Exploding(), Recording(calls, "c")])

    with pytest.raises(ProcessingFailureError) as exc:
        pipeline.apply(_image())

    assert exc.value.stage == "exploding"
    assert calls == ["a"]


def test_from_names():
    pipeline = ProcessingPipeline.from_names(["Resize", " sepia ", "", "blur"])
    assert pipeline.stage_names == ("resize", "sepia", "blur")
    assert len(pipeline) == 3


def test_from_names_rejects_unknown_stage():
    with pytest.raises(ValueError):
        ProcessingPipeline.from_names(["sharpen"])


def test_resize_rejects_non_positive_dimensions():
    with pytest.raises(ValueError):
        Resize(0, 600)
