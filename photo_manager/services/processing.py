"""
Pre-storage image processing pipeline.

A pipeline is an ordered tuple of stages applied one after the other: the
first stage added runs first, the last stage added runs last. Stages do not
touch pixels; each one records its effect on the image metadata so the
order and parameters of what ran can be observed.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional, Sequence, Tuple, Union

from photo_manager.exceptions import ProcessingFailureError
from photo_manager.schemas.photo import PhotoFile
from photo_manager.utils.metrics import pipeline_failures_total

logger = logging.getLogger("photo_manager.processing")

# Resize target used when a stage is requested by name only
DEFAULT_RESIZE = (800, 600)


@dataclass(frozen=True)
class ProcessedImage:
    """Image bytes plus the metadata stages act on."""

    content: bytes
    format: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    effects: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_file(cls, file: PhotoFile) -> "ProcessedImage":
        return cls(content=file.content, format=file.extension)

    def with_effect(self, effect: str, **changes) -> "ProcessedImage":
        return replace(self, effects=self.effects + (effect,), **changes)


@dataclass(frozen=True)
class Resize:
    """Resize to ``width`` x ``height``."""

    width: int
    height: int
    name = "resize"

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Resize dimensions must be positive, got {self.width}x{self.height}")

    def apply(self, image: ProcessedImage) -> ProcessedImage:
        logger.debug(
            f"Image resized to {self.width}x{self.height}",
            extra={"event": "processing", "stage": self.name},
        )
        return image.with_effect(
            f"resize({self.width}x{self.height})",
            width=self.width,
            height=self.height,
        )


@dataclass(frozen=True)
class Sepia:
    """Sepia tone filter."""

    name = "sepia"

    def apply(self, image: ProcessedImage) -> ProcessedImage:
        logger.debug("Sepia filter applied", extra={"event": "processing", "stage": self.name})
        return image.with_effect(self.name)


@dataclass(frozen=True)
class Blur:
    """Blur filter."""

    name = "blur"

    def apply(self, image: ProcessedImage) -> ProcessedImage:
        logger.debug("Blur filter applied", extra={"event": "processing", "stage": self.name})
        return image.with_effect(self.name)


Stage = Union[Resize, Sepia, Blur]

_STAGES_BY_NAME = {
    Resize.name: lambda: Resize(*DEFAULT_RESIZE),
    Sepia.name: Sepia,
    Blur.name: Blur,
}


@dataclass(frozen=True)
class ProcessingPipeline:
    """
    Ordered chain of stages.

    An empty pipeline is the identity transform.

        pipeline = ProcessingPipeline().then(Resize(800, 600)).then(Sepia())
        image = pipeline.apply(image)
    """

    stages: Tuple[Stage, ...] = ()

    @classmethod
    def of(cls, stages: Iterable[Stage]) -> "ProcessingPipeline":
        return cls(tuple(stages))

    @classmethod
    def from_names(cls, names: Sequence[str]) -> "ProcessingPipeline":
        """
        Build a pipeline from stage names (``resize``, ``sepia``, ``blur``).

        Raises:
            ValueError: unknown stage name
        """
        stages = []
        for raw in names:
            name = raw.strip().lower()
            if not name:
                continue
            factory = _STAGES_BY_NAME.get(name)
            if factory is None:
                raise ValueError(
                    f"Unknown processing stage '{raw}'. Known stages: {', '.join(_STAGES_BY_NAME)}"
                )
            stages.append(factory())
        return cls(tuple(stages))

    def then(self, stage: Stage) -> "ProcessingPipeline":
        """New pipeline with ``stage`` appended (applied after the current stages)."""
        return ProcessingPipeline(self.stages + (stage,))

    @property
    def stage_names(self) -> Tuple[str, ...]:
        return tuple(stage.name for stage in self.stages)

    def apply(self, image: ProcessedImage) -> ProcessedImage:
        """
        Run every stage once, in order.

        Raises:
            ProcessingFailureError: a stage raised; the partially processed
                image is discarded
        """
        for stage in self.stages:
            try:
                image = stage.apply(image)
            except Exception as e:
                pipeline_failures_total.labels(stage=stage.name).inc()
                logger.error(
                    "Processing stage failed",
                    exc_info=e,
                    extra={"event": "processing", "stage": stage.name},
                )
                raise ProcessingFailureError(
                    f"Processing stage '{stage.name}' failed: {e}", stage=stage.name
                ) from e
        return image

    def __len__(self) -> int:
        return len(self.stages)
