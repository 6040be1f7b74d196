"""Request and result types shared by the generation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ModelId(str, Enum):
    """Supported remote text-to-image models."""

    FAST_LIGHTNING_SDXL = "fal-ai/fast-lightning-sdxl"
    FLUX_SCHNELL = "fal-ai/flux/schnell"
    FLUX_DEV = "fal-ai/flux/dev"

    @property
    def label(self) -> str:
        return MODEL_LABELS[self]

    @property
    def recommended_steps(self) -> int:
        """Advisory step count; never enforced."""
        return MODEL_RECOMMENDED_STEPS[self]

    @property
    def description(self) -> str:
        return MODEL_DESCRIPTIONS[self]


MODEL_LABELS: Dict[ModelId, str] = {
    ModelId.FAST_LIGHTNING_SDXL: "Fast Lightning SDXL",
    ModelId.FLUX_SCHNELL: "FLUX.1 [schnell]",
    ModelId.FLUX_DEV: "FLUX.1 [dev]",
}

MODEL_RECOMMENDED_STEPS: Dict[ModelId, int] = {
    ModelId.FAST_LIGHTNING_SDXL: 4,
    ModelId.FLUX_SCHNELL: 4,
    ModelId.FLUX_DEV: 28,
}

MODEL_DESCRIPTIONS: Dict[ModelId, str] = {
    ModelId.FAST_LIGHTNING_SDXL: "Best balance of speed and quality. Use 4 steps.",
    ModelId.FLUX_SCHNELL: "Optimized for speed, good for rapid prototyping. Use 4 steps.",
    ModelId.FLUX_DEV: "Latest experimental features. Use 28 steps.",
}


class ImageSize(str, Enum):
    """Aspect/resolution tags accepted by the provider."""

    SQUARE_HD = "square_hd"
    SQUARE = "square"
    PORTRAIT_4_3 = "portrait_4_3"
    PORTRAIT_16_9 = "portrait_16_9"
    LANDSCAPE_4_3 = "landscape_4_3"
    LANDSCAPE_16_9 = "landscape_16_9"

    @property
    def label(self) -> str:
        return IMAGE_SIZE_LABELS[self]


IMAGE_SIZE_LABELS: Dict[ImageSize, str] = {
    ImageSize.SQUARE_HD: "Square HD",
    ImageSize.SQUARE: "Square",
    ImageSize.PORTRAIT_4_3: "Portrait (4:3)",
    ImageSize.PORTRAIT_16_9: "Portrait (16:9)",
    ImageSize.LANDSCAPE_4_3: "Landscape (4:3)",
    ImageSize.LANDSCAPE_16_9: "Landscape (16:9)",
}

MIN_STEPS = 1
MAX_STEPS = 100


@dataclass(frozen=True, slots=True)
class GenerationOptions:
    """User-tunable parameters of a generation request."""

    model: ModelId = ModelId.FAST_LIGHTNING_SDXL
    image_size: ImageSize = ImageSize.SQUARE_HD
    inference_steps: int = 4
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        # frozen dataclass: coerce via object.__setattr__
        object.__setattr__(self, "model", ModelId(self.model))
        object.__setattr__(self, "image_size", ImageSize(self.image_size))
        if isinstance(self.inference_steps, bool) or not isinstance(self.inference_steps, int):
            raise ValueError("inference_steps must be an integer")
        if self.inference_steps < MIN_STEPS:
            raise ValueError("inference_steps must be > 0")
        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, int)):
            raise ValueError("seed must be an integer or None")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model.value,
            "image_size": self.image_size.value,
            "inference_steps": self.inference_steps,
            "seed": self.seed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GenerationOptions":
        return cls(
            model=data["model"],
            image_size=data["image_size"],
            inference_steps=data["inference_steps"],
            seed=data.get("seed"),
        )


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """A prompt plus options, fixed once submitted."""

    prompt: str
    options: GenerationOptions = field(default_factory=GenerationOptions)

    def to_arguments(self) -> Dict[str, Any]:
        """Build the provider input payload."""
        arguments: Dict[str, Any] = {
            "prompt": self.prompt,
            "image_size": self.options.image_size.value,
            "num_inference_steps": self.options.inference_steps,
            "enable_safety_checker": False,
        }
        if self.options.seed is not None:
            arguments["seed"] = self.options.seed
        return arguments


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """Canonical reference to a generated image."""

    url: str
