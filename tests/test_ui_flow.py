"""Gradio UI callback tests."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

from config.settings import AppConfig
from modules.pipelines.schemas import GenerationOptions, GenerationResult, ImageSize, ModelId
from modules.pipelines.text2img import GenerationOutcome, GenerationState, OutcomeStatus
from modules.services.history_service import GenerationHistoryService, HistoryEntry
from modules.ui import callbacks


class DummyText2ImageService:
    """Stub generation service for capturing inputs."""

    def __init__(self, history: Optional[GenerationHistoryService] = None) -> None:
        self.history = history
        self.last_prompt: Optional[str] = None
        self.last_options: Optional[GenerationOptions] = None
        self.should_fail = False
        self.state = GenerationState()

    async def submit(self, prompt: str, options: Optional[GenerationOptions] = None) -> GenerationOutcome:
        if not prompt.strip():
            return GenerationOutcome(status=OutcomeStatus.SKIPPED)
        self.last_prompt = prompt
        self.last_options = options
        if self.should_fail:
            return GenerationOutcome(status=OutcomeStatus.FAILED, error=RuntimeError("boom"))
        result = GenerationResult(url=f"https://x/{len(prompt)}.png")
        if self.history is not None:
            self.history.append(HistoryEntry(url=result.url, prompt=prompt, submitted_at=0.0, options=options))
        self.state = GenerationState(current=result)
        return GenerationOutcome(status=OutcomeStatus.SUCCEEDED, result=result)


class DummyStorage:
    """Record save requests instead of downloading."""

    def __init__(self) -> None:
        self.saved: list[tuple[str, dict]] = []
        self.cleanups: list[int] = []
        self.should_fail = False

    def save_image(self, url: str, metadata: dict) -> Path:
        if self.should_fail:
            raise OSError("disk full")
        self.saved.append((url, metadata))
        return Path("outputs/generated-image-1.png")

    def cleanup(self, max_items: int = 100) -> None:
        self.cleanups.append(max_items)


def build_callbacks(
    *,
    service: DummyText2ImageService | None = None,
    history: GenerationHistoryService | None = None,
    storage: DummyStorage | None = None,
    config: AppConfig | None = None,
):
    config = config or AppConfig()
    return callbacks.build_callbacks(config, service=service, history=history, storage=storage)


def test_on_generate_success_updates_gallery(tmp_path):
    history = GenerationHistoryService(tmp_path / "history.json")
    service = DummyText2ImageService(history)
    cb = build_callbacks(service=service, history=history)["on_generate"]

    image, message, gallery = asyncio.run(cb("a red fox", "fal-ai/flux/dev", "square", 28, 42))

    assert image == "https://x/9.png"
    assert "生成成功" in message
    assert "seed=42" in message
    assert service.last_options == GenerationOptions(
        model=ModelId.FLUX_DEV, image_size=ImageSize.SQUARE, inference_steps=28, seed=42
    )
    assert len(gallery) == 1
    assert gallery[0][0] == "https://x/9.png"
    assert gallery[0][1].startswith("a red fox")
    assert "Square" in gallery[0][1]


def test_on_generate_normalizes_inputs():
    service = DummyText2ImageService()
    cb = build_callbacks(service=service)["on_generate"]

    asyncio.run(cb("prompt", "FLUX.1 [schnell]", "Landscape (16:9)", 500, ""))

    options = service.last_options
    assert options.model is ModelId.FLUX_SCHNELL
    assert options.image_size is ImageSize.LANDSCAPE_16_9
    assert options.inference_steps == 100
    assert options.seed is None


def test_on_generate_bad_steps_uses_model_default():
    service = DummyText2ImageService()
    cb = build_callbacks(service=service)["on_generate"]

    asyncio.run(cb("prompt", "fal-ai/flux/dev", "square_hd", None, None))

    assert service.last_options.inference_steps == 28


def test_on_generate_empty_prompt_is_skipped():
    service = DummyText2ImageService()
    cb = build_callbacks(service=service)["on_generate"]

    image, message, gallery = asyncio.run(cb("", "fal-ai/flux/dev", "square", 4, None))

    assert image is None
    assert "请输入提示词" in message
    assert gallery == []
    assert service.last_prompt is None


def test_on_generate_failure_keeps_previous_image():
    service = DummyText2ImageService()
    cb = build_callbacks(service=service)["on_generate"]
    first_image, _, _ = asyncio.run(cb("first", "fal-ai/flux/dev", "square", 4, None))

    service.should_fail = True
    image, message, _ = asyncio.run(cb("second", "fal-ai/flux/dev", "square", 4, None))

    assert image == first_image
    assert "生成失败" in message


def test_on_change_model_returns_advisory_steps():
    cb = build_callbacks()["on_change_model"]

    steps, hint = cb("fal-ai/flux/dev")

    assert steps == 28
    assert "28 steps" in hint


def test_on_refresh_history_without_store():
    assert build_callbacks()["on_refresh_history"]() == []


def test_on_save_result_uses_history_metadata(tmp_path):
    history = GenerationHistoryService(tmp_path / "history.json")
    service = DummyText2ImageService(history)
    storage = DummyStorage()
    cb_map = build_callbacks(service=service, history=history, storage=storage)
    asyncio.run(cb_map["on_generate"]("a red fox", "fal-ai/flux/dev", "square", 4, None))

    message = cb_map["on_save_result"]()

    assert "已保存到" in message
    url, metadata = storage.saved[0]
    assert url == "https://x/9.png"
    assert metadata["prompt"] == "a red fox"
    assert metadata["model"] == "fal-ai/flux/dev"


def test_on_save_result_without_image():
    cb = build_callbacks(service=DummyText2ImageService(), storage=DummyStorage())["on_save_result"]

    assert "暂无可保存的图像" in cb()


def test_on_save_result_reports_failure():
    service = DummyText2ImageService()
    storage = DummyStorage()
    storage.should_fail = True
    cb_map = build_callbacks(service=service, storage=storage)
    asyncio.run(cb_map["on_generate"]("prompt", "fal-ai/flux/dev", "square", 4, None))

    assert "保存失败" in cb_map["on_save_result"]()


def test_on_save_result_bounds_output_dir():
    service = DummyText2ImageService()
    storage = DummyStorage()
    cb_map = build_callbacks(service=service, storage=storage, config=AppConfig(max_saved_images=5))
    asyncio.run(cb_map["on_generate"]("prompt", "fal-ai/flux/dev", "square", 4, None))

    cb_map["on_save_result"]()

    assert storage.cleanups == [5]


def test_on_save_result_failure_skips_cleanup():
    service = DummyText2ImageService()
    storage = DummyStorage()
    storage.should_fail = True
    cb_map = build_callbacks(service=service, storage=storage)
    asyncio.run(cb_map["on_generate"]("prompt", "fal-ai/flux/dev", "square", 4, None))

    cb_map["on_save_result"]()

    assert storage.cleanups == []


def test_on_refresh_history_out_of_range_timestamp(tmp_path):
    history = GenerationHistoryService(tmp_path / "history.json")
    history.append(
        HistoryEntry(url="https://x/far.png", prompt="far future", submitted_at=1e20, options=GenerationOptions())
    )
    cb = build_callbacks(history=history)["on_refresh_history"]

    gallery = cb()

    assert gallery[0][0] == "https://x/far.png"
    assert gallery[0][1].startswith("far future")
    assert "1e+20" in gallery[0][1]
