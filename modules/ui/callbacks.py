"""Callback implementations for the Gradio interface."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from config.settings import AppConfig
from modules.pipelines.schemas import GenerationOptions, ImageSize, MAX_STEPS, MIN_STEPS, ModelId
from modules.pipelines.text2img import OutcomeStatus, Text2ImageService
from modules.services.history_service import GenerationHistoryService, HistoryEntry
from modules.services.storage_service import StorageService


def build_callbacks(
    config: AppConfig,
    service: Optional[Text2ImageService] = None,
    history: Optional[GenerationHistoryService] = None,
    storage: Optional[StorageService] = None,
) -> dict[str, Any]:
    """Return a dictionary of Gradio callback functions."""

    def _ensure_service() -> Text2ImageService:
        if service is None:
            raise RuntimeError("文生图服务未配置")
        return service

    def _normalize_seed(seed: Any) -> Optional[int]:
        if seed in ("", None):
            return None
        try:
            return int(seed)
        except (TypeError, ValueError):
            return None

    def _normalize_steps(value: Any, default: int) -> int:
        try:
            numeric = int(value)
        except (TypeError, ValueError):
            return default
        return max(MIN_STEPS, min(numeric, MAX_STEPS))

    def _resolve_model(selection: str) -> ModelId:
        for model in ModelId:
            if selection in (model.value, model.label):
                return model
        return ModelId.FAST_LIGHTNING_SDXL

    def _resolve_size(selection: str) -> ImageSize:
        for size in ImageSize:
            if selection in (size.value, size.label):
                return size
        return ImageSize.SQUARE_HD

    def _caption(entry: HistoryEntry) -> str:
        try:
            stamp = dt.datetime.fromtimestamp(entry.submitted_at).strftime("%Y-%m-%d %H:%M:%S")
        except (OverflowError, OSError, ValueError):
            stamp = str(entry.submitted_at)
        return f"{entry.prompt}\n{stamp} · {entry.options.image_size.label}"

    def _gallery() -> list[tuple[str, str]]:
        if history is None:
            return []
        return [(entry.url, _caption(entry)) for entry in history.current()]

    def _displayed() -> Optional[str]:
        current = service.state.current if service is not None else None
        return current.url if current is not None else None

    async def on_generate(
        prompt: str,
        model_name: str,
        size_name: str,
        steps: int,
        seed: Optional[int],
    ) -> tuple[Optional[str], str, list[tuple[str, str]]]:
        text_service = _ensure_service()
        model = _resolve_model(model_name)
        options = GenerationOptions(
            model=model,
            image_size=_resolve_size(size_name),
            inference_steps=_normalize_steps(steps, model.recommended_steps),
            seed=_normalize_seed(seed),
        )
        outcome = await text_service.submit(prompt or "", options)

        if outcome.status is OutcomeStatus.SKIPPED:
            return _displayed(), "请输入提示词后再生成。", _gallery()
        if outcome.status is OutcomeStatus.FAILED:
            return _displayed(), f"生成失败：{outcome.error}", _gallery()

        info = "生成成功"
        if options.seed is not None:
            info += f"（seed={options.seed}）"
        return outcome.result.url, info, _gallery()

    def on_change_model(model_name: str) -> tuple[int, str]:
        model = _resolve_model(model_name)
        return model.recommended_steps, model.description

    def on_refresh_history() -> list[tuple[str, str]]:
        return _gallery()

    def on_save_result() -> str:
        target = _displayed()
        if not target:
            return "暂无可保存的图像。"
        if storage is None:
            return "未配置存储服务。"
        metadata: dict[str, Any] = {}
        if history is not None:
            for entry in history.current():
                if entry.url == target:
                    metadata = {"prompt": entry.prompt, "submitted_at": entry.submitted_at, **entry.options.to_dict()}
                    break
        try:
            path = storage.save_image(target, metadata)
            storage.cleanup(max_items=config.max_saved_images)
        except Exception as exc:  # noqa: BLE001
            return f"保存失败：{exc}"
        return f"已保存到 {path}"

    return {
        "on_generate": on_generate,
        "on_change_model": on_change_model,
        "on_refresh_history": on_refresh_history,
        "on_save_result": on_save_result,
    }
