"""Gradio layout composition with generation history."""

from __future__ import annotations

from typing import Any, Sequence

try:
    import gradio as gr
except ImportError:  # pragma: no cover
    gr = None  # type: ignore

from config.settings import AppConfig
from modules.pipelines.schemas import ImageSize, MAX_STEPS, MIN_STEPS, ModelId
from modules.pipelines.text2img import Text2ImageService
from modules.providers.fal_queue import FalQueueClient
from modules.services.history_service import GenerationHistoryService
from modules.services.storage_service import StorageService
from modules.ui.callbacks import build_callbacks


def _model_choices() -> Sequence[tuple[str, str]]:
    return [(model.label, model.value) for model in ModelId]


def _size_choices() -> Sequence[tuple[str, str]]:
    return [(size.label, size.value) for size in ImageSize]


def build_app(config: AppConfig) -> Any:
    """Compose and return the Gradio application."""
    if gr is None:
        raise RuntimeError("Gradio 未安装，请先执行依赖安装。")

    history = GenerationHistoryService(config.history_path, max_history=config.max_history)
    history.load()
    service = Text2ImageService(config, provider=FalQueueClient(config), history=history)
    storage = StorageService(config.output_dir, timeout=config.request_timeout)

    callbacks_map = build_callbacks(config, service=service, history=history, storage=storage)
    defaults = service.default_options()

    with gr.Blocks(title="CentAI") as demo:
        gr.Markdown("## CentAI · AI 图像生成")

        with gr.Row():
            with gr.Column():
                prompt = gr.Textbox(
                    label="提示词",
                    lines=4,
                    placeholder="Describe the image you want to generate...",
                )
                with gr.Accordion("高级选项", open=False):
                    model_select = gr.Dropdown(
                        label="模型",
                        choices=_model_choices(),
                        value=defaults.model.value,
                    )
                    model_hint = gr.Markdown(defaults.model.description)
                    size_select = gr.Dropdown(
                        label="图像尺寸",
                        choices=_size_choices(),
                        value=defaults.image_size.value,
                    )
                    steps = gr.Number(
                        label="推理步数",
                        value=defaults.inference_steps,
                        precision=0,
                        minimum=MIN_STEPS,
                        maximum=MAX_STEPS,
                    )
                    seed = gr.Number(label="随机种子（可选）", precision=0)
                generate_btn = gr.Button("生成图像", variant="primary")

            with gr.Column():
                output_image = gr.Image(label="生成结果", type="filepath")
                status = gr.Markdown("准备就绪。")
                save_btn = gr.Button("保存到本地")

        with gr.Accordion("历史记录", open=False):
            gallery = gr.Gallery(
                label="历史记录",
                value=callbacks_map["on_refresh_history"](),
                columns=3,
            )
            refresh_btn = gr.Button("刷新历史")

        model_select.change(
            fn=callbacks_map["on_change_model"],
            inputs=[model_select],
            outputs=[steps, model_hint],
        )

        generate_btn.click(
            fn=callbacks_map["on_generate"],
            inputs=[prompt, model_select, size_select, steps, seed],
            outputs=[output_image, status, gallery],
        )

        save_btn.click(fn=callbacks_map["on_save_result"], inputs=[], outputs=[status])
        refresh_btn.click(fn=callbacks_map["on_refresh_history"], inputs=[], outputs=[gallery])

    return demo
