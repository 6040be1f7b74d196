"""One-off script for debugging text-to-image generation."""

import asyncio

from config.settings import load_config
from modules.pipelines.schemas import GenerationOptions, ImageSize, ModelId
from modules.pipelines.text2img import Text2ImageService
from modules.providers.fal_queue import FalQueueClient
from modules.services.history_service import GenerationHistoryService
from modules.utils.logging import setup_logging


async def main() -> None:
    # 1. 准备真实配置与服务对象
    config = load_config()
    setup_logging(config)

    history = GenerationHistoryService(config.history_path, max_history=config.max_history)
    history.load()
    service = Text2ImageService(config, provider=FalQueueClient(config), history=history)
    service.subscribe(lambda state: print("loading:", state.loading))

    # 2. 准备提示词与参数（请按需替换）
    prompt = "a red fox sitting in a snowy forest at dawn, cinematic lighting"
    options = GenerationOptions(
        model=ModelId.FAST_LIGHTNING_SDXL,
        image_size=ImageSize.SQUARE,
        inference_steps=4,
        seed=42,
    )

    # 3. 发起真实请求
    outcome = await service.submit(prompt, options)

    print("状态:", outcome.status.value)
    if outcome.result is not None:
        print("图像地址:", outcome.result.url)
        print("历史记录条数:", len(history.current()))
    else:
        print("生成失败:", outcome.error)


if __name__ == "__main__":
    asyncio.run(main())
