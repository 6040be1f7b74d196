"""Text-to-image generation service backed by a remote job queue."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Protocol

from config.settings import AppConfig
from modules.pipelines.errors import GenerationError, ProviderRequestFailed
from modules.pipelines.normalizer import normalize
from modules.pipelines.schemas import GenerationOptions, GenerationRequest, GenerationResult, ModelId
from modules.providers.fal_queue import JobCompleted, QueueEvent, QueueStatus, QueueUpdate
from modules.services.history_service import GenerationHistoryService, HistoryEntry

logger = logging.getLogger(__name__)


class QueueProvider(Protocol):
    def stream(self, model_id: str, arguments: Dict[str, Any]) -> AsyncIterator[QueueEvent]:
        ...


class OutcomeStatus(str, Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class GenerationOutcome:
    """Terminal result of a ``submit`` call."""

    status: OutcomeStatus
    result: Optional[GenerationResult] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


@dataclass(frozen=True, slots=True)
class GenerationState:
    """Snapshot of the service state exposed to the UI."""

    in_flight: int = 0
    current: Optional[GenerationResult] = None
    last_error: Optional[Exception] = None

    @property
    def loading(self) -> bool:
        return self.in_flight > 0


StateListener = Callable[[GenerationState], None]


class Text2ImageService:
    """Facade that runs a remote generation job and records the result.

    Overlapping submissions are allowed. Each one writes its own history
    entry on success, and whichever finishes last becomes ``state.current``.
    """

    def __init__(
        self,
        config: AppConfig,
        provider: QueueProvider,
        history: GenerationHistoryService,
    ) -> None:
        self.config = config
        self.provider = provider
        self.history = history
        self._state = GenerationState()
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> GenerationState:
        return self._state

    def default_options(self) -> GenerationOptions:
        """Options for the configured default model at its recommended steps."""
        try:
            model = ModelId(self.config.default_model)
        except ValueError:
            logger.warning("Unknown default model %r, using %s", self.config.default_model, ModelId.FAST_LIGHTNING_SDXL.value)
            model = ModelId.FAST_LIGHTNING_SDXL
        return GenerationOptions(model=model, inference_steps=model.recommended_steps)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set_state(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:  # noqa: BLE001
                logger.exception("State listener %r failed", listener)

    async def submit(self, prompt: str, options: Optional[GenerationOptions] = None) -> GenerationOutcome:
        """Generate an image for ``prompt``; never raises."""
        if not prompt or not prompt.strip():
            return GenerationOutcome(status=OutcomeStatus.SKIPPED)

        request = GenerationRequest(prompt=prompt, options=options or self.default_options())
        submitted_at = time.time()
        self._set_state(in_flight=self._state.in_flight + 1)
        error: Optional[GenerationError] = None
        try:
            data = await self._run_job(request)
            result = normalize(data)
        except GenerationError as exc:
            error = exc
        except Exception as exc:  # noqa: BLE001
            error = ProviderRequestFailed(f"生成请求异常：{exc}")
        finally:
            self._set_state(in_flight=self._state.in_flight - 1)

        # 先回到空闲状态，再发布失败
        if error is not None:
            return self._fail(request, error)

        self.history.append(
            HistoryEntry(
                url=result.url,
                prompt=request.prompt,
                submitted_at=submitted_at,
                options=request.options,
            )
        )
        self._set_state(current=result, last_error=None)
        logger.info("Generated %s with %s", result.url, request.options.model.value)
        return GenerationOutcome(status=OutcomeStatus.SUCCEEDED, result=result)

    async def _run_job(self, request: GenerationRequest) -> Any:
        model_id = request.options.model.value
        completed: Optional[JobCompleted] = None
        async for event in self.provider.stream(model_id, request.to_arguments()):
            if isinstance(event, QueueUpdate):
                if event.status is QueueStatus.IN_PROGRESS:
                    for line in event.logs:
                        logger.info("[%s] %s", model_id, line)
                else:
                    logger.debug("[%s] %s", model_id, event.status.value)
            elif isinstance(event, JobCompleted):
                completed = event
        if completed is None:
            raise ProviderRequestFailed("任务结束但未返回结果")
        return completed.data

    def _fail(self, request: GenerationRequest, error: GenerationError) -> GenerationOutcome:
        logger.error("Generation with %s failed: %s", request.options.model.value, error)
        self._set_state(last_error=error)
        return GenerationOutcome(status=OutcomeStatus.FAILED, error=error)
