"""Error kinds raised by the generation pipeline and history store."""

from __future__ import annotations

from typing import Any


class GenerationError(RuntimeError):
    """Base class for failures surfaced by a generation attempt."""


class ProviderRequestFailed(GenerationError):
    """Network, authentication or provider-side failure during a job."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnrecognizedResponseShape(GenerationError):
    """A completed job returned a payload with no recognizable image field."""

    def __init__(self, raw: Any) -> None:
        super().__init__(f"无法识别的响应结构：{raw!r}")
        self.raw = raw


class HistoryPersistenceFailed(GenerationError):
    """Writing the history file failed; the in-memory log is still updated."""


class HistoryLoadCorrupt(GenerationError):
    """The stored history could not be parsed and is treated as empty."""
