"""Generation history tracking."""

from __future__ import annotations

import datetime as dt
import json
import logging
import math
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Tuple

from modules.pipelines.errors import HistoryLoadCorrupt, HistoryPersistenceFailed
from modules.pipelines.schemas import GenerationOptions

logger = logging.getLogger(__name__)

MAX_HISTORY = 50
HISTORY_FORMAT_VERSION = 1


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    """Record of one successful generation."""

    url: str
    prompt: str
    submitted_at: float
    options: GenerationOptions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "prompt": self.prompt,
            "submitted_at": self.submitted_at,
            "options": self.options.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        url = data["url"]
        prompt = data["prompt"]
        if not isinstance(url, str) or not isinstance(prompt, str):
            raise ValueError("url and prompt must be strings")
        submitted_at = float(data["submitted_at"])
        if not math.isfinite(submitted_at):
            raise ValueError("submitted_at must be finite")
        # 超出平台 time_t 范围的时间戳无法展示
        dt.datetime.fromtimestamp(submitted_at)
        return cls(
            url=url,
            prompt=prompt,
            submitted_at=submitted_at,
            options=GenerationOptions.from_dict(data["options"]),
        )


HistoryLog = Tuple[HistoryEntry, ...]


class GenerationHistoryService:
    """JSON-backed, newest-first history capped at ``max_history`` entries.

    The whole log lives under a single file that is rewritten on every
    append. Persistence is best effort: a failed write is logged and the
    in-memory log keeps the new entry for the rest of the session.
    """

    def __init__(self, history_path: Path, max_history: int = MAX_HISTORY) -> None:
        if max_history <= 0:
            raise ValueError("max_history must be > 0")
        self.history_path = Path(history_path)
        self.max_history = max_history
        self._entries: HistoryLog = ()
        self._lock = threading.Lock()

    def load(self) -> HistoryLog:
        """Read the persisted log, falling back to empty when absent or corrupt."""
        with self._lock:
            try:
                entries = self._read()
            except HistoryLoadCorrupt as exc:
                logger.warning("History file %s is unreadable, starting empty: %s", self.history_path, exc)
                entries = ()
            self._entries = entries[: self.max_history]
            return self._entries

    def append(self, entry: HistoryEntry) -> HistoryLog:
        """Prepend ``entry``, evict the oldest beyond the cap and persist."""
        with self._lock:
            self._entries = ((entry,) + self._entries)[: self.max_history]
            try:
                self._write(self._entries)
            except HistoryPersistenceFailed as exc:
                logger.warning("%s", exc)
            return self._entries

    def current(self) -> HistoryLog:
        """Return the in-memory log."""
        return self._entries

    # Internal helpers ---------------------------------------------------------
    def _read(self) -> HistoryLog:
        if not self.history_path.exists():
            return ()
        try:
            raw = json.loads(self.history_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, RecursionError) as exc:
            raise HistoryLoadCorrupt(str(exc)) from exc

        if isinstance(raw, dict):
            raw = raw.get("entries")
        if not isinstance(raw, list):
            raise HistoryLoadCorrupt("history payload is not a list of entries")

        try:
            return tuple(HistoryEntry.from_dict(item) for item in raw)
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
            raise HistoryLoadCorrupt(f"malformed history entry: {exc}") from exc

    def _write(self, entries: HistoryLog) -> None:
        payload = {
            "version": HISTORY_FORMAT_VERSION,
            "entries": [entry.to_dict() for entry in entries],
        }
        try:
            self.history_path.parent.mkdir(parents=True, exist_ok=True)
            self.history_path.write_text(
                json.dumps(payload, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
        except OSError as exc:
            raise HistoryPersistenceFailed(f"无法写入历史记录 {self.history_path}：{exc}") from exc
