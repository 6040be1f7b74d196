"""Configuration helpers for the CentAI Studio project."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

DEFAULT_QUEUE_URL = "https://queue.fal.run"
DEFAULT_MODEL_ID = "fal-ai/fast-lightning-sdxl"


@dataclass(slots=True)
class AppConfig:
    """Centralized application configuration."""

    fal_key: Optional[str] = None
    queue_base_url: str = DEFAULT_QUEUE_URL
    poll_interval: float = 0.5
    request_timeout: float = 60.0
    default_model: str = DEFAULT_MODEL_ID
    log_dir: Path = Path("logs")
    history_path: Path = Path("logs/history.json")
    output_dir: Path = Path("outputs")
    max_history: int = 50
    max_saved_images: int = 100
    log_level: str = "INFO"
    metadata: dict[str, Any] = field(default_factory=dict)


def _load_env_file(path: Path) -> None:
    """Populate environment variables from a simple KEY=VALUE .env file."""
    if not path.exists():
        return

    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ[key.strip()] = value.strip().strip('"').strip("'")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Return an AppConfig instance with environment-aware settings."""
    env_path = Path(config_path) if config_path else Path(".env")
    _load_env_file(env_path)

    # 前端版本使用 VITE_FAL_KEY，这里一并兼容
    fal_key = os.getenv("FAL_KEY") or os.getenv("VITE_FAL_KEY") or None

    log_dir = Path(os.getenv("LOG_DIR") or "logs").expanduser()
    history_path = Path(os.getenv("HISTORY_PATH") or str(log_dir / "history.json")).expanduser()
    output_dir = Path(os.getenv("OUTPUT_DIR") or "outputs").expanduser()

    metadata: dict[str, Any] = {}
    if fal_key is None:
        metadata["warnings"] = ["FAL_KEY 未设置，生成请求将无法通过认证。"]

    return AppConfig(
        fal_key=fal_key,
        queue_base_url=(os.getenv("FAL_QUEUE_URL") or DEFAULT_QUEUE_URL).rstrip("/"),
        poll_interval=_env_float("FAL_POLL_INTERVAL", 0.5),
        request_timeout=_env_float("FAL_REQUEST_TIMEOUT", 60.0),
        default_model=os.getenv("DEFAULT_MODEL") or DEFAULT_MODEL_ID,
        log_dir=log_dir,
        history_path=history_path,
        output_dir=output_dir,
        max_history=_env_int("MAX_HISTORY", 50),
        max_saved_images=_env_int("MAX_SAVED_IMAGES", 100),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        metadata=metadata,
    )
