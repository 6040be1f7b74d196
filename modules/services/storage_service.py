"""File storage helpers."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

_IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp"}


class StorageService:
    """Handle saving generated assets."""

    def __init__(self, output_dir: Path, timeout: float = 60.0) -> None:
        self.output_dir = Path(output_dir)
        self.timeout = timeout

    def _suffix_for(self, url: str) -> str:
        suffix = PurePosixPath(urlparse(url).path).suffix.lower()
        return suffix if suffix in _IMAGE_SUFFIXES else ".png"

    def save_image(self, url: str, metadata: Dict[str, Any]) -> Path:
        """Download the image at ``url`` and return the local file path."""
        response = requests.get(url, timeout=self.timeout)
        response.raise_for_status()

        self.output_dir.mkdir(parents=True, exist_ok=True)
        stamp = int(time.time() * 1000)
        path = self.output_dir / f"generated-image-{stamp}{self._suffix_for(url)}"
        path.write_bytes(response.content)

        sidecar = path.with_suffix(".json")
        sidecar.write_text(
            json.dumps({"url": url, **metadata}, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        logger.info("Saved %s to %s", url, path)
        return path

    def list_images(self) -> List[Path]:
        """Return saved images, newest first."""
        if not self.output_dir.exists():
            return []
        images = [
            child
            for child in self.output_dir.iterdir()
            if child.is_file() and child.suffix.lower() in _IMAGE_SUFFIXES
        ]
        return sorted(images, key=lambda item: item.stat().st_mtime, reverse=True)

    def cleanup(self, max_items: int = 100) -> None:
        """Limit the number of stored artifacts."""
        for stale in self.list_images()[max_items:]:
            stale.unlink(missing_ok=True)
            stale.with_suffix(".json").unlink(missing_ok=True)
