"""Reduce provider response envelopes to a single image URL.

Models return the generated image in one of three envelopes:

* ``{"images": [{"url": ...}, ...]}`` (SDXL-style, checked first)
* ``{"image": "https://..."}``
* ``{"image": {"url": ...}}``

Anything else is rejected with :class:`UnrecognizedResponseShape`.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

from modules.pipelines.errors import UnrecognizedResponseShape
from modules.pipelines.schemas import GenerationResult


@dataclass(frozen=True, slots=True)
class ImageListShape:
    """Array-valued ``images`` field; the first element wins."""

    url: str
    count: int


@dataclass(frozen=True, slots=True)
class ImageStringShape:
    """Bare string ``image`` field."""

    url: str


@dataclass(frozen=True, slots=True)
class ImageObjectShape:
    """Object-valued ``image`` field carrying a ``url``."""

    url: str


ResponseShape = Union[ImageListShape, ImageStringShape, ImageObjectShape]


def _url_of(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        url = value.get("url")
        if isinstance(url, str) and url:
            return url
    return None


def classify(raw: Any) -> ResponseShape:
    """Match ``raw`` against the known envelopes in priority order."""
    if not isinstance(raw, Mapping):
        raise UnrecognizedResponseShape(raw)

    images = raw.get("images")
    if isinstance(images, list) and images:
        url = _url_of(images[0])
        if url is not None:
            return ImageListShape(url=url, count=len(images))

    image = raw.get("image")
    if isinstance(image, str) and image:
        return ImageStringShape(url=image)

    url = _url_of(image)
    if url is not None:
        return ImageObjectShape(url=url)

    raise UnrecognizedResponseShape(raw)


def normalize(raw: Any) -> GenerationResult:
    """Return the canonical result for a provider payload."""
    shape = classify(raw)
    return GenerationResult(url=shape.url)
