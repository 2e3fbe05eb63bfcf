from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .chunking import DEFAULT_MAX_CHARS_PER_CHUNK

DEFAULT_VIEWPORT = (390, 844)
DEFAULT_FONT_SIZE = 18
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass
class ReaderConfig:
    speech_chunk_length: int = DEFAULT_MAX_CHARS_PER_CHUNK
    viewport_width: int = DEFAULT_VIEWPORT[0]
    viewport_height: int = DEFAULT_VIEWPORT[1]
    font_size: float = DEFAULT_FONT_SIZE
    prefetch: bool = True

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "ReaderConfig":
        """Defaults overridden by RINGBOOK_* variables; bad values are ignored."""
        if env is None:
            env = os.environ
        config = cls()

        chunk = _positive_int(env.get("RINGBOOK_SPEECH_CHUNK"))
        if chunk is not None:
            config.speech_chunk_length = chunk

        font_size = _positive_float(env.get("RINGBOOK_FONT_SIZE"))
        if font_size is not None:
            config.font_size = font_size

        viewport = _viewport(env.get("RINGBOOK_VIEWPORT"))
        if viewport is not None:
            config.viewport_width, config.viewport_height = viewport

        prefetch = env.get("RINGBOOK_PREFETCH")
        if prefetch:
            flag = prefetch.strip().lower()
            if flag in _TRUE_VALUES:
                config.prefetch = True
            elif flag in _FALSE_VALUES:
                config.prefetch = False
        return config


def _positive_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def _positive_float(value: str | None) -> float | None:
    if not value:
        return None
    try:
        parsed = float(value.strip())
    except ValueError:
        return None
    return parsed if parsed > 0 else None


def _viewport(value: str | None) -> tuple[int, int] | None:
    if not value:
        return None
    width, sep, height = value.lower().partition("x")
    if not sep:
        return None
    parsed_width = _positive_int(width)
    parsed_height = _positive_int(height)
    if parsed_width is None or parsed_height is None:
        return None
    return parsed_width, parsed_height


__all__ = ["DEFAULT_FONT_SIZE", "DEFAULT_VIEWPORT", "ReaderConfig"]
