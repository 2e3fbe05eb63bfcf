from __future__ import annotations

import codecs
import math
import re
from pathlib import Path

# UTF-16 only with a BOM.
_FALLBACK_ENCODINGS = ("utf-8", "gb18030", "big5")
_TITLE_WHITESPACE_RE = re.compile(r"[\r\n\t]+")
_EXTENSION_RE = re.compile(r"\.[^/.]+$")


def decode_text(raw: bytes) -> str:
    if raw.startswith(codecs.BOM_UTF8):
        return raw[len(codecs.BOM_UTF8) :].decode("utf-8", errors="replace")
    if raw.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return raw.decode("utf-16", errors="replace")
    for enc in _FALLBACK_ENCODINGS:
        try:
            return raw.decode(enc)
        except UnicodeDecodeError:
            continue
    return raw.decode("utf-8", errors="replace")


def read_text_file(path: str | Path) -> str:
    return decode_text(Path(path).read_bytes())


def format_chapter_title(title: str) -> str:
    return _TITLE_WHITESPACE_RE.sub(" ", title).strip()


def title_from_filename(filename: str) -> str:
    stem = _EXTENSION_RE.sub("", Path(filename).name)
    return re.sub(r"[_\-]", " ", stem)


def estimate_reading_time(text: str, chars_per_minute: int = 200) -> int:
    """Minutes needed to read text, counting characters rather than words."""
    if not text:
        return 0
    if chars_per_minute <= 0:
        raise ValueError("chars_per_minute must be positive")
    return math.ceil(len(text) / chars_per_minute)


def progress_percentage(position: int, total_length: int) -> str:
    if not total_length:
        return "0%"
    return f"{math.floor(position / total_length * 100 + 0.5)}%"


__all__ = [
    "decode_text",
    "estimate_reading_time",
    "format_chapter_title",
    "progress_percentage",
    "read_text_file",
    "title_from_filename",
]
