from __future__ import annotations

import re

from .models import SpeechChunk

DEFAULT_MAX_CHARS_PER_CHUNK = 200
_SENTENCE_BREAK_RE = re.compile(r"[.。!！?？\n]+")
_SOFT_BREAKS = (" ", "，", ",")


def split_text_for_speech(
    text: str,
    max_length: int = DEFAULT_MAX_CHARS_PER_CHUNK,
) -> list[str]:
    """
    Split text into chunks a speech engine can take in one utterance.

    Sentences are packed greedily up to max_length; a sentence that is
    longer on its own is cut at the last space or comma inside each window.
    The chunks always concatenate back to the input text.
    """
    return [text[start:end] for start, end in _chunk_bounds(text, max_length)]


def split_text_for_speech_with_spans(
    text: str,
    max_length: int = DEFAULT_MAX_CHARS_PER_CHUNK,
    *,
    base_position: int = 0,
) -> list[SpeechChunk]:
    return [
        SpeechChunk(
            index=index,
            text=text[start:end],
            start=base_position + start,
            end=base_position + end,
        )
        for index, (start, end) in enumerate(_chunk_bounds(text, max_length))
    ]


def _chunk_bounds(text: str, max_length: int) -> list[tuple[int, int]]:
    if max_length < 1:
        raise ValueError(f"max_length must be positive, got {max_length}")
    if not text:
        return []
    if len(text) <= max_length:
        return [(0, len(text))]

    sentences = _sentence_spans(text)
    if sentences is None:
        return _fixed_slices(0, len(text), max_length)

    bounds: list[tuple[int, int]] = []
    current: tuple[int, int] | None = None
    for start, end in sentences:
        if end - start > max_length:
            if current is not None:
                bounds.append(current)
                current = None
            bounds.extend(_slice_long_sentence(text, start, end, max_length))
        elif current is None:
            current = (start, end)
        elif end - current[0] > max_length:
            bounds.append(current)
            current = (start, end)
        else:
            current = (current[0], end)
    if current is not None:
        bounds.append(current)
    return bounds


def _sentence_spans(text: str) -> list[tuple[int, int]] | None:
    spans: list[tuple[int, int]] = []
    cursor = 0
    for match in _SENTENCE_BREAK_RE.finditer(text):
        spans.append((cursor, match.end()))
        cursor = match.end()
    if not spans:
        return None
    if cursor < len(text):
        spans.append((cursor, len(text)))
    return spans


def _fixed_slices(start: int, end: int, max_length: int) -> list[tuple[int, int]]:
    return [(pos, min(pos + max_length, end)) for pos in range(start, end, max_length)]


def _slice_long_sentence(
    text: str,
    start: int,
    end: int,
    max_length: int,
) -> list[tuple[int, int]]:
    pieces: list[tuple[int, int]] = []
    cursor = start
    while cursor < end:
        cut = min(cursor + max_length, end)
        if cut < end:
            for idx in range(cut - 1, cursor, -1):
                if text[idx] in _SOFT_BREAKS:
                    cut = idx + 1
                    break
        pieces.append((cursor, cut))
        cursor = cut
    return pieces


__all__ = [
    "DEFAULT_MAX_CHARS_PER_CHUNK",
    "split_text_for_speech",
    "split_text_for_speech_with_spans",
]
