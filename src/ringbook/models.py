from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Mapping


@dataclass(frozen=True)
class Chapter:
    id: str
    title: str
    start_position: int
    end_position: int
    href: str | None = None  # archive path for EPUB chapters


@dataclass
class Page:
    index: int
    text: str
    start: int
    end: int


@dataclass
class SpeechChunk:
    index: int
    text: str
    start: int
    end: int


class ChapterContentCache:
    """Chapter id -> extracted plain text, insert-only for the book's lifetime."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, chapter_id: str) -> str | None:
        return self._entries.get(chapter_id)

    def store(self, chapter_id: str, text: str) -> str:
        # First writer wins; re-extracting a chapter yields the same text.
        return self._entries.setdefault(chapter_id, text)

    def __contains__(self, chapter_id: object) -> bool:
        return chapter_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


@dataclass
class ReadingPosition:
    book_id: str
    chapter_id: str | None = None
    page: int = 0
    position: int = 0
    last_read_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "book_id": self.book_id,
            "page": self.page,
            "position": self.position,
            "last_read_time": self.last_read_time.isoformat(),
        }
        if self.chapter_id is not None:
            payload["chapter_id"] = self.chapter_id
        return payload

    @classmethod
    def from_payload(cls, payload: object) -> "ReadingPosition | None":
        if not isinstance(payload, Mapping):
            return None
        book_id = payload.get("book_id")
        if not isinstance(book_id, str) or not book_id:
            return None
        chapter_id = payload.get("chapter_id")
        if not isinstance(chapter_id, str) or not chapter_id:
            chapter_id = None
        page = payload.get("page")
        position = payload.get("position")
        last_read: datetime | None = None
        raw_time = payload.get("last_read_time")
        if isinstance(raw_time, str):
            try:
                last_read = datetime.fromisoformat(raw_time)
            except ValueError:
                last_read = None
        if last_read is not None and last_read.tzinfo is None:
            last_read = last_read.replace(tzinfo=timezone.utc)
        return cls(
            book_id=book_id,
            chapter_id=chapter_id,
            page=page if isinstance(page, int) and page >= 0 else 0,
            position=position if isinstance(position, int) and position >= 0 else 0,
            last_read_time=last_read or datetime.now(timezone.utc),
        )


__all__ = [
    "Chapter",
    "ChapterContentCache",
    "Page",
    "ReadingPosition",
    "SpeechChunk",
]
