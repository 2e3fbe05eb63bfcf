from __future__ import annotations

import logging
from pathlib import Path

from .config import ReaderConfig
from .epub import ParsedEpub, chapter_index, parse_epub
from .loader import ChapterPrefetcher, load_chapter_content
from .models import Chapter, Page, ReadingPosition
from .pagination import page_for_position, paginate
from .text_chapters import chapter_text, extract_chapters, find_chapter_for_position

logger = logging.getLogger(__name__)


class ReadingSession:
    """
    The chapter list of one open book and the chapter currently shown.

    Plain-text books keep the whole text and slice chapters out of it;
    EPUB books load chapters through the archive cache and warm the
    neighbouring chapters in the background.
    """

    def __init__(
        self,
        book_id: str,
        chapters: list[Chapter],
        *,
        text: str | None = None,
        epub: ParsedEpub | None = None,
        config: ReaderConfig | None = None,
    ) -> None:
        if not chapters:
            raise ValueError("A reading session needs at least one chapter.")
        self.book_id = book_id
        self.chapters = chapters
        self.text = text
        self.epub = epub
        self.config = config or ReaderConfig()
        self.current_index = 0
        self.content = ""
        self.prefetcher: ChapterPrefetcher | None = None
        if epub is not None and self.config.prefetch:
            self.prefetcher = ChapterPrefetcher(epub.handle)

    @classmethod
    def from_text(
        cls,
        book_id: str,
        content: str,
        config: ReaderConfig | None = None,
    ) -> "ReadingSession":
        session = cls(book_id, extract_chapters(content), text=content, config=config)
        session.content = chapter_text(content, session.chapters[0])
        return session

    @classmethod
    def from_epub(
        cls,
        book_id: str,
        data: bytes | str | Path,
        config: ReaderConfig | None = None,
    ) -> "ReadingSession":
        parsed = parse_epub(data)
        session = cls(book_id, parsed.chapters, epub=parsed, config=config)
        session.content = parsed.initial_content
        return session

    @property
    def is_epub(self) -> bool:
        return self.epub is not None

    @property
    def current_chapter(self) -> Chapter:
        return self.chapters[self.current_index]

    @property
    def has_next(self) -> bool:
        return self.current_index + 1 < len(self.chapters)

    @property
    def has_previous(self) -> bool:
        return self.current_index > 0

    async def select(self, chapter_id: str) -> str:
        index = chapter_index(self.chapters, chapter_id)
        if index < 0:
            raise KeyError(f"Unknown chapter id: {chapter_id}")
        return await self._show(index)

    async def next(self) -> str | None:
        if not self.has_next:
            return None
        return await self._show(self.current_index + 1)

    async def previous(self) -> str | None:
        if not self.has_previous:
            return None
        return await self._show(self.current_index - 1)

    async def _show(self, index: int) -> str:
        chapter = self.chapters[index]
        if self.epub is not None:
            content = await load_chapter_content(self.epub.handle, chapter)
        else:
            content = chapter_text(self.text or "", chapter)
        self.current_index = index
        self.content = content
        if self.prefetcher is not None:
            self.prefetcher.schedule(self.chapters, index)
        logger.debug("Showing chapter %s (%s)", chapter.id, chapter.title)
        return content

    def pages(
        self,
        width: float | None = None,
        height: float | None = None,
        font_size: float | None = None,
    ) -> list[Page]:
        return paginate(
            self.content,
            width if width is not None else self.config.viewport_width,
            height if height is not None else self.config.viewport_height,
            font_size if font_size is not None else self.config.font_size,
        )

    def _chapter_offset(self) -> int:
        # Plain-text positions are offsets into the whole book.
        return 0 if self.epub is not None else self.current_chapter.start_position

    def position(self, page: int = 0, pages: list[Page] | None = None) -> ReadingPosition:
        if pages is None:
            pages = self.pages()
        offset = 0
        if pages:
            page = max(0, min(page, len(pages) - 1))
            offset = pages[page].start
        else:
            page = 0
        return ReadingPosition(
            book_id=self.book_id,
            chapter_id=self.current_chapter.id,
            page=page,
            position=self._chapter_offset() + offset,
        )

    async def resume(self, saved: ReadingPosition) -> int:
        """Show the chapter of a saved position and return the page to open."""
        index = chapter_index(self.chapters, saved.chapter_id) if saved.chapter_id else -1
        if index < 0 and self.epub is None:
            chapter = find_chapter_for_position(self.chapters, saved.position)
            if chapter is not None:
                index = chapter_index(self.chapters, chapter.id)
        if index < 0:
            logger.info("Saved chapter %s not found; opening the first chapter", saved.chapter_id)
            index = 0
        await self._show(index)

        pages = self.pages()
        if not pages:
            return 0
        relative = saved.position - self._chapter_offset()
        if relative <= 0 and saved.page > 0:
            return min(saved.page, len(pages) - 1)
        return page_for_position(pages, max(0, relative))

    def close(self) -> None:
        if self.prefetcher is not None:
            self.prefetcher.cancel_stale(set())
        if self.epub is not None:
            self.epub.handle.close()


__all__ = ["ReadingSession"]
