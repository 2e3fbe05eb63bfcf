from __future__ import annotations

import asyncio
import logging
import re
import warnings
from typing import TYPE_CHECKING, Sequence

from bs4 import BeautifulSoup, FeatureNotFound, XMLParsedAsHTMLWarning

from .models import Chapter
from .textutils import decode_text

if TYPE_CHECKING:
    from .epub import EpubArchiveHandle

logger = logging.getLogger(__name__)

INFO_CHAPTER_ID = "epub-info"

# Block elements that should start on a new line when collapsing to text.
BLOCK_LEVEL_TAGS = {
    "address", "article", "aside", "blockquote", "dd", "div", "dl", "dt",
    "figcaption", "figure", "footer", "form", "h1", "h2", "h3", "h4", "h5",
    "h6", "header", "hgroup", "hr", "li", "main", "nav", "ol", "p", "pre",
    "section", "table", "ul", "tr",
}
_NON_PROSE_TAGS = ("script", "style", "head")
_SPACE_RE = re.compile(r"[^\S\n]+")


def soup_from_html(html: str) -> BeautifulSoup:
    for parser in ("lxml", "html.parser"):
        try:
            with warnings.catch_warnings():
                warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
                return BeautifulSoup(html, parser)
        except FeatureNotFound:
            continue
    # Neither builder registered; let bs4 raise.
    return BeautifulSoup(html, "html.parser")


def html_to_text(html: str) -> str:
    soup = soup_from_html(html)
    for name in _NON_PROSE_TAGS:
        for tag in soup.find_all(name):
            tag.decompose()
    for br in soup.find_all("br"):
        br.replace_with("\n")
    for tag in soup.find_all(BLOCK_LEVEL_TAGS):
        tag.insert_before("\n")
    text = soup.get_text(separator="")
    lines = (_SPACE_RE.sub(" ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def missing_content_message(chapter: Chapter) -> str:
    return f"Content file not found for chapter {chapter.title}."


def unreadable_content_message(chapter: Chapter) -> str:
    return f"Could not parse chapter {chapter.title}."


def empty_content_message(chapter: Chapter) -> str:
    return f"Chapter {chapter.title} is empty."


def info_content(title: str | None, author: str | None) -> str:
    return f"Book information: {title or 'unknown'}" + (f"\nAuthor: {author}" if author else "")


def extract_chapter_text(handle: "EpubArchiveHandle", chapter: Chapter) -> str:
    """
    Return the plain text of one EPUB chapter, reading through the cache.

    Missing or unreadable entries produce a placeholder message instead of
    raising, so navigation keeps working on damaged books.
    """
    cached = handle.cache.get(chapter.id)
    if cached is not None:
        return cached
    if chapter.id == INFO_CHAPTER_ID or not chapter.href:
        return info_content(handle.title, handle.author)

    entry = handle.resolve_entry(chapter.href)
    if entry is None:
        logger.warning("Chapter %s: %s not found in archive", chapter.id, chapter.href)
        return missing_content_message(chapter)
    try:
        text = html_to_text(decode_text(handle.read_entry(entry)))
    except Exception as exc:
        logger.warning("Chapter %s: failed to extract %s: %s", chapter.id, entry, exc)
        return unreadable_content_message(chapter)
    if not text:
        return empty_content_message(chapter)
    return handle.cache.store(chapter.id, text)


async def load_chapter_content(handle: "EpubArchiveHandle", chapter: Chapter) -> str:
    cached = handle.cache.get(chapter.id)
    if cached is not None:
        return cached
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, extract_chapter_text, handle, chapter)


class ChapterPrefetcher:
    """Warms the cache for the chapters around the one being read."""

    def __init__(self, handle: "EpubArchiveHandle") -> None:
        self.handle = handle
        self.pending: dict[str, asyncio.Task[str | None]] = {}

    def schedule(self, chapters: Sequence[Chapter], index: int) -> list[asyncio.Task[str | None]]:
        neighbours: list[Chapter] = []
        if 0 <= index + 1 < len(chapters):
            neighbours.append(chapters[index + 1])
        if 0 < index <= len(chapters):
            neighbours.append(chapters[index - 1])
        self.cancel_stale({chapter.id for chapter in neighbours})

        scheduled: list[asyncio.Task[str | None]] = []
        for chapter in neighbours:
            if chapter.id in self.handle.cache:
                continue
            task = self.pending.get(chapter.id)
            if task is None or task.done():
                task = asyncio.create_task(self._prefetch(chapter))
                self.pending[chapter.id] = task
                task.add_done_callback(
                    lambda done, chapter_id=chapter.id: self._forget(chapter_id, done)
                )
            scheduled.append(task)
        return scheduled

    def cancel_stale(self, keep: set[str]) -> None:
        for chapter_id, task in list(self.pending.items()):
            if chapter_id not in keep and not task.done():
                task.cancel()

    async def wait(self) -> None:
        tasks = [task for task in self.pending.values() if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _prefetch(self, chapter: Chapter) -> str | None:
        try:
            return await load_chapter_content(self.handle, chapter)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.debug("Prefetch of chapter %s failed: %s", chapter.id, exc)
            return None

    def _forget(self, chapter_id: str, task: asyncio.Task[str | None]) -> None:
        if self.pending.get(chapter_id) is task:
            del self.pending[chapter_id]


__all__ = [
    "ChapterPrefetcher",
    "INFO_CHAPTER_ID",
    "extract_chapter_text",
    "html_to_text",
    "load_chapter_content",
    "soup_from_html",
]
