from __future__ import annotations

import argparse
import asyncio
import sys
from importlib import metadata
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .chunking import split_text_for_speech_with_spans
from .config import ReaderConfig
from .epub import EpubArchiveError
from .logging_utils import configure_logging
from .session import ReadingSession
from .textutils import estimate_reading_time, progress_percentage, read_text_file

EPUB_SUFFIXES = {".epub"}
_ZIP_MAGIC = b"PK\x03\x04"
_PREVIEW_CHARS = 40


try:
    __version__ = metadata.version("ringbook")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"ringbook {__version__}",
    )


def _add_book_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", help="Path to a .txt or .epub book")
    parser.add_argument(
        "--chapter",
        help="Chapter id or 1-based chapter number (default: first chapter)",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="ringbook",
        description="Inspect how ringbook splits a book into chapters, pages and speech chunks.",
    )
    _add_version_flag(ap)
    ap.add_argument(
        "--debug",
        action="store_true",
        help="Log parser decisions and fallbacks.",
    )
    subparsers = ap.add_subparsers(dest="command")

    chapters = subparsers.add_parser("chapters", help="List the chapters found in a book")
    chapters.add_argument("path", help="Path to a .txt or .epub book")

    config = ReaderConfig.from_env()
    pages = subparsers.add_parser("pages", help="Paginate one chapter for a viewport")
    _add_book_argument(pages)
    pages.add_argument("--width", type=float, default=config.viewport_width, help="Viewport width")
    pages.add_argument("--height", type=float, default=config.viewport_height, help="Viewport height")
    pages.add_argument("--font-size", type=float, default=config.font_size, help="Font size")

    chunks = subparsers.add_parser("chunks", help="Split one chapter into speech chunks")
    _add_book_argument(chunks)
    chunks.add_argument(
        "--max-length",
        type=int,
        default=config.speech_chunk_length,
        help=f"Maximum characters per chunk (default: {config.speech_chunk_length})",
    )
    return ap


def _is_epub(path: Path) -> bool:
    if path.suffix.lower() in EPUB_SUFFIXES:
        return True
    with path.open("rb") as fh:
        return fh.read(len(_ZIP_MAGIC)) == _ZIP_MAGIC


def _open_session(path: Path) -> ReadingSession:
    if not path.exists():
        raise SystemExit(f"Input path not found: {path}")
    if not path.is_file():
        raise SystemExit(f"Input path is not a file: {path}")
    # Prefetch only matters for interactive reading.
    config = ReaderConfig.from_env()
    config.prefetch = False
    if _is_epub(path):
        return ReadingSession.from_epub(path.stem, path, config=config)
    return ReadingSession.from_text(path.stem, read_text_file(path), config=config)


def _select_chapter(session: ReadingSession, chapter: str | None) -> None:
    if not chapter:
        return
    ids = [item.id for item in session.chapters]
    if chapter in ids:
        chapter_id = chapter
    elif chapter.isdigit() and 1 <= int(chapter) <= len(ids):
        chapter_id = ids[int(chapter) - 1]
    else:
        raise SystemExit(f"Unknown chapter: {chapter}")
    asyncio.run(session.select(chapter_id))


def _preview(text: str, width: int = _PREVIEW_CHARS) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= width else flat[: width - 1] + "…"


def _run_chapters(session: ReadingSession, console: Console) -> int:
    title = session.epub.title if session.epub is not None else session.book_id
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Id")
    table.add_column("Title")
    if session.epub is not None:
        table.add_column("Entry")
        for number, chapter in enumerate(session.chapters, start=1):
            table.add_row(str(number), chapter.id, chapter.title, chapter.href or "")
        console.print(table)
        console.print(f"Author: {session.epub.author} · source: {session.epub.tier}")
        return 0

    text = session.text or ""
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Progress", justify="right")
    for number, chapter in enumerate(session.chapters, start=1):
        table.add_row(
            str(number),
            chapter.id,
            chapter.title,
            str(chapter.start_position),
            str(chapter.end_position),
            progress_percentage(chapter.start_position, len(text)),
        )
    console.print(table)
    console.print(f"{len(text)} characters · about {estimate_reading_time(text)} min")
    return 0


def _run_pages(session: ReadingSession, args: argparse.Namespace, console: Console) -> int:
    try:
        pages = session.pages(args.width, args.height, args.font_size)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    table = Table(title=f"{session.current_chapter.title} · {len(pages)} pages")
    table.add_column("Page", justify="right")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Preview")
    for page in pages:
        table.add_row(str(page.index + 1), str(page.start), str(page.end), _preview(page.text))
    console.print(table)
    return 0


def _run_chunks(session: ReadingSession, args: argparse.Namespace, console: Console) -> int:
    try:
        chunks = split_text_for_speech_with_spans(session.content, args.max_length)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    table = Table(title=f"{session.current_chapter.title} · {len(chunks)} chunks")
    table.add_column("#", justify="right")
    table.add_column("Start", justify="right")
    table.add_column("Length", justify="right")
    table.add_column("Text")
    for chunk in chunks:
        table.add_row(str(chunk.index + 1), str(chunk.start), str(len(chunk.text)), _preview(chunk.text))
    console.print(table)
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    configure_logging(args.debug)
    console = Console()
    err_console = Console(stderr=True)
    try:
        session = _open_session(Path(args.path))
    except EpubArchiveError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        return 1

    try:
        if args.command == "chapters":
            return _run_chapters(session, console)
        _select_chapter(session, args.chapter)
        if args.command == "pages":
            return _run_pages(session, args, console)
        return _run_chunks(session, args, console)
    finally:
        session.close()


if __name__ == "__main__":
    raise SystemExit(main())
