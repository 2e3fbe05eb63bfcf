from __future__ import annotations

import io
import logging
import posixpath
import re
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Sequence
from urllib.parse import unquote

from bs4 import BeautifulSoup

from .loader import INFO_CHAPTER_ID, extract_chapter_text, soup_from_html
from .models import Chapter, ChapterContentCache
from .textutils import decode_text

logger = logging.getLogger(__name__)

HTML_EXTS = (".xhtml", ".html", ".htm")
CONTAINER_PATH = "META-INF/container.xml"
COMMON_OPF_PATHS = ("content.opf", "OEBPS/content.opf", "OPS/content.opf")
UNKNOWN_TITLE = "未知书名"
UNKNOWN_AUTHOR = "未知作者"
INFO_CHAPTER_TITLE = "书籍信息"

TIER_SPINE = "spine"
TIER_HTML_SCAN = "html-scan"
TIER_INFO = "info"

_NUM = r"[一二三四五六七八九十百千万\d]+"
_TRAILING_RE = re.compile(r"(?:[\s_\-]|\.(?:x?html|htm))+$", re.IGNORECASE)
_FORMATTED_RE = re.compile(rf"^(第|卷|册|部|篇)\s*{_NUM}\s*(章|节|卷|部|篇|话|回)", re.IGNORECASE)
_VOLUME_RE = re.compile(rf"(第|卷|册)[\s_\-]*({_NUM})[\s_\-]*(卷|册|部|篇)", re.IGNORECASE)
_CHAPTER_RE = re.compile(rf"(chapter|第|章)[\s_\-]*({_NUM})[\s_\-]*(章|节)?", re.IGNORECASE)
_NUMERIC_RE = re.compile(r"^(\d+)$")
_NUMBERED_NAME_RE = re.compile(r"^(\d+)[\s._\-:：]+(.+)$")
_TRIVIAL_NAME_RE = re.compile(r"^(chapter|section|part|chap|ch)$", re.IGNORECASE)
_LEADING_PUNCT_RE = re.compile(r"^[\s._\-:：]+")
_SEPARATOR_RE = re.compile(r"[_\-]")
_ENTITY_RE = re.compile(r"&[a-z]+;", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")


class EpubArchiveError(ValueError):
    """Raised when the input is not a readable zip archive."""


class EpubArchiveHandle:
    """An open EPUB archive plus the chapter text extracted from it so far."""

    def __init__(
        self,
        archive: zipfile.ZipFile,
        *,
        title: str = UNKNOWN_TITLE,
        author: str = UNKNOWN_AUTHOR,
        package_path: str | None = None,
    ) -> None:
        self.archive = archive
        self.title = title
        self.author = author
        self.package_path = package_path
        self.cache = ChapterContentCache()
        self._names = {info.filename for info in archive.infolist() if not info.is_dir()}

    @property
    def entries(self) -> list[str]:
        return [info.filename for info in self.archive.infolist() if not info.is_dir()]

    def has_entry(self, name: str) -> bool:
        return name in self._names

    def resolve_entry(self, href: str) -> str | None:
        if href in self._names:
            return href
        decoded = unquote(href)
        if decoded in self._names:
            return decoded
        return None

    def read_entry(self, name: str) -> bytes:
        with self.archive.open(name, "r") as handle:
            return handle.read()

    def read_text(self, name: str) -> str:
        return decode_text(self.read_entry(name))

    def close(self) -> None:
        self.archive.close()

    def __enter__(self) -> "EpubArchiveHandle":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@dataclass
class ParsedEpub:
    chapters: list[Chapter]
    title: str
    author: str
    handle: EpubArchiveHandle
    initial_content: str
    tier: str = TIER_SPINE


@dataclass
class _PackageDocument:
    path: str
    manifest: dict[str, str] = field(default_factory=dict)
    spine: list[str] = field(default_factory=list)
    title: str | None = None
    author: str | None = None


def _normalize_title_text(text: str) -> str:
    text = _SEPARATOR_RE.sub(" ", _TRAILING_RE.sub("", text))
    return _WHITESPACE_RE.sub(" ", text).strip()


def _remainder(cleaned: str, pattern: re.Pattern[str]) -> str:
    remaining = _normalize_title_text(pattern.sub("", cleaned, count=1))
    return _LEADING_PUNCT_RE.sub("", remaining)


def clean_title(title: str | None) -> str:
    """
    Normalize a chapter title taken from markup or a file name.

    Well-formed markers such as 第3卷 or 第12章 are kept as they are; numbered
    file names become 第N章 plus whatever descriptive text follows. Numerals
    are never converted between Chinese and Arabic forms.
    """
    if not title:
        return ""
    # trailing separators and extensions go together, in any order
    cleaned = _ENTITY_RE.sub(" ", title)
    cleaned = _TRAILING_RE.sub("", cleaned).strip()
    if not cleaned:
        return ""

    if _FORMATTED_RE.match(cleaned):
        return cleaned

    volume = _VOLUME_RE.search(cleaned)
    if volume:
        marker = f"第{volume.group(2)}{volume.group(3) or '卷'}"
        remaining = _remainder(cleaned, _VOLUME_RE)
        return f"{marker} {remaining}" if len(remaining) > 1 else marker

    chapter = _CHAPTER_RE.search(cleaned)
    if chapter:
        marker = f"第{chapter.group(2)}章"
        remaining = _remainder(cleaned, _CHAPTER_RE)
        return f"{marker} {remaining}" if len(remaining) > 1 else marker

    numeric = _NUMERIC_RE.match(cleaned)
    if numeric:
        return f"第{int(numeric.group(1))}章"

    numbered = _NUMBERED_NAME_RE.match(cleaned)
    if numbered:
        number = int(numbered.group(1))
        name = _normalize_title_text(numbered.group(2))
        if len(name) < 2 or _TRIVIAL_NAME_RE.match(name):
            return f"第{number}章"
        return f"第{number}章 {name}"

    cleaned = _normalize_title_text(cleaned)
    if _NUMERIC_RE.match(cleaned):
        return f"第{int(cleaned)}章"
    return cleaned


def _usable_title(title: str) -> bool:
    return bool(title) and not title.isdigit()


def _soup_text(soup: BeautifulSoup, name: str) -> str:
    tag = soup.find(name)
    if tag is None:
        return ""
    return " ".join(tag.get_text(" ").split())


def titles_from_html(html: str) -> tuple[str, str]:
    """Cleaned (<h1>, <title>) texts of a content document."""
    soup = soup_from_html(html)
    return clean_title(_soup_text(soup, "h1")), clean_title(_soup_text(soup, "title"))


def resolve_chapter_title(html: str | None, path: str, ordinal: int) -> str:
    candidates: list[str] = []
    if html is not None:
        candidates.extend(titles_from_html(html))
    candidates.append(clean_title(PurePosixPath(path).name))
    for candidate in candidates:
        if _usable_title(candidate):
            return candidate
    return f"第{ordinal}章"


def _strip_tag(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


def _resolve_opf_href(opf_path: str, href: str) -> str:
    href = href.split("#", 1)[0]
    base = posixpath.dirname(opf_path)
    combined = posixpath.join(base, href) if base else href
    return posixpath.normpath(combined)


def _read_entry_text(handle: EpubArchiveHandle, name: str) -> str | None:
    # zlib.error, RuntimeError (encrypted) and NotImplementedError
    # (compression method) all surface from a damaged entry
    try:
        return handle.read_text(name)
    except Exception as exc:
        logger.warning("Could not read %s: %s", name, exc)
        return None


def _read_container_rootfile(handle: EpubArchiveHandle) -> str | None:
    if not handle.has_entry(CONTAINER_PATH):
        return None
    xml_text = _read_entry_text(handle, CONTAINER_PATH)
    if xml_text is None:
        return None
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        logger.warning("Unreadable %s: %s", CONTAINER_PATH, exc)
        return None
    for elem in root.iter():
        if _strip_tag(elem.tag) == "rootfile":
            full_path = elem.attrib.get("full-path")
            if full_path:
                return full_path
    return None


def find_package_path(handle: EpubArchiveHandle) -> str | None:
    rootfile = _read_container_rootfile(handle)
    if rootfile and handle.has_entry(rootfile):
        return rootfile
    for candidate in COMMON_OPF_PATHS:
        if handle.has_entry(candidate):
            return candidate
    for name in handle.entries:
        if name.lower().endswith(".opf"):
            return name
    return None


def _element_text(elem: ET.Element) -> str:
    return " ".join("".join(elem.itertext()).split())


def _parse_package_xml(path: str, xml_text: str) -> _PackageDocument:
    package = _PackageDocument(path=path)
    root = ET.fromstring(xml_text)
    for elem in root.iter():
        name = _strip_tag(elem.tag)
        if name == "item":
            item_id = elem.attrib.get("id")
            href = elem.attrib.get("href")
            if item_id and href:
                package.manifest[item_id] = href
        elif name == "itemref":
            idref = elem.attrib.get("idref")
            if idref:
                package.spine.append(idref)
        elif name == "title" and package.title is None:
            package.title = _element_text(elem) or None
        elif name == "creator" and package.author is None:
            package.author = _element_text(elem) or None
    return package


def _parse_package_soup(path: str, xml_text: str) -> _PackageDocument:
    # lxml's recovering parser copes with documents ElementTree rejects
    package = _PackageDocument(path=path)
    soup = BeautifulSoup(xml_text, "lxml-xml")
    for item in soup.find_all("item"):
        item_id = item.get("id")
        href = item.get("href")
        if item_id and href:
            package.manifest[item_id] = href
    for itemref in soup.find_all("itemref"):
        idref = itemref.get("idref")
        if idref:
            package.spine.append(idref)
    title = soup.find("title")
    if title is not None:
        package.title = " ".join(title.get_text(" ").split()) or None
    creator = soup.find("creator")
    if creator is not None:
        package.author = " ".join(creator.get_text(" ").split()) or None
    return package


def read_package_document(handle: EpubArchiveHandle, path: str) -> _PackageDocument | None:
    xml_text = _read_entry_text(handle, path)
    if xml_text is None:
        return None
    try:
        return _parse_package_xml(path, xml_text)
    except ET.ParseError as exc:
        logger.info("Package document %s is not well-formed (%s); parsing leniently", path, exc)
    try:
        return _parse_package_soup(path, xml_text)
    except Exception as exc:
        logger.warning("Could not parse package document %s: %s", path, exc)
        return None


def _title_for_entry(handle: EpubArchiveHandle, name: str | None, path: str, ordinal: int) -> str:
    html = _read_entry_text(handle, name) if name is not None else None
    try:
        return resolve_chapter_title(html, path, ordinal)
    except Exception as exc:
        logger.warning("Title extraction failed for %s: %s", path, exc)
        return resolve_chapter_title(None, path, ordinal)


def spine_chapters(handle: EpubArchiveHandle, package: _PackageDocument) -> list[Chapter]:
    chapters: list[Chapter] = []
    for idref in package.spine:
        href = package.manifest.get(idref)
        if not href:
            logger.debug("Spine idref %s has no manifest entry", idref)
            continue
        full_path = _resolve_opf_href(package.path, href)
        entry = handle.resolve_entry(full_path)
        ordinal = len(chapters)
        chapters.append(
            Chapter(
                id=f"epub-chapter-{ordinal}",
                title=_title_for_entry(handle, entry, entry or full_path, ordinal + 1),
                start_position=ordinal,
                end_position=ordinal + 1,
                href=entry or full_path,
            )
        )
    return chapters


def html_scan_chapters(handle: EpubArchiveHandle) -> list[Chapter]:
    paths = sorted(name for name in handle.entries if name.lower().endswith(HTML_EXTS))
    return [
        Chapter(
            id=f"epub-chapter-{ordinal}",
            title=_title_for_entry(handle, path, path, ordinal + 1),
            start_position=ordinal,
            end_position=ordinal + 1,
            href=path,
        )
        for ordinal, path in enumerate(paths)
    ]


def info_chapter_text(title: str, author: str) -> str:
    return f"EPUB file: {title}\nAuthor: {author}\n\nThe chapter list could not be parsed."


def open_archive(data: bytes | str | Path) -> zipfile.ZipFile:
    source: io.BytesIO | str | Path
    source = io.BytesIO(data) if isinstance(data, (bytes, bytearray, memoryview)) else data
    try:
        return zipfile.ZipFile(source)
    except zipfile.BadZipFile as exc:
        raise EpubArchiveError(f"Not a readable EPUB archive: {exc}") from exc


def parse_epub(data: bytes | str | Path) -> ParsedEpub:
    """
    Parse an EPUB into an ordered chapter list with best-effort titles.

    Chapters come from the package spine; when the spine yields nothing,
    every HTML entry in path order; failing that, a single information
    chapter. Only an input that is not a zip archive raises.
    """
    handle = EpubArchiveHandle(open_archive(data))
    try:
        return _parse_archive(handle)
    except BaseException:
        handle.close()
        raise


def _parse_archive(handle: EpubArchiveHandle) -> ParsedEpub:
    package: _PackageDocument | None = None
    package_path = find_package_path(handle)
    if package_path is not None:
        package = read_package_document(handle, package_path)
    else:
        logger.info("No package document found in archive")
    if package is not None:
        handle.package_path = package.path
        handle.title = package.title or UNKNOWN_TITLE
        handle.author = package.author or UNKNOWN_AUTHOR

    tier = TIER_SPINE
    chapters = spine_chapters(handle, package) if package is not None else []
    if not chapters:
        tier = TIER_HTML_SCAN
        logger.info("Spine produced no chapters; scanning HTML entries")
        chapters = html_scan_chapters(handle)
    if not chapters:
        tier = TIER_INFO
        logger.warning("No chapter structure found in EPUB")
        chapters = [
            Chapter(
                id=INFO_CHAPTER_ID,
                title=INFO_CHAPTER_TITLE,
                start_position=0,
                end_position=1,
            )
        ]
        handle.cache.store(INFO_CHAPTER_ID, info_chapter_text(handle.title, handle.author))

    initial_content = extract_chapter_text(handle, chapters[0])
    return ParsedEpub(
        chapters=chapters,
        title=handle.title,
        author=handle.author,
        handle=handle,
        initial_content=initial_content,
        tier=tier,
    )


def chapter_index(chapters: Sequence[Chapter], chapter_id: str) -> int:
    for idx, chapter in enumerate(chapters):
        if chapter.id == chapter_id:
            return idx
    return -1


__all__ = [
    "EpubArchiveError",
    "EpubArchiveHandle",
    "ParsedEpub",
    "chapter_index",
    "clean_title",
    "find_package_path",
    "html_scan_chapters",
    "open_archive",
    "parse_epub",
    "resolve_chapter_title",
    "spine_chapters",
    "titles_from_html",
]
