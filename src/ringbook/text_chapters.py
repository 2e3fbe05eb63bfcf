from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import Chapter

WHOLE_TEXT_TITLE = "全文"
MIN_CHAPTER_LENGTH = 1000
SINGLE_CHAPTER_LIMIT = 5000
PARAGRAPHS_PER_CHAPTER = 20
MERGE_SLACK = 10
MAX_HEADING_LENGTH = 100

_CJK_NUMERALS = "一二三四五六七八九十百千万"
_NUMBER = rf"[{_CJK_NUMERALS}\d]+"
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


@dataclass(frozen=True)
class HeadingRule:
    """One heuristic for spotting a chapter heading line."""

    name: str
    pattern: re.Pattern[str]

    def find(self, content: str) -> list["HeadingCandidate"]:
        found: list[HeadingCandidate] = []
        for match in self.pattern.finditer(content):
            raw = match.group(0)
            if len(raw) >= MAX_HEADING_LENGTH:
                continue
            found.append(
                HeadingCandidate(
                    title=raw.strip(),
                    offset=match.start(),
                    length=len(raw),
                    rule=self.name,
                )
            )
        return found


@dataclass(frozen=True)
class HeadingCandidate:
    title: str
    offset: int
    length: int
    rule: str


DEFAULT_HEADING_RULES: tuple[HeadingRule, ...] = (
    # 第1章 / 第十二回 / 第3节 ...
    HeadingRule("numbered", re.compile(rf"第{_NUMBER}[章节回集卷][^。\n]{{0,50}}[\r\n]")),
    HeadingRule("volume", re.compile(rf"第{_NUMBER}卷[^。\n]{{0,50}}[\r\n]")),
    # 章节1: / 章一 ...
    HeadingRule("section-label", re.compile(rf"[章节]{_NUMBER}[：:\s][^。\n]{{0,50}}[\r\n]")),
    HeadingRule(
        "english-chapter",
        re.compile(
            r"^[ \t]*chapter[ \t]+(?:\d+|[ivxlcdm]+)\b[^\n]{0,50}[\r\n]",
            re.IGNORECASE | re.MULTILINE,
        ),
    ),
    HeadingRule("numeric-list", re.compile(r"^\d+[、.．：:\s][^。\n]{0,50}[\r\n]", re.MULTILINE)),
    HeadingRule(
        "cjk-numeral-list",
        re.compile(r"^[一二三四五六七八九十][、.．：:\s][^。\n]{0,50}[\r\n]", re.MULTILINE),
    ),
    HeadingRule("separator", re.compile(r"^[*=\-]{3,}[^。\n]{0,50}[\r\n]", re.MULTILINE)),
    HeadingRule("short-line", re.compile(r"^(?=[^\r\n]*\S)[^\r\n]{1,20}[\r\n]", re.MULTILINE)),
)


def collect_candidates(
    content: str,
    rules: Iterable[HeadingRule] = DEFAULT_HEADING_RULES,
) -> list[HeadingCandidate]:
    candidates: list[HeadingCandidate] = []
    for rule in rules:
        candidates.extend(rule.find(content))
    # sort is stable, so earlier rules win ties at the same offset
    candidates.sort(key=lambda candidate: candidate.offset)
    return candidates


def merge_overlapping(candidates: Sequence[HeadingCandidate]) -> list[HeadingCandidate]:
    kept: list[HeadingCandidate] = []
    for candidate in candidates:
        if kept:
            last = kept[-1]
            if candidate.offset < last.offset + last.length + MERGE_SLACK:
                continue
        kept.append(candidate)
    return kept


def filter_short_chapters(
    candidates: Sequence[HeadingCandidate],
    content_length: int,
    min_length: int = MIN_CHAPTER_LENGTH,
) -> list[HeadingCandidate]:
    accepted: list[HeadingCandidate] = []
    for idx, candidate in enumerate(candidates):
        if idx + 1 < len(candidates):
            boundary = candidates[idx + 1].offset
        else:
            boundary = content_length
        if boundary - candidate.offset >= min_length:
            accepted.append(candidate)
    return accepted


def _paragraph_offsets(content: str) -> list[int]:
    offsets = [0]
    offsets.extend(match.end() for match in _PARAGRAPH_BREAK.finditer(content))
    return offsets


def _paragraph_fallback(content: str) -> list[tuple[str, int]]:
    offsets = _paragraph_offsets(content)
    starts: list[tuple[str, int]] = []
    for idx in range(PARAGRAPHS_PER_CHAPTER, len(offsets), PARAGRAPHS_PER_CHAPTER):
        position = offsets[idx]
        if 0 < position < len(content):
            starts.append((f"第{idx // PARAGRAPHS_PER_CHAPTER + 1}章", position))
    return starts


def _whole_text(content: str) -> list[Chapter]:
    return [
        Chapter(
            id="chapter-0",
            title=WHOLE_TEXT_TITLE,
            start_position=0,
            end_position=len(content),
        )
    ]


def _build_chapters(content: str, starts: Sequence[tuple[str, int]]) -> list[Chapter]:
    chapters: list[Chapter] = []
    for idx, (title, start) in enumerate(starts):
        if idx + 1 < len(starts):
            end = starts[idx + 1][1] - 1
        else:
            end = len(content)
        chapters.append(
            Chapter(
                id=f"chapter-{idx}",
                title=title,
                start_position=start,
                end_position=end,
            )
        )
    return chapters


def extract_chapters(
    content: str,
    rules: Iterable[HeadingRule] = DEFAULT_HEADING_RULES,
) -> list[Chapter]:
    """
    Infer chapter boundaries from unstructured text.

    Heading candidates from every rule are merged, then kept only when at
    least MIN_CHAPTER_LENGTH characters separate them from the next one.
    Without any surviving heading the text becomes a single chapter (short
    books) or synthetic chapters of PARAGRAPHS_PER_CHAPTER paragraphs.
    Never returns an empty list.
    """
    if not content:
        return _whole_text(content)

    merged = merge_overlapping(collect_candidates(content, rules))
    accepted = filter_short_chapters(merged, len(content))
    starts = [(candidate.title, candidate.offset) for candidate in accepted]

    if not starts:
        if len(content) < SINGLE_CHAPTER_LIMIT:
            return _whole_text(content)
        starts = _paragraph_fallback(content)
        if not starts:
            return _whole_text(content)

    return _build_chapters(content, starts)


def chapter_text(content: str, chapter: Chapter) -> str:
    return content[chapter.start_position : chapter.end_position]


def find_chapter_for_position(chapters: Sequence[Chapter], position: int) -> Chapter | None:
    for chapter in chapters:
        if chapter.start_position <= position <= chapter.end_position:
            return chapter
    return chapters[0] if chapters else None


__all__ = [
    "DEFAULT_HEADING_RULES",
    "HeadingCandidate",
    "HeadingRule",
    "MIN_CHAPTER_LENGTH",
    "WHOLE_TEXT_TITLE",
    "chapter_text",
    "collect_candidates",
    "extract_chapters",
    "filter_short_chapters",
    "find_chapter_for_position",
    "merge_overlapping",
]
