from __future__ import annotations

import re

from ringbook.text_chapters import (
    DEFAULT_HEADING_RULES,
    MIN_CHAPTER_LENGTH,
    WHOLE_TEXT_TITLE,
    HeadingRule,
    chapter_text,
    collect_candidates,
    extract_chapters,
    find_chapter_for_position,
    merge_overlapping,
)

FILLER_LINE = "山间的小路弯弯曲曲地通向远方，风吹过树林发出沙沙的声音。\n"


def _filler(lines: int) -> str:
    return FILLER_LINE * lines


def _five_chapter_book() -> str:
    titles = ["开始", "风起", "远行", "重逢", "归来"]
    return "".join(f"第{idx}章 {title}\n" + _filler(86) for idx, title in enumerate(titles, start=1))


def _rule(name: str) -> HeadingRule:
    return next(rule for rule in DEFAULT_HEADING_RULES if rule.name == name)


def test_five_headings_become_five_chapters() -> None:
    text = _five_chapter_book()
    assert len(text) > 12000

    chapters = extract_chapters(text)

    assert [chapter.title for chapter in chapters] == [
        "第1章 开始",
        "第2章 风起",
        "第3章 远行",
        "第4章 重逢",
        "第5章 归来",
    ]
    assert [chapter.id for chapter in chapters] == [f"chapter-{idx}" for idx in range(5)]
    for chapter in chapters:
        assert chapter.end_position - chapter.start_position >= MIN_CHAPTER_LENGTH


def test_chapter_bounds_are_contiguous() -> None:
    text = _five_chapter_book()
    chapters = extract_chapters(text)

    assert chapters[0].start_position == 0
    for current, following in zip(chapters, chapters[1:]):
        assert current.end_position == following.start_position - 1
    assert chapters[-1].end_position == len(text)
    assert chapter_text(text, chapters[1]).startswith("第2章 风起\n")


def test_empty_text_is_one_whole_chapter() -> None:
    chapters = extract_chapters("")
    assert len(chapters) == 1
    assert chapters[0].title == WHOLE_TEXT_TITLE
    assert (chapters[0].start_position, chapters[0].end_position) == (0, 0)


def test_short_text_without_headings_is_whole_text() -> None:
    text = _filler(10)
    chapters = extract_chapters(text)
    assert len(chapters) == 1
    assert chapters[0].title == WHOLE_TEXT_TITLE
    assert chapters[0].end_position == len(text)


def test_short_chapter_is_dropped_by_minimum_length() -> None:
    # Known limitation: a legitimately short chapter disappears and its text
    # is no longer covered by any chapter.
    text = "第1章 短诗\n" + _filler(18) + "第2章 长篇\n" + _filler(80) + "第3章 尾声\n" + _filler(80)

    chapters = extract_chapters(text)

    assert [chapter.title for chapter in chapters] == ["第2章 长篇", "第3章 尾声"]
    assert chapters[0].start_position == text.index("第2章")


def test_accepted_chapters_are_at_least_minimum_apart() -> None:
    parts = []
    for idx in range(1, 9):
        parts.append(f"第{idx}章 标题\n" + _filler(10 + (idx % 3) * 40))
    text = "".join(parts)

    chapters = extract_chapters(text)

    for current, following in zip(chapters, chapters[1:]):
        assert following.start_position - current.start_position >= MIN_CHAPTER_LENGTH


def test_long_text_without_headings_falls_back_to_paragraph_groups() -> None:
    paragraph = FILLER_LINE.rstrip("\n") + "\n\n"
    text = paragraph * 200
    assert len(text) >= 5000

    chapters = extract_chapters(text)

    assert [chapter.title for chapter in chapters] == [f"第{idx}章" for idx in range(2, 11)]
    assert chapters[0].start_position == len(paragraph) * 20
    assert chapters[-1].end_position == len(text)


def test_same_offset_candidates_keep_higher_priority_rule() -> None:
    text = "第1章 开始\n" + _filler(40)
    merged = merge_overlapping(collect_candidates(text))
    assert merged[0].rule == "numbered"
    assert merged[0].offset == 0


def test_heading_rules_are_independent() -> None:
    assert _rule("volume").find("第二卷 山河\n")[0].title == "第二卷 山河"
    assert _rule("section-label").find("节1：引子\n")[0].title == "节1：引子"
    assert _rule("english-chapter").find("Chapter IV The Crossing\n")[0].offset == 0
    assert _rule("numeric-list").find("12、重逢\n")[0].title == "12、重逢"
    assert _rule("cjk-numeral-list").find("三、归途\n")[0].title == "三、归途"
    assert _rule("separator").find("* * *\n***\n")[0].title == "***"
    assert _rule("short-line").find("   \n") == []


def test_overlong_matches_are_ignored() -> None:
    wide = HeadingRule("wide", re.compile(r"^#[^\n]*\n", re.MULTILINE))
    assert wide.find("#" + "x" * 120 + "\n") == []
    assert wide.find("# short\n")[0].length == 8


def test_custom_rule_list() -> None:
    marker = HeadingRule("marker", re.compile(r"^@@[^\n]*\n", re.MULTILINE))
    text = "@@ one\n" + _filler(40) + "@@ two\n" + _filler(40)

    chapters = extract_chapters(text, rules=[marker])

    assert [chapter.title for chapter in chapters] == ["@@ one", "@@ two"]


def test_find_chapter_for_position() -> None:
    text = _five_chapter_book()
    chapters = extract_chapters(text)

    inside_third = chapters[2].start_position + 50
    assert find_chapter_for_position(chapters, inside_third) == chapters[2]
    assert find_chapter_for_position(chapters, len(text) + 10) == chapters[0]
    assert find_chapter_for_position([], 0) is None
