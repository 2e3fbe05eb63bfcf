from __future__ import annotations

import pytest

from ringbook.pagination import chars_per_page, page_for_position, paginate

# 10 characters per line, 2 lines per page at font size 10.
SMALL_VIEWPORT = (92, 132, 10)


def test_chars_per_page_for_default_phone_viewport() -> None:
    assert chars_per_page(390, 844, 18) == 33 * 25


def test_tiny_viewport_still_fits_one_character() -> None:
    assert chars_per_page(10, 10, 18) == 1


def test_empty_content_has_no_pages() -> None:
    assert paginate("", 390, 844, 18) == []


def test_page_end_moves_to_nearby_newline() -> None:
    content = "a" * 25 + "\n" + "b" * 30
    pages = paginate(content, *SMALL_VIEWPORT)
    assert [page.text for page in pages] == ["a" * 25 + "\n", "b" * 20, "b" * 10]


def test_page_end_moves_to_sentence_end() -> None:
    content = "字" * 40 + "。" + "后" * 150
    pages = paginate(content, *SMALL_VIEWPORT)
    assert pages[0].text.endswith("。")
    assert pages[0].end == 41


def test_page_end_falls_back_to_previous_newline() -> None:
    content = "a" * 12 + "\n" + "b" * 300
    pages = paginate(content, *SMALL_VIEWPORT)
    assert pages[0].text == "a" * 12 + "\n"


def test_pages_are_consecutive_and_lossless() -> None:
    content = ("第一段文字。\n" * 30) + "结尾没有换行" * 20
    pages = paginate(content, 200, 300, 16)
    assert "".join(page.text for page in pages) == content
    assert [page.index for page in pages] == list(range(len(pages)))
    for current, following in zip(pages, pages[1:]):
        assert current.end == following.start


def test_non_positive_font_size_is_rejected() -> None:
    with pytest.raises(ValueError):
        paginate("text", 390, 844, 0)


def test_page_for_position() -> None:
    content = "a" * 25 + "\n" + "b" * 30
    pages = paginate(content, *SMALL_VIEWPORT)
    assert page_for_position(pages, 0) == 0
    assert page_for_position(pages, 30) == 1
    assert page_for_position(pages, 500) == 2
    assert page_for_position([], 5) == 0


@pytest.mark.parametrize(("gap", "first_end"), [(99, 120), (100, 20)])
def test_newline_lookahead_is_bounded(gap: int, first_end: int) -> None:
    content = "a" * 20 + "b" * gap + "\n" + "c" * 40
    pages = paginate(content, *SMALL_VIEWPORT)
    assert pages[0].end == first_end


def test_long_unbroken_chapter_paginates_at_boundaries() -> None:
    content = "字" * 200_000
    pages = paginate(content, *SMALL_VIEWPORT)
    assert len(pages) == 10_000
    assert all(page.end - page.start == 20 for page in pages)
