from __future__ import annotations

import pytest

from ringbook.chunking import split_text_for_speech, split_text_for_speech_with_spans


def test_sentences_split_at_full_stops() -> None:
    text = "今天天气很好。我们去公园玩。"
    chunks = split_text_for_speech(text, 10)
    assert chunks == ["今天天气很好。", "我们去公园玩。"]


def test_text_within_limit_is_single_chunk() -> None:
    assert split_text_for_speech("你好。", 10) == ["你好。"]
    assert split_text_for_speech("", 10) == []


def test_sentences_are_packed_greedily() -> None:
    text = "一。二。三。四。五六七八九。"
    chunks = split_text_for_speech(text, 6)
    assert chunks == ["一。二。三。", "四。", "五六七八九。"]


def test_long_sentence_breaks_after_comma() -> None:
    text = "甲" * 8 + "，" + "乙" * 8 + "。"
    chunks = split_text_for_speech(text, 10)
    assert chunks == ["甲" * 8 + "，", "乙" * 8 + "。"]


def test_long_sentence_without_soft_break_is_cut_hard() -> None:
    text = "x" * 23 + ". tail"
    chunks = split_text_for_speech(text, 10)
    assert chunks[:3] == ["x" * 10, "x" * 10, "xxx."]
    assert "".join(chunks) == text


def test_text_without_terminators_uses_fixed_slices() -> None:
    chunks = split_text_for_speech("a" * 25, 10)
    assert [len(chunk) for chunk in chunks] == [10, 10, 5]


@pytest.mark.parametrize(
    "text",
    [
        "第一句。第二句！第三句？\n第四句",
        "Short. Sentences here! And a question? Yes.\n\nNew paragraph without end",
        "没有标点的一段很长很长很长很长很长很长很长很长的文字，只有逗号，还有逗号",
        "\n\n\n开头是空行。" + "中" * 40,
        "mixed 中文 and English, with commas, spaces and 句号。" * 5,
    ],
)
@pytest.mark.parametrize("max_length", [1, 5, 17, 200])
def test_chunks_are_lossless_and_bounded(text: str, max_length: int) -> None:
    chunks = split_text_for_speech(text, max_length)
    assert "".join(chunks) == text
    assert all(chunk for chunk in chunks)
    assert all(len(chunk) <= max_length for chunk in chunks)


def test_spans_carry_absolute_offsets() -> None:
    text = "今天天气很好。我们去公园玩。"
    chunks = split_text_for_speech_with_spans(text, 10, base_position=100)
    assert [(chunk.index, chunk.start, chunk.end) for chunk in chunks] == [
        (0, 100, 107),
        (1, 107, 114),
    ]
    assert [chunk.text for chunk in chunks] == split_text_for_speech(text, 10)


def test_non_positive_length_is_rejected() -> None:
    with pytest.raises(ValueError):
        split_text_for_speech("abc", 0)
    with pytest.raises(ValueError):
        split_text_for_speech_with_spans("", -1)
