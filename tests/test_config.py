from __future__ import annotations

import pytest

from ringbook.config import ReaderConfig


def test_defaults() -> None:
    config = ReaderConfig()
    assert config.speech_chunk_length == 200
    assert (config.viewport_width, config.viewport_height) == (390, 844)
    assert config.font_size == 18
    assert config.prefetch is True


def test_from_env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RINGBOOK_SPEECH_CHUNK", "120")
    monkeypatch.setenv("RINGBOOK_FONT_SIZE", "20.5")
    monkeypatch.setenv("RINGBOOK_VIEWPORT", "768x1024")
    monkeypatch.setenv("RINGBOOK_PREFETCH", "false")

    config = ReaderConfig.from_env()

    assert config.speech_chunk_length == 120
    assert config.font_size == 20.5
    assert (config.viewport_width, config.viewport_height) == (768, 1024)
    assert config.prefetch is False


def test_invalid_values_fall_back_to_defaults() -> None:
    config = ReaderConfig.from_env(
        {
            "RINGBOOK_SPEECH_CHUNK": "-5",
            "RINGBOOK_FONT_SIZE": "large",
            "RINGBOOK_VIEWPORT": "768",
            "RINGBOOK_PREFETCH": "maybe",
        }
    )
    assert config == ReaderConfig()
