from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol, Sequence

from .chunking import DEFAULT_MAX_CHARS_PER_CHUNK, split_text_for_speech_with_spans
from .models import SpeechChunk

logger = logging.getLogger(__name__)

PositionCallback = Callable[[int], None]


class SpeechEngine(Protocol):
    async def speak(self, text: str) -> None: ...


class SpeechPlayback:
    """One run of chunked speech over a block of text."""

    def __init__(
        self,
        engine: SpeechEngine,
        chunks: Sequence[SpeechChunk],
        *,
        base_position: int = 0,
        on_position: PositionCallback | None = None,
    ) -> None:
        self.engine = engine
        self.chunks = list(chunks)
        self.base_position = base_position
        self.on_position = on_position
        self.current_index = 0
        self.failed_chunks: list[int] = []
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._task: asyncio.Task[None] | None = None

    def begin(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    @property
    def position(self) -> int:
        if not self.chunks:
            return self.base_position
        return self.chunks[min(self.current_index, len(self.chunks) - 1)].start

    @property
    def paused(self) -> bool:
        return not self._resumed.is_set()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task is not None and self._task.cancelled()

    def pause(self) -> None:
        self._resumed.clear()

    def resume(self) -> None:
        self._resumed.set()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        if self._task is not None:
            await asyncio.wait([self._task])

    async def _run(self) -> None:
        for chunk in self.chunks:
            await self._resumed.wait()
            if not chunk.text.strip():
                continue
            self.current_index = chunk.index
            try:
                if self.on_position is not None:
                    self.on_position(chunk.start)
                await self.engine.speak(chunk.text)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning("Speech failed on chunk %d: %s", chunk.index, exc)
                self.failed_chunks.append(chunk.index)
        if self.chunks:
            self.current_index = len(self.chunks) - 1


class SpeechSequencer:
    """
    Speaks text through an injected engine, one chunk at a time.

    At most one playback is active; starting another cancels the previous
    one. Must be used from inside a running event loop.
    """

    def __init__(
        self,
        engine: SpeechEngine,
        max_length: int = DEFAULT_MAX_CHARS_PER_CHUNK,
    ) -> None:
        if max_length < 1:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.engine = engine
        self.max_length = max_length
        self.current: SpeechPlayback | None = None

    def start(
        self,
        text: str,
        base_position: int = 0,
        on_position: PositionCallback | None = None,
    ) -> SpeechPlayback:
        self.stop()
        chunks = split_text_for_speech_with_spans(
            text, self.max_length, base_position=base_position
        )
        playback = SpeechPlayback(
            self.engine,
            chunks,
            base_position=base_position,
            on_position=on_position,
        )
        playback.begin()
        self.current = playback
        return playback

    def stop(self) -> None:
        if self.current is not None:
            self.current.cancel()

    def pause(self) -> None:
        if self.current is not None:
            self.current.pause()

    def resume(self) -> None:
        if self.current is not None:
            self.current.resume()

    @property
    def is_speaking(self) -> bool:
        return self.current is not None and not self.current.done and not self.current.paused


__all__ = [
    "PositionCallback",
    "SpeechEngine",
    "SpeechPlayback",
    "SpeechSequencer",
]
