from .chunking import split_text_for_speech, split_text_for_speech_with_spans
from .config import ReaderConfig
from .epub import EpubArchiveError, EpubArchiveHandle, ParsedEpub, clean_title, parse_epub
from .loader import ChapterPrefetcher, load_chapter_content
from .models import Chapter, ChapterContentCache, Page, ReadingPosition, SpeechChunk
from .pagination import paginate
from .session import ReadingSession
from .speech import SpeechEngine, SpeechPlayback, SpeechSequencer
from .text_chapters import extract_chapters

__all__ = [
    "Chapter",
    "ChapterContentCache",
    "ChapterPrefetcher",
    "EpubArchiveError",
    "EpubArchiveHandle",
    "Page",
    "ParsedEpub",
    "ReaderConfig",
    "ReadingPosition",
    "ReadingSession",
    "SpeechChunk",
    "SpeechEngine",
    "SpeechPlayback",
    "SpeechSequencer",
    "clean_title",
    "extract_chapters",
    "load_chapter_content",
    "paginate",
    "parse_epub",
    "split_text_for_speech",
    "split_text_for_speech_with_spans",
]
