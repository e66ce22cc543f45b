"""Split narration text into subtitle phrases that fit a pixel budget."""

from dataclasses import dataclass
from typing import Callable

from chart_narrator.constants import SUBTITLE_SAMPLE_CHAR


def _last_whitespace(text: str, start: int, end: int) -> int:
    """Index of the last whitespace character in text[start:end], or -1."""
    for i in range(min(end, len(text)) - 1, start - 1, -1):
        if text[i].isspace():
            return i
    return -1


def compute_breaks(
    text: str,
    max_pixel_width: float,
    measure: Callable[[str], float],
) -> tuple[int, ...]:
    """Compute the break offsets of a narration text.

    Each offset is the inclusive end index of a phrase. The character budget
    is estimated once from the width of a sample character; every phrase ends
    on the last whitespace inside that budget. When no whitespace fits (a
    single word wider than the budget) the search stops and the remainder of
    the text becomes the final phrase.

    The last offset is always len(text) - 1, so an empty text yields (-1,).
    """
    last = len(text) - 1
    char_width = measure(SUBTITLE_SAMPLE_CHAR)
    if char_width > 0:
        limit = max(1, int(round(max_pixel_width / char_width)))
    else:
        limit = max(1, len(text))

    breaks = []
    prev = -1
    while prev + limit < last:
        next_break = _last_whitespace(text, prev + 1, prev + limit + 1)
        if next_break == -1:
            break
        breaks.append(next_break)
        prev = next_break

    if not breaks or breaks[-1] != last:
        breaks.append(last)
    return tuple(breaks)


@dataclass
class SubtitleCursor:
    """Position of subtitle paging inside a narration text."""

    text: str
    offsets: tuple[int, ...]
    index: int = 0

    @property
    def exhausted(self) -> bool:
        return self.index >= len(self.offsets)

    @property
    def next_start(self) -> int:
        """Character offset where the next unconsumed phrase begins."""
        if self.index == 0:
            return 0
        return self.offsets[self.index - 1] + 1


def next_phrase(cursor: SubtitleCursor) -> str | None:
    """Consume one break offset and return its phrase.

    Returns None once every offset has been consumed; callers stop paging.
    """
    if cursor.exhausted:
        return None
    start = cursor.next_start
    end = cursor.offsets[cursor.index]
    cursor.index += 1
    return cursor.text[start:end + 1]


def page_to(cursor: SubtitleCursor, char_offset: int) -> str | None:
    """Advance the cursor to the phrase containing char_offset.

    Returns the phrase to display, or None when char_offset has not reached
    the next phrase yet (or the cursor is exhausted).
    """
    phrase = None
    while not cursor.exhausted and char_offset >= cursor.next_start:
        phrase = next_phrase(cursor)
    return phrase


def split_phrases(text: str, offsets: tuple[int, ...]) -> list[str]:
    """All phrases of a text in order."""
    cursor = SubtitleCursor(text, offsets)
    phrases = []
    while True:
        phrase = next_phrase(cursor)
        if phrase is None:
            return phrases
        phrases.append(phrase)
