"""Narrated playback: grow the bars, page subtitles and bump spoken categories.

Everything runs on one asyncio loop. The only ordering concern is the
interleaving of animation completions, speech boundaries, speech completion
and user restarts. Each playback session gets a generation token; every
callback carries the token it was created with and is dropped once a newer
session has started.
"""

import asyncio
import logging
from enum import Enum
from functools import partial
from typing import Callable

from chart_narrator.chart import ChartLayout
from chart_narrator.constants import (
    GROW_DURATION_MS,
    GROW_STAGGER_DIVISOR,
    SUBTITLE_END_DELAY_MS,
    SUBTITLE_END_FADE_MS,
    WATCHDOG_GRACE_SECONDS,
)
from chart_narrator.highlight import HighlightDispatcher
from chart_narrator.models import BoundaryEvent, Chart, PlaybackState
from chart_narrator.segmenter import SubtitleCursor, compute_breaks, page_to
from chart_narrator.tts import SpeechEngineError

logger = logging.getLogger(__name__)


class PlayerState(Enum):
    IDLE = "idle"
    GROWING_BARS = "growing_bars"
    SPEAKING = "speaking"


class PlaybackController:
    """Owns the playback session, the subtitle cursor and the highlight lock.

    While the grow animation runs the lock is held and spoken words are queued
    instead of dispatched, so a bump never fights the grow transition. When the
    last bar finishes growing the queue is replayed in arrival order.
    """

    def __init__(
        self,
        chart: Chart,
        layout: ChartLayout,
        surface,
        engine,
        measure: Callable[..., float],
    ):
        self.chart = chart
        self.layout = layout
        self.surface = surface
        self.engine = engine
        self.measure = measure
        self.dispatcher = HighlightDispatcher(surface, layout)
        self.state = PlayerState.IDLE
        self.playback = PlaybackState()
        self.cursor: SubtitleCursor | None = None
        self.highlights: list[tuple[str, list[int]]] = []
        self.finished = asyncio.Event()
        self._text = ""
        self._generation = 0
        self._grow_remaining = 0
        self._utterance = None
        self._watchdog: asyncio.TimerHandle | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def utterance(self):
        return self._utterance

    def _measure_subtitle(self, text: str) -> float:
        return self.measure(text, self.layout.subtitle_font_size)

    def _is_current(self, token: int) -> bool:
        if token != self._generation:
            logger.debug("Dropping callback from stale session %d (current %d)", token, self._generation)
            return False
        return True

    # --- session lifecycle ---

    async def start(self) -> bool:
        """Start (or restart) narrated playback.

        Returns False without touching the bars when there is nothing to
        narrate, when speech synthesis fails, or when a newer start()
        superseded this one while it was synthesizing.
        """
        text = self.chart.narration_text
        if not text.strip():
            logger.info("Narration text is empty; nothing to play")
            return False

        self._generation += 1
        token = self._generation
        self._end_session()

        try:
            utterance = await self.engine.prepare(text)
        except SpeechEngineError as e:
            logger.warning("Speech engine unavailable: %s", e)
            return False

        if token != self._generation:
            logger.debug("Session %d superseded during synthesis", token)
            utterance.cancel()
            return False

        self._begin_session(token, text, utterance)
        return True

    def _begin_session(self, token: int, text: str, utterance) -> None:
        self._text = text
        self._utterance = utterance
        offsets = compute_breaks(text, self.layout.phrase_budget, self._measure_subtitle)
        self.cursor = SubtitleCursor(text, offsets)
        self.playback = PlaybackState(locked=True, pending_words=[])
        self.highlights = []
        self.dispatcher.reset()
        self.finished.clear()
        self.state = PlayerState.GROWING_BARS
        logger.info("Session %d: %d phrases, %d bars", token, len(offsets), len(self.layout.bars))

        for index in range(len(self.layout.bars)):
            self.surface.set_bar(index, y=self.layout.height, height=0)
        self._grow(token)

        utterance.play(partial(self.on_boundary, token), partial(self.on_speech_end, token))
        self._watchdog = asyncio.get_running_loop().call_later(
            utterance.duration_ms / 1000 + WATCHDOG_GRACE_SECONDS,
            self._on_watchdog,
            token,
        )

    def _end_session(self) -> None:
        if self._utterance is not None:
            self._utterance.cancel()
            self._utterance = None
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        self.state = PlayerState.IDLE

    # --- grow ---

    def _grow(self, token: int) -> None:
        bars = self.layout.bars
        if not bars:
            self._on_grow_complete(token)
            return
        self._grow_remaining = len(bars)
        stagger = GROW_DURATION_MS / len(bars) / GROW_STAGGER_DIVISOR
        for index, bar in enumerate(bars):
            self.surface.transition_bar(
                index,
                {"y": bar.rest_y, "height": bar.rest_height},
                GROW_DURATION_MS,
                delay_ms=index * stagger,
                on_end=partial(self._on_bar_grown, token),
            )

    def _on_bar_grown(self, token: int) -> None:
        if not self._is_current(token):
            return
        self._grow_remaining -= 1
        if self._grow_remaining == 0:
            self._on_grow_complete(token)

    def _on_grow_complete(self, token: int) -> None:
        if not self._is_current(token):
            return
        self.playback.locked = False
        if self.state is PlayerState.GROWING_BARS:
            self.state = PlayerState.SPEAKING
        self._drain()

    # --- speech ---

    def on_boundary(self, token: int, event: BoundaryEvent) -> None:
        """Page subtitles and dispatch (or queue) the spoken word."""
        if not self._is_current(token) or self.state is PlayerState.IDLE:
            return
        word = event.word.strip()
        if not word or not 0 <= event.char_offset < len(self._text):
            logger.debug("Ignoring malformed boundary %r", event)
            return

        phrase = page_to(self.cursor, event.char_offset)
        if phrase is not None:
            self._show_phrase(phrase)

        if self.playback.locked:
            self.playback.pending_words.append(word)
            return
        self._drain()
        self._dispatch(word)

    def on_speech_end(self, token: int) -> None:
        if not self._is_current(token) or self.state is PlayerState.IDLE:
            return
        self.surface.hide_subtitle(SUBTITLE_END_DELAY_MS, SUBTITLE_END_FADE_MS)
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        self.state = PlayerState.IDLE
        self.finished.set()
        logger.info("Session %d: speech complete", token)

    def _on_watchdog(self, token: int) -> None:
        self._watchdog = None
        if not self._is_current(token) or self.state is PlayerState.IDLE:
            return
        logger.warning("Session %d: speech engine never signalled completion", token)
        self.on_speech_end(token)

    # --- subtitles and highlights ---

    def _show_phrase(self, phrase: str) -> None:
        width = self._measure_subtitle(phrase)
        x = (self.layout.width - width) / 2
        self.surface.show_subtitle(phrase, x, self.layout.subtitle_y)

    def _drain(self) -> None:
        pending = self.playback.pending_words
        self.playback.pending_words = []
        for word in pending:
            self._dispatch(word)

    def _dispatch(self, word: str) -> None:
        matched = self.dispatcher.dispatch(word, self.chart.data_points)
        self.highlights.append((word, matched))
