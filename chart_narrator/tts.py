"""Speech synthesis via edge-tts with word boundaries and retry logic."""

import asyncio
import io
import logging
from dataclasses import dataclass, field
from typing import Callable

import edge_tts
from pydub import AudioSegment
from pydub.playback import play

from chart_narrator.constants import (
    DEFAULT_RATE,
    DEFAULT_VOICE,
    TICKS_PER_MS,
    TTS_RETRY_BASE_DELAY,
    TTS_RETRY_COUNT,
)
from chart_narrator.models import BoundaryEvent

logger = logging.getLogger(__name__)


class SpeechEngineError(Exception):
    """Speech synthesis could not be performed."""


def align_boundaries(text: str, words: list[tuple[str, float]]) -> list[BoundaryEvent]:
    """Attach character offsets to (word, time_ms) boundaries.

    Each word is searched forward from the end of the previous match. A word
    that cannot be found gets offset -1.
    """
    events = []
    pos = 0
    for word, time_ms in words:
        index = text.find(word, pos) if word else -1
        if index == -1:
            logger.debug("Boundary word %r not found after offset %d", word, pos)
        else:
            pos = index + len(word)
        events.append(BoundaryEvent(char_offset=index, word=word, time_ms=time_ms))
    return events


def _log_playback_failure(future: asyncio.Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.warning("Audio playback failed: %s", error)


@dataclass
class Utterance:
    """Synthesized narration: MP3 bytes plus its word timeline."""

    text: str
    audio: bytes
    boundaries: list[BoundaryEvent]
    duration_ms: float
    player: Callable[[AudioSegment], None] | None = None
    _handles: list[asyncio.TimerHandle] = field(default_factory=list, repr=False)
    _playback: asyncio.Future | None = field(default=None, repr=False)

    def audio_segment(self) -> AudioSegment:
        return AudioSegment.from_file(io.BytesIO(self.audio), format="mp3")

    def save(self, path: str) -> str:
        with open(path, "wb") as f:
            f.write(self.audio)
        return path

    def play(
        self,
        on_boundary: Callable[[BoundaryEvent], None],
        on_end: Callable[[], None],
    ) -> None:
        """Replay the word timeline on the running loop; returns immediately."""
        self.cancel()
        loop = asyncio.get_running_loop()
        if self.player is not None:
            # pydub playback blocks, so it runs beside the loop
            self._playback = loop.run_in_executor(None, self.player, self.audio_segment())
            self._playback.add_done_callback(_log_playback_failure)
        for event in self.boundaries:
            self._handles.append(loop.call_later(event.time_ms / 1000, on_boundary, event))
        self._handles.append(loop.call_later(self.duration_ms / 1000, on_end))

    def cancel(self) -> None:
        """Drop pending timeline callbacks.

        Audio already handed to the pydub player keeps playing to its end;
        pydub offers no way to interrupt it.
        """
        for handle in self._handles:
            handle.cancel()
        self._handles = []


async def _stream(text: str, voice: str, rate: str) -> tuple[bytes, list[tuple[str, float]], float]:
    communicate = edge_tts.Communicate(text, voice, rate=rate, boundary="WordBoundary")
    audio = bytearray()
    words = []
    end_ms = 0.0
    async for chunk in communicate.stream():
        if chunk["type"] == "audio":
            audio.extend(chunk["data"])
        elif chunk["type"] == "WordBoundary":
            start_ms = chunk["offset"] / TICKS_PER_MS
            words.append((chunk["text"], start_ms))
            end_ms = max(end_ms, start_ms + chunk["duration"] / TICKS_PER_MS)
    return bytes(audio), words, end_ms


async def synthesize(text: str, voice: str = DEFAULT_VOICE, rate: str = DEFAULT_RATE) -> Utterance:
    """Synthesize text with retry logic.

    Retries on network errors or empty audio with exponential backoff.
    Raises SpeechEngineError once every attempt has failed.
    """
    last_error = None
    for attempt in range(TTS_RETRY_COUNT):
        try:
            audio, words, end_ms = await _stream(text, voice, rate)
            # Empty audio or a missing word timeline counts as a failure
            if not audio:
                last_error = SpeechEngineError(f"TTS produced no audio for: {text[:50]}...")
            elif not words and text.strip():
                last_error = SpeechEngineError(f"TTS produced no word boundaries for: {text[:50]}...")
            else:
                return Utterance(
                    text=text,
                    audio=audio,
                    boundaries=align_boundaries(text, words),
                    duration_ms=end_ms,
                )
        except Exception as e:
            last_error = e

        if attempt < TTS_RETRY_COUNT - 1:
            delay = TTS_RETRY_BASE_DELAY * (2 ** attempt)
            logger.warning("Synthesis attempt %d failed (%s); retrying in %.1fs", attempt + 1, last_error, delay)
            await asyncio.sleep(delay)

    raise SpeechEngineError(str(last_error)) from last_error


class EdgeSpeechEngine:
    """Speech engine backed by edge-tts, optionally playing the audio aloud."""

    def __init__(self, voice: str = DEFAULT_VOICE, rate: str = DEFAULT_RATE, play_audio: bool = False):
        self.voice = voice
        self.rate = rate
        self.play_audio = play_audio

    async def prepare(self, text: str) -> Utterance:
        utterance = await synthesize(text, self.voice, self.rate)
        if self.play_audio:
            utterance.player = play
        return utterance
