"""Tests for the playback controller."""

import asyncio
from unittest.mock import patch

import pytest

from chart_narrator.constants import SUBTITLE_END_DELAY_MS, SUBTITLE_END_FADE_MS
from chart_narrator.models import BoundaryEvent
from chart_narrator.playback import PlaybackController, PlayerState
from conftest import FakeEngine, FakeSurface, fixed_measure


def _controller(chart, layout, surface, engine):
    return PlaybackController(chart, layout, surface, engine, fixed_measure)


def _event(text, word, occurrence=0):
    """Boundary event for the n-th occurrence of word in text."""
    offset = -1
    for _ in range(occurrence + 1):
        offset = text.index(word, offset + 1)
    return BoundaryEvent(char_offset=offset, word=word)


def _speak(controller, *words):
    text = controller.chart.narration_text
    for word in words:
        controller.on_boundary(controller.generation, _event(text, word))


def _grow_transitions(surface):
    return [t for t in surface.transitions if "height" in t[1]]


def test_start_zeroes_and_grows_bars(sample_chart, sample_layout, fake_surface, fake_engine):
    """Start re-zeros bars, grows them with a stagger and starts speaking."""
    controller = _controller(sample_chart, sample_layout, fake_surface, fake_engine)

    async def scenario():
        return await controller.start()

    assert asyncio.run(scenario()) is True
    for attrs in fake_surface.bars:
        assert attrs["height"] == 0
        assert attrs["y"] == sample_layout.height
    grow = _grow_transitions(fake_surface)
    assert [t[0] for t in grow] == [0, 1, 2, 3]
    assert [t[3] for t in grow] == pytest.approx([0, 1000 / 4 / 6, 2000 / 4 / 6, 3000 / 4 / 6])
    assert grow[0][1] == {"y": sample_layout.bars[0].rest_y, "height": sample_layout.bars[0].rest_height}
    assert controller.state is PlayerState.GROWING_BARS
    assert controller.playback.locked is True
    assert fake_engine.prepared[0].text == sample_chart.narration_text
    assert fake_engine.prepared[0].on_boundary is not None


def test_empty_narration_is_noop(sample_chart, sample_layout, fake_surface, fake_engine):
    """No text: no grow, no speech engine call, chart unchanged."""
    sample_chart.narration_text = "   "
    before = [dict(b) for b in fake_surface.bars]
    controller = _controller(sample_chart, sample_layout, fake_surface, fake_engine)

    assert asyncio.run(controller.start()) is False
    assert fake_engine.prepared == []
    assert fake_surface.transitions == []
    assert fake_surface.bars == before
    assert controller.state is PlayerState.IDLE


def test_engine_failure_leaves_chart_unchanged(sample_chart, sample_layout, fake_surface):
    """Synthesis failure aborts before any bar is touched."""
    before = [dict(b) for b in fake_surface.bars]
    controller = _controller(sample_chart, sample_layout, fake_surface, FakeEngine(fail=True))

    assert asyncio.run(controller.start()) is False
    assert fake_surface.transitions == []
    assert fake_surface.bars == before
    assert controller.state is PlayerState.IDLE


def test_words_queued_while_locked_replay_in_order(sample_chart, sample_layout, fake_surface, fake_engine):
    """Words spoken during grow are dispatched FIFO, once, after unlock."""
    controller = _controller(sample_chart, sample_layout, fake_surface, fake_engine)

    async def scenario():
        await controller.start()
        _speak(controller, "Sales", "South", "North")
        assert controller.playback.pending_words == ["Sales", "South", "North"]
        assert len(fake_surface.transitions) == 4     # only the grow
        assert controller.highlights == []
        fake_surface.complete_all()

    asyncio.run(scenario())
    assert controller.playback.locked is False
    assert controller.playback.pending_words == []
    assert controller.highlights == [("Sales", []), ("South", [0]), ("North", [1, 2])]
    assert controller.state is PlayerState.SPEAKING
    bumps = fake_surface.transitions[4:]
    assert [t[0] for t in bumps] == [0, 1, 2]


def test_locked_word_precedes_later_word(sample_chart, sample_layout, fake_surface, fake_engine):
    """'rose' arriving during the lock is dispatched once, before later words."""
    controller = _controller(sample_chart, sample_layout, fake_surface, fake_engine)

    async def scenario():
        await controller.start()
        _speak(controller, "rose")
        fake_surface.complete_all()
        _speak(controller, "sharply", "South")

    asyncio.run(scenario())
    words = [word for word, _ in controller.highlights]
    assert words == ["rose", "sharply", "South"]


def test_words_after_unlock_dispatch_immediately(sample_chart, sample_layout, fake_surface, fake_engine):
    """Once unlocked, a matching word bumps its bar right away."""
    controller = _controller(sample_chart, sample_layout, fake_surface, fake_engine)

    async def scenario():
        await controller.start()
        fake_surface.complete_all()
        _speak(controller, "North")

    asyncio.run(scenario())
    assert controller.highlights == [("North", [1, 2])]
    assert set(fake_surface.pending) == {1, 2}


def test_subtitles_page_with_speech(sample_chart, sample_layout, fake_surface, fake_engine):
    """The first word shows the first phrase; the next phrase waits for its first word."""
    controller = _controller(sample_chart, sample_layout, fake_surface, fake_engine)

    async def scenario():
        await controller.start()
        _speak(controller, "Sales", "rose", "South")
        assert fake_surface.subtitles == ["Sales rose sharply in the South "]
        _speak(controller, "while", "North")

    asyncio.run(scenario())
    assert fake_surface.subtitles == [
        "Sales rose sharply in the South ",
        "while North regions lagged",
    ]
    assert controller.cursor.exhausted


def test_malformed_boundaries_ignored(sample_chart, sample_layout, fake_surface, fake_engine):
    """Out-of-range offsets and empty words page nothing and queue nothing."""
    controller = _controller(sample_chart, sample_layout, fake_surface, fake_engine)
    length = len(sample_chart.narration_text)

    async def scenario():
        await controller.start()
        token = controller.generation
        controller.on_boundary(token, BoundaryEvent(char_offset=-1, word="South"))
        controller.on_boundary(token, BoundaryEvent(char_offset=length, word="South"))
        controller.on_boundary(token, BoundaryEvent(char_offset=0, word="  "))

    asyncio.run(scenario())
    assert fake_surface.subtitles == []
    assert controller.playback.pending_words == []


def test_speech_end_fades_subtitle(sample_chart, sample_layout, fake_surface, fake_engine):
    """Completion fades the phrase and leaves the lock state alone."""
    controller = _controller(sample_chart, sample_layout, fake_surface, fake_engine)

    async def scenario():
        await controller.start()
        _speak(controller, "South")
        fake_engine.prepared[0].on_end()

    asyncio.run(scenario())
    assert fake_surface.hidden == [(SUBTITLE_END_DELAY_MS, SUBTITLE_END_FADE_MS)]
    assert controller.state is PlayerState.IDLE
    assert controller.finished.is_set()
    assert controller.playback.locked is True
    assert controller.playback.pending_words == ["South"]


def test_restart_resets_session(sample_chart, sample_layout, fake_surface, fake_engine):
    """Restart mid-utterance clears the queue, relocks and re-zeros bars."""
    controller = _controller(sample_chart, sample_layout, fake_surface, fake_engine)

    async def scenario():
        await controller.start()
        fake_surface.complete_all()
        _speak(controller, "North")
        first_token = controller.generation
        _speak(controller, "Sales")
        controller.playback.pending_words.append("leftover")

        await controller.start()
        assert controller.generation == first_token + 1
        return first_token

    asyncio.run(scenario())
    first, second = fake_engine.prepared
    assert first.cancelled
    assert not second.cancelled
    assert controller.playback.locked is True
    assert controller.playback.pending_words == []
    for attrs in fake_surface.bars:
        assert attrs["height"] == 0
    assert controller.state is PlayerState.GROWING_BARS


def test_stale_callbacks_after_restart_ignored(sample_chart, sample_layout, fake_surface, fake_engine):
    """Late boundary and completion events from the old utterance change nothing."""
    controller = _controller(sample_chart, sample_layout, fake_surface, fake_engine)
    text = sample_chart.narration_text

    async def scenario():
        await controller.start()
        await controller.start()
        old = fake_engine.prepared[0]
        old.on_boundary(_event(text, "South"))
        old.on_end()

    asyncio.run(scenario())
    assert controller.playback.pending_words == []
    assert fake_surface.subtitles == []
    assert fake_surface.hidden == []
    assert controller.state is PlayerState.GROWING_BARS


def test_stale_grow_completion_does_not_unlock(sample_chart, sample_layout, fake_engine):
    """A grow from a superseded session cannot release the new session's lock."""
    surface = FakeSurface(sample_layout)
    stale = []

    def keep_callbacks(index, attrs, duration_ms, delay_ms=0, on_end=None):
        stale.append(on_end)
        FakeSurface.transition_bar(surface, index, attrs, duration_ms, delay_ms, on_end)

    surface.transition_bar = keep_callbacks
    controller = _controller(sample_chart, sample_layout, surface, fake_engine)

    async def scenario():
        await controller.start()
        old_callbacks = list(stale)
        await controller.start()
        for on_end in old_callbacks:
            on_end()

    asyncio.run(scenario())
    assert controller.playback.locked is True


def test_no_bars_unlocks_immediately(sample_chart, fake_engine):
    """A chart without bars has nothing to grow."""
    from chart_narrator.chart import ChartLayout

    sample_chart.data_points = []
    layout = ChartLayout(sample_chart)
    surface = FakeSurface(layout)
    controller = _controller(sample_chart, layout, surface, fake_engine)

    asyncio.run(controller.start())
    assert controller.playback.locked is False
    assert controller.state is PlayerState.SPEAKING


def test_superseded_during_synthesis(sample_chart, sample_layout, fake_surface):
    """Of two overlapping starts only the later one takes effect."""

    class SlowEngine(FakeEngine):
        async def prepare(self, text):
            await asyncio.sleep(0.01)
            return await super().prepare(text)

    engine = SlowEngine()
    controller = _controller(sample_chart, sample_layout, fake_surface, engine)

    async def scenario():
        return await asyncio.gather(controller.start(), controller.start())

    assert asyncio.run(scenario()) == [False, True]
    assert engine.prepared[0].cancelled
    assert len(_grow_transitions(fake_surface)) == 4


def test_watchdog_ends_silent_speech(sample_chart, sample_layout, fake_surface):
    """If completion never arrives the watchdog ends the session."""
    controller = _controller(sample_chart, sample_layout, fake_surface, FakeEngine(duration_ms=0))

    async def scenario():
        await controller.start()
        await asyncio.sleep(0.05)

    with patch("chart_narrator.playback.WATCHDOG_GRACE_SECONDS", 0.01):
        asyncio.run(scenario())
    assert controller.state is PlayerState.IDLE
    assert fake_surface.hidden == [(SUBTITLE_END_DELAY_MS, SUBTITLE_END_FADE_MS)]
