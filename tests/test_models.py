"""Tests for constants and models."""

from chart_narrator import constants
from chart_narrator.models import BarDataPoint, BoundaryEvent, Chart, PlaybackState


def test_bar_data_point_defaults():
    """Optional visual fields have defaults."""
    point = BarDataPoint(category="South", value=12.5)
    assert point.category == "South"
    assert point.value == 12.5
    assert point.stroke_width == 0
    assert point.selection_id == ""


def test_playback_state_defaults():
    """A fresh playback state is locked with an empty, unshared queue."""
    a, b = PlaybackState(), PlaybackState()
    assert a.locked is True
    a.pending_words.append("south")
    assert b.pending_words == []


def test_boundary_event_is_immutable():
    """Boundary events are frozen."""
    event = BoundaryEvent(char_offset=3, word="rose")
    try:
        event.word = "fell"
    except AttributeError:
        pass
    else:
        raise AssertionError("BoundaryEvent should be frozen")


def test_chart_defaults():
    """Chart uses the default viewport and voice."""
    chart = Chart(data_points=[])
    assert (chart.width, chart.height) == constants.DEFAULT_VIEWPORT
    assert chart.voice == constants.DEFAULT_VOICE
    assert chart.narration_text == ""


def test_constants_exist():
    """All module-level constants are defined."""
    expected = [
        "GROW_DURATION_MS",
        "GROW_STAGGER_DIVISOR",
        "BUMP_LIFT_FRACTION",
        "BUMP_PHASE_MS",
        "SUBTITLE_FADE_OUT_MS",
        "SUBTITLE_FADE_IN_MS",
        "SUBTITLE_END_DELAY_MS",
        "SUBTITLE_END_FADE_MS",
        "SUBTITLE_FONT_RATIO",
        "SUBTITLE_WIDTH_RATIO",
        "SUBTITLE_SAMPLE_CHAR",
        "TTS_RETRY_COUNT",
        "TTS_RETRY_BASE_DELAY",
        "WATCHDOG_GRACE_SECONDS",
        "VERSION",
    ]
    for name in expected:
        assert hasattr(constants, name), f"Missing constant: {name}"
