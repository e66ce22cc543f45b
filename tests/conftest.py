"""Shared fixtures for chart narrator tests."""

import pytest

from chart_narrator.chart import ChartLayout
from chart_narrator.models import BarDataPoint, Chart, ChartSettings
from chart_narrator.tts import SpeechEngineError


class FakeSurface:
    """Records bar transitions; completions fire only when a test asks."""

    def __init__(self, layout):
        self.layout = layout
        self.bars = [
            {"y": bar.rest_y, "height": bar.rest_height, "opacity": 1.0}
            for bar in layout.bars
        ]
        self.pending = {}
        self.transitions = []
        self.subtitles = []
        self.hidden = []

    def set_bar(self, index, **attrs):
        self.pending.pop(index, None)
        self.bars[index].update(attrs)

    def transition_bar(self, index, attrs, duration_ms, delay_ms=0, on_end=None):
        # interrupts whatever was running on the bar
        self.pending[index] = (dict(attrs), on_end)
        self.transitions.append((index, dict(attrs), duration_ms, delay_ms))

    def complete(self, index):
        attrs, on_end = self.pending.pop(index)
        self.bars[index].update(attrs)
        if on_end is not None:
            on_end()

    def complete_all(self):
        for index in sorted(self.pending):
            if index in self.pending:
                self.complete(index)

    def show_subtitle(self, text, x, y):
        self.subtitles.append(text)

    def hide_subtitle(self, delay_ms, duration_ms):
        self.hidden.append((delay_ms, duration_ms))


class FakeUtterance:
    def __init__(self, text, duration_ms=1000.0):
        self.text = text
        self.duration_ms = duration_ms
        self.boundaries = []
        self.on_boundary = None
        self.on_end = None
        self.cancelled = False

    def play(self, on_boundary, on_end):
        self.on_boundary = on_boundary
        self.on_end = on_end

    def cancel(self):
        self.cancelled = True


class FakeEngine:
    def __init__(self, fail=False, duration_ms=1000.0):
        self.fail = fail
        self.duration_ms = duration_ms
        self.prepared = []

    async def prepare(self, text):
        if self.fail:
            raise SpeechEngineError("no voices")
        utterance = FakeUtterance(text, self.duration_ms)
        self.prepared.append(utterance)
        return utterance


def fixed_measure(text, font_size):
    """Every character is 10px wide."""
    return 10.0 * len(text)


@pytest.fixture
def sample_chart():
    """Four regions; 'North' appears in two categories."""
    return Chart(
        data_points=[
            BarDataPoint(category="South", value=120),
            BarDataPoint(category="North East", value=60),
            BarDataPoint(category="North West", value=80),
            BarDataPoint(category="Midwest", value=90),
        ],
        narration_text="Sales rose sharply in the South while North regions lagged",
        width=400,
        height=300,
        settings=ChartSettings(),
    )


@pytest.fixture
def sample_layout(sample_chart):
    return ChartLayout(sample_chart)


@pytest.fixture
def fake_surface(sample_layout):
    return FakeSurface(sample_layout)


@pytest.fixture
def fake_engine():
    return FakeEngine()
