"""Chart geometry: scales, bar layout and the average line."""

import math
from dataclasses import dataclass

from chart_narrator.constants import (
    AXIS_FONT_MULTIPLIER,
    AXIS_MARGIN_BOTTOM,
    BAND_PADDING,
    BUMP_LIFT_FRACTION,
    SUBTITLE_BASELINE_RATIO,
    SUBTITLE_FONT_RATIO,
    SUBTITLE_WIDTH_RATIO,
)
from chart_narrator.models import Chart


class LinearScale:
    """Map a numeric domain onto a pixel range.

    A degenerate domain maps every value to the start of the range.
    """

    def __init__(self, domain: tuple[float, float], range_: tuple[float, float]):
        self.domain = domain
        self.range = range_

    def __call__(self, value: float) -> float:
        d0, d1 = self.domain
        r0, r1 = self.range
        if d1 == d0:
            return r0
        return r0 + (value - d0) / (d1 - d0) * (r1 - r0)


class BandScale:
    """Evenly spaced bands with equal inner and outer padding, rounded to pixels."""

    def __init__(self, count: int, range_: tuple[float, float], padding: float = BAND_PADDING):
        start, stop = range_
        self.count = count
        step = (stop - start) / max(1, count - padding + padding * 2)
        step = math.floor(step)
        start += (stop - start - step * (count - padding)) * 0.5
        self.step = step
        self.start = round(start)
        self.bandwidth = round(step * (1 - padding))

    def __call__(self, index: int) -> float:
        return self.start + self.step * index


@dataclass
class BarGeometry:
    x: float
    width: float
    rest_y: float
    rest_height: float
    bump_y: float


class ChartLayout:
    """Pixel geometry derived from a chart and its viewport."""

    def __init__(self, chart: Chart):
        self.chart = chart
        self.width = chart.width
        self.height = chart.height
        if chart.settings.show_axis:
            self.height -= AXIS_MARGIN_BOTTOM

        values = [p.value for p in chart.data_points]
        data_max = max(values) if values else 0
        self.y_scale = LinearScale((0, data_max), (self.height, 0))
        self.x_scale = BandScale(len(values), (0, self.width))

        lift = BUMP_LIFT_FRACTION * self.height
        self.bars = []
        for i, point in enumerate(chart.data_points):
            rest_y = self.y_scale(point.value)
            self.bars.append(BarGeometry(
                x=self.x_scale(i),
                width=self.x_scale.bandwidth,
                rest_y=rest_y,
                rest_height=max(0.0, self.height - rest_y),
                bump_y=rest_y - lift,
            ))

        base = min(self.width, self.height)
        self.axis_font_size = base * AXIS_FONT_MULTIPLIER
        self.subtitle_font_size = base * SUBTITLE_FONT_RATIO
        self.phrase_budget = self.width * SUBTITLE_WIDTH_RATIO
        self.subtitle_y = round(self.height * SUBTITLE_BASELINE_RATIO)

    @property
    def average(self) -> float:
        points = self.chart.data_points
        if not points:
            return 0.0
        return sum(p.value for p in points) / len(points)

    @property
    def average_y(self) -> float:
        return self.y_scale(self.average)

    @property
    def average_label(self) -> str:
        return "Average: %.2f" % self.average

    def average_label_offset(self) -> float:
        """Place the label above the line unless there is no room."""
        if self.average_y > self.axis_font_size * 1.5:
            return self.axis_font_size * -0.5
        return self.axis_font_size * 1.5
