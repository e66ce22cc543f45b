"""Data models for chart narration."""

from dataclasses import dataclass, field

from chart_narrator.constants import DEFAULT_RATE, DEFAULT_VIEWPORT, DEFAULT_VOICE


@dataclass
class BarDataPoint:
    category: str
    value: float
    color: str = "#01B8AA"
    stroke_color: str = ""      # defaults to color when empty
    stroke_width: float = 0
    selection_id: str = ""      # populated by load_chart()


@dataclass(frozen=True)
class BoundaryEvent:
    char_offset: int    # -1 when the word could not be located in the text
    word: str
    time_ms: float = 0.0


@dataclass
class PlaybackState:
    locked: bool = True
    pending_words: list[str] = field(default_factory=list)


@dataclass
class ChartSettings:
    show_axis: bool = False
    axis_fill: str = "#000000"
    opacity: int = 100
    show_average_line: bool = False
    average_line_fill: str = "#888888"
    show_average_label: bool = False


@dataclass
class Chart:
    data_points: list[BarDataPoint]
    narration_text: str = ""
    title: str = "Untitled"
    width: int = DEFAULT_VIEWPORT[0]
    height: int = DEFAULT_VIEWPORT[1]
    voice: str = DEFAULT_VOICE
    rate: str = DEFAULT_RATE
    settings: ChartSettings = field(default_factory=ChartSettings)
