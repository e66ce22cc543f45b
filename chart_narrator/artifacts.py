"""Chart project files: loading, JSON artifacts and output directories."""

import json
import os
import re

from chart_narrator.constants import (
    DEFAULT_RATE,
    DEFAULT_VIEWPORT,
    DEFAULT_VOICE,
    MAX_OPACITY,
    MIN_OPACITY,
    OUTPUT_DIR,
)
from chart_narrator.models import BarDataPoint, Chart, ChartSettings

# Default column colors, cycled by index
PALETTE = [
    "#01B8AA", "#374649", "#FD625E", "#F2C80F", "#5F6B6D",
    "#8AD4EB", "#FE9666", "#A66999", "#3599B8", "#DFBFBF",
]


def slug_from_path(chart_path: str) -> str:
    """Convert chart filename to output directory slug.

    "Regional Sales.json" → "regional_sales"
    """
    basename = os.path.splitext(os.path.basename(chart_path))[0]
    slug = re.sub(r"[^a-zA-Z0-9]+", "_", basename).strip("_").lower()
    return slug


def init_output_dir(chart_path: str, output_base: str = OUTPUT_DIR) -> str:
    """Create output/<slug>/ and its final/ subdirectory.

    Returns the project directory path.
    """
    project_dir = os.path.join(output_base, slug_from_path(chart_path))
    os.makedirs(os.path.join(project_dir, "final"), exist_ok=True)
    return project_dir


def write_artifact(project_dir: str, filename: str, data: dict) -> str:
    """Write JSON artifact to project_dir/filename.

    Returns path to the written file.
    """
    path = os.path.join(project_dir, filename)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path


def _parse_settings(raw: dict) -> ChartSettings:
    axis = raw.get("enable_axis", {})
    view = raw.get("general_view", {})
    average = raw.get("average_line", {})
    opacity = int(view.get("opacity", MAX_OPACITY))
    return ChartSettings(
        show_axis=bool(axis.get("show", False)),
        axis_fill=axis.get("fill", "#000000"),
        opacity=max(MIN_OPACITY, min(MAX_OPACITY, opacity)),
        show_average_line=bool(average.get("show", False)),
        average_line_fill=average.get("fill", "#888888"),
        show_average_label=bool(average.get("show_data_label", False)),
    )


def _parse_point(index: int, raw: dict) -> BarDataPoint:
    if "category" not in raw:
        raise ValueError(f"Data point {index} has no category")
    try:
        value = float(raw.get("value"))
    except (TypeError, ValueError):
        raise ValueError(f"Data point {index} ({raw['category']!r}) has a non-numeric value")
    color = raw.get("color") or PALETTE[index % len(PALETTE)]
    return BarDataPoint(
        category=str(raw["category"]),
        value=value,
        color=color,
        stroke_color=raw.get("stroke_color") or color,
        stroke_width=float(raw.get("stroke_width", 0)),
        selection_id=f"{raw['category']}#{index}",
    )


def parse_chart(data: dict) -> Chart:
    """Build a Chart from its JSON representation."""
    if "data" not in data:
        raise ValueError("Chart has no 'data' section")
    narration = data.get("narration", {})
    viewport = data.get("viewport", {})
    return Chart(
        data_points=[_parse_point(i, raw) for i, raw in enumerate(data["data"])],
        narration_text=narration.get("text", ""),
        title=data.get("title", "Untitled"),
        width=int(viewport.get("width", DEFAULT_VIEWPORT[0])),
        height=int(viewport.get("height", DEFAULT_VIEWPORT[1])),
        voice=narration.get("voice", DEFAULT_VOICE),
        rate=narration.get("rate", DEFAULT_RATE),
        settings=_parse_settings(data.get("settings", {})),
    )


def load_chart(path: str) -> Chart:
    """Read and validate a chart project file."""
    with open(path) as f:
        data = json.load(f)
    return parse_chart(data)
