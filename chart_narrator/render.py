"""Text measurement and PNG snapshots of the chart."""

import logging
import os
from functools import lru_cache

from PIL import Image, ImageColor, ImageDraw, ImageFont

from chart_narrator.chart import ChartLayout
from chart_narrator.constants import FONT_PATH

logger = logging.getLogger(__name__)

BACKGROUND = (255, 255, 255)
SUBTITLE_FILL = (0, 0, 0)


@lru_cache(maxsize=64)
def _font(size: float, font_path: str | None = None) -> ImageFont.FreeTypeFont:
    path = font_path or FONT_PATH
    if os.path.exists(path):
        return ImageFont.truetype(path, size)
    return ImageFont.load_default(size)


def measure_width(text: str, font_size: float, font_path: str | None = None) -> float:
    """Rendered width of text in pixels."""
    if not text:
        return 0.0
    return float(_font(font_size, font_path).getlength(text))


def _rgba(color: str, opacity: float) -> tuple[int, int, int, int]:
    r, g, b = ImageColor.getrgb(color)[:3]
    return (r, g, b, round(255 * max(0.0, min(1.0, opacity))))


def render_png(layout: ChartLayout, surface, path: str) -> str:
    """Draw bars at their current surface attributes, plus axis, average line and subtitle."""
    chart = layout.chart
    image = Image.new("RGBA", (chart.width, chart.height), BACKGROUND + (255,))
    overlay = Image.new("RGBA", image.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)

    for point, geometry, attrs in zip(chart.data_points, layout.bars, surface.bars):
        if attrs["height"] <= 0:
            continue
        box = [
            geometry.x,
            attrs["y"],
            geometry.x + geometry.width,
            attrs["y"] + attrs["height"],
        ]
        outline = None
        if point.stroke_width > 0:
            outline = _rgba(point.stroke_color or point.color, attrs["opacity"])
        draw.rectangle(
            box,
            fill=_rgba(point.color, attrs["opacity"]),
            outline=outline,
            width=max(1, round(point.stroke_width)),
        )

    settings = chart.settings
    if settings.show_axis:
        font = _font(layout.axis_font_size)
        for point, geometry in zip(chart.data_points, layout.bars):
            label_width = measure_width(point.category, layout.axis_font_size)
            x = geometry.x + (geometry.width - label_width) / 2
            draw.text((x, layout.height + 4), point.category, font=font, fill=_rgba(settings.axis_fill, 1))

    if settings.show_average_line and chart.data_points:
        y = layout.average_y
        fill = _rgba(settings.average_line_fill, 1)
        # dashed 6,6
        for x in range(0, layout.width, 12):
            draw.line([(x, y), (min(x + 6, layout.width), y)], fill=fill, width=3)
        if settings.show_average_label:
            draw.text(
                (0, y + layout.average_label_offset()),
                layout.average_label,
                font=_font(layout.axis_font_size),
                fill=fill,
            )

    subtitle = surface.subtitle
    if subtitle["text"] and subtitle["opacity"] > 0:
        draw.text(
            (subtitle["x"], subtitle["y"] - layout.subtitle_font_size),
            subtitle["text"],
            font=_font(layout.subtitle_font_size),
            fill=SUBTITLE_FILL + (round(255 * subtitle["opacity"]),),
        )

    image = Image.alpha_composite(image, overlay).convert("RGB")
    image.save(path)
    logger.debug("Wrote snapshot %s", path)
    return path
