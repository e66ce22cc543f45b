"""CLI interface with subcommand routing."""

import argparse
import asyncio
import logging
import os
import shutil
import sys
from functools import partial

from chart_narrator.artifacts import init_output_dir, load_chart, slug_from_path
from chart_narrator.chart import ChartLayout
from chart_narrator.constants import (
    BUMP_PHASE_MS,
    OUTPUT_DIR,
    SUBTITLE_END_DELAY_MS,
    SUBTITLE_END_FADE_MS,
    VERSION,
)
from chart_narrator.exporter import export
from chart_narrator.models import Chart
from chart_narrator.playback import PlaybackController
from chart_narrator.render import measure_width, render_png
from chart_narrator.segmenter import compute_breaks, split_phrases
from chart_narrator.surface import AsyncioSurface
from chart_narrator.tts import EdgeSpeechEngine


def _check_ffmpeg():
    """Verify ffmpeg is installed."""
    if not shutil.which("ffmpeg"):
        print("Error: ffmpeg is required but not found.", file=sys.stderr)
        print("Install with: brew install ffmpeg", file=sys.stderr)
        raise SystemExit(1)


def _load(path: str) -> Chart:
    """Load a chart file, exiting with an error message on failure."""
    if not os.path.exists(path):
        print(f"Error: File not found: {path}", file=sys.stderr)
        raise SystemExit(1)
    try:
        return load_chart(path)
    except ValueError as e:
        print(f"Error: Invalid chart file {path}: {e}", file=sys.stderr)
        raise SystemExit(1)


def _phrases(chart: Chart, layout: ChartLayout) -> list[str]:
    measure = partial(measure_width, font_size=layout.subtitle_font_size)
    offsets = compute_breaks(chart.narration_text, layout.phrase_budget, measure)
    return split_phrases(chart.narration_text, offsets)


def cmd_phrases(args):
    """Print the subtitle phrases for a chart's narration."""
    chart = _load(args.file)
    if not chart.narration_text.strip():
        print("Nothing to narrate.")
        return
    layout = ChartLayout(chart)
    for i, phrase in enumerate(_phrases(chart, layout), start=1):
        print(f"  {i:3d}  {phrase.strip()}")


def cmd_render(args):
    """Render the chart at rest to a PNG."""
    chart = _load(args.file)
    layout = ChartLayout(chart)
    if args.output:
        output_path = args.output
    else:
        project_dir = init_output_dir(args.file, output_base=OUTPUT_DIR)
        output_path = os.path.join(project_dir, f"{slug_from_path(args.file)}.png")
    render_png(layout, AsyncioSurface(layout), output_path)
    print(f"Rendered: {output_path}")


async def _play(chart: Chart, chart_path: str, play_audio: bool) -> str | None:
    """Run one narrated playback and export its artifacts."""
    layout = ChartLayout(chart)
    surface = AsyncioSurface(layout)
    engine = EdgeSpeechEngine(voice=chart.voice, rate=chart.rate, play_audio=play_audio)
    controller = PlaybackController(chart, layout, surface, engine, measure_width)

    print(f"Synthesizing narration with {chart.voice}...")
    if not await controller.start():
        return None
    utterance = controller.utterance
    print(f"  Speaking {len(utterance.boundaries)} words over {utterance.duration_ms / 1000:.1f}s")

    await controller.finished.wait()
    # let the last subtitle fade and any bump settle
    await asyncio.sleep((SUBTITLE_END_DELAY_MS + SUBTITLE_END_FADE_MS + 2 * BUMP_PHASE_MS) / 1000)

    slug = slug_from_path(chart_path)
    project_dir = init_output_dir(chart_path, output_base=OUTPUT_DIR)
    audio_path = export(
        project_dir,
        slug,
        chart,
        utterance,
        _phrases(chart, layout),
        controller.highlights,
        surface.timeline,
    )
    render_png(layout, surface, os.path.join(project_dir, "final", f"{slug}.png"))
    surface.close()

    for word, indices in controller.highlights:
        if indices:
            names = ", ".join(chart.data_points[i].category for i in indices)
            print(f"  Highlighted {word!r}: {names}")
    return audio_path


def cmd_play(args):
    """Narrate a chart: grow bars, page subtitles, bump spoken categories."""
    _check_ffmpeg()
    chart = _load(args.file)
    if args.voice:
        chart.voice = args.voice
    if args.rate:
        chart.rate = args.rate
    if not chart.narration_text.strip():
        print("Nothing to narrate.")
        return

    audio_path = asyncio.run(_play(chart, args.file, play_audio=not args.mute))
    if audio_path is None:
        print("Error: Speech synthesis failed; chart left unchanged.", file=sys.stderr)
        raise SystemExit(1)
    print(f"Narration exported: {audio_path}")


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="chart-narrator",
        description="Chart Narrator: bar charts that read themselves aloud",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # phrases
    phrases_parser = subparsers.add_parser("phrases", help="Show subtitle phrases for a chart")
    phrases_parser.add_argument("file", help="Path to the chart JSON file")
    phrases_parser.set_defaults(func=cmd_phrases)

    # play
    play_parser = subparsers.add_parser("play", help="Narrate a chart")
    play_parser.add_argument("file", help="Path to the chart JSON file")
    play_parser.add_argument("--mute", action="store_true", help="Do not play audio aloud")
    play_parser.add_argument("--voice", help="Override the narration voice")
    play_parser.add_argument("--rate", help="Override the speech rate, e.g. -10%%")
    play_parser.set_defaults(func=cmd_play)

    # render
    render_parser = subparsers.add_parser("render", help="Render the chart to PNG")
    render_parser.add_argument("file", help="Path to the chart JSON file")
    render_parser.add_argument("-o", "--output", help="Output PNG path")
    render_parser.set_defaults(func=cmd_render)

    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if not args.command:
        parser.print_help()
        return

    args.func(args)
