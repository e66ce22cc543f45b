"""Export narration audio as MP3 with a playback manifest."""

import os
from datetime import datetime, timezone

from chart_narrator.artifacts import write_artifact
from chart_narrator.constants import OUTPUT_BITRATE, VERSION
from chart_narrator.models import Chart
from chart_narrator.tts import Utterance


def export(
    project_dir: str,
    slug: str,
    chart: Chart,
    utterance: Utterance,
    phrases: list[str],
    highlights: list[tuple[str, list[int]]],
    timeline: list[tuple[int, str, dict]],
) -> str:
    """Export narration audio and what the playback did.

    Creates:
      - <project_dir>/final/<slug>.mp3 (the narration)
      - <project_dir>/final/output.json (playback manifest)

    Returns path to the MP3 file.
    """
    final_dir = os.path.join(project_dir, "final")
    os.makedirs(final_dir, exist_ok=True)

    output_path = os.path.join(final_dir, f"{slug}.mp3")
    audio = utterance.audio_segment()
    audio.export(
        output_path,
        format="mp3",
        bitrate=OUTPUT_BITRATE,
        tags={"title": chart.title},
    )

    categories = [p.category for p in chart.data_points]
    manifest = {
        "project": slug,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "narrator_version": VERSION,
        "title": chart.title,
        "voice": chart.voice,
        "narration": utterance.text,
        "phrases": phrases,
        "stats": {
            "bars": len(categories),
            "boundaries": len(utterance.boundaries),
            "duration_seconds": round(len(audio) / 1000, 1),
        },
        "highlights": [
            {"word": word, "categories": [categories[i] for i in indices]}
            for word, indices in highlights
            if indices
        ],
        "timeline": [
            {"ms": ms, "kind": kind, **payload}
            for ms, kind, payload in timeline
        ],
    }

    write_artifact(final_dir, "output.json", manifest)

    return output_path
