"""Rendering surface that runs bar and subtitle transitions on the asyncio loop.

The narration engine only emits target values and durations; this surface
interpolates them over time and reports completion through callbacks. A new
transition on a bar interrupts the running one, and the interrupted
transition's completion callback never fires.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable

from chart_narrator.chart import ChartLayout
from chart_narrator.constants import SUBTITLE_FADE_IN_MS, SUBTITLE_FADE_OUT_MS


@dataclass
class _Transition:
    start_ms: float
    duration_ms: float
    start_values: dict
    target: dict
    on_end: Callable[[], None] | None = None
    handle: asyncio.TimerHandle | None = field(default=None, repr=False)

    def value_at(self, name: str, now_ms: float) -> float:
        start = self.start_values[name]
        if self.duration_ms <= 0:
            progress = 1.0 if now_ms >= self.start_ms else 0.0
        else:
            progress = (now_ms - self.start_ms) / self.duration_ms
        progress = min(1.0, max(0.0, progress))
        return start + (self.target[name] - start) * progress


class AsyncioSurface:
    """Bars and a single subtitle element driven by loop timers."""

    def __init__(self, layout: ChartLayout):
        self.layout = layout
        opacity = layout.chart.settings.opacity / 100
        self.bars = [
            {"y": bar.rest_y, "height": bar.rest_height, "opacity": opacity}
            for bar in layout.bars
        ]
        self.subtitle = {"text": "", "x": 0.0, "y": layout.subtitle_y, "opacity": 0.0}
        self.timeline: list[tuple[int, str, dict]] = []
        self._active: dict[int, _Transition] = {}
        self._subtitle_handles: list[asyncio.TimerHandle] = []
        self._origin_ms: float | None = None

    def _now_ms(self) -> float:
        return asyncio.get_running_loop().time() * 1000

    def _record(self, kind: str, **payload) -> None:
        now = self._now_ms()
        if self._origin_ms is None:
            self._origin_ms = now
        self.timeline.append((round(now - self._origin_ms), kind, payload))

    # --- bars ---

    def bar_value(self, index: int, name: str) -> float:
        """Current (possibly mid-transition) value of a bar attribute."""
        transition = self._active.get(index)
        if transition is not None and name in transition.target:
            return transition.value_at(name, self._now_ms())
        return self.bars[index][name]

    def _interrupt(self, index: int) -> None:
        transition = self._active.pop(index, None)
        if transition is None:
            return
        now = self._now_ms()
        for name in transition.target:
            self.bars[index][name] = transition.value_at(name, now)
        if transition.handle is not None:
            transition.handle.cancel()

    def set_bar(self, index: int, **attrs) -> None:
        self._interrupt(index)
        self.bars[index].update(attrs)

    def transition_bar(
        self,
        index: int,
        attrs: dict,
        duration_ms: float,
        delay_ms: float = 0,
        on_end: Callable[[], None] | None = None,
    ) -> None:
        """Animate bar attributes toward attrs; returns immediately."""
        self._interrupt(index)
        self._record("bar", index=index, attrs=dict(attrs), duration_ms=duration_ms, delay_ms=delay_ms)
        transition = _Transition(
            start_ms=self._now_ms() + delay_ms,
            duration_ms=duration_ms,
            start_values={name: self.bars[index][name] for name in attrs},
            target=dict(attrs),
            on_end=on_end,
        )
        loop = asyncio.get_running_loop()
        transition.handle = loop.call_later(
            (delay_ms + duration_ms) / 1000, self._finish, index, transition,
        )
        self._active[index] = transition

    def _finish(self, index: int, transition: _Transition) -> None:
        if self._active.get(index) is not transition:
            return
        del self._active[index]
        self.bars[index].update(transition.target)
        if transition.on_end is not None:
            transition.on_end()

    # --- subtitle ---

    def _cancel_subtitle(self) -> None:
        for handle in self._subtitle_handles:
            handle.cancel()
        self._subtitle_handles = []

    def show_subtitle(self, text: str, x: float, y: float) -> None:
        """Fade out the current phrase, move, then fade in the new one."""
        self._cancel_subtitle()
        self._record("subtitle", text=text, x=x)
        loop = asyncio.get_running_loop()

        def swap():
            self.subtitle.update(text=text, x=x, y=y, opacity=0.0)

        def reveal():
            self.subtitle["opacity"] = 1.0

        fade_out = SUBTITLE_FADE_OUT_MS / 1000
        self._subtitle_handles = [
            loop.call_later(fade_out, swap),
            loop.call_later(fade_out + SUBTITLE_FADE_IN_MS / 1000, reveal),
        ]

    def hide_subtitle(self, delay_ms: float, duration_ms: float) -> None:
        self._cancel_subtitle()
        self._record("subtitle_hide", delay_ms=delay_ms, duration_ms=duration_ms)

        def hide():
            self.subtitle["opacity"] = 0.0

        loop = asyncio.get_running_loop()
        self._subtitle_handles = [loop.call_later((delay_ms + duration_ms) / 1000, hide)]

    def close(self) -> None:
        """Drop every pending transition without firing callbacks."""
        for index in list(self._active):
            self._interrupt(index)
        self._cancel_subtitle()
