"""Bump bars whose category contains the word currently being spoken."""

import logging
from enum import Enum
from functools import partial

from chart_narrator.chart import ChartLayout
from chart_narrator.constants import BUMP_PHASE_MS
from chart_narrator.models import BarDataPoint

logger = logging.getLogger(__name__)


class BumpState(Enum):
    IDLE = "idle"
    BUMPING_UP = "bumping_up"
    RETURNING = "returning"


def category_matches(word: str, category: str) -> bool:
    """True if word equals one whitespace-delimited token of category, ignoring case."""
    keyword = word.strip().casefold()
    if not keyword:
        return False
    return any(token == keyword for token in category.casefold().split())


class HighlightDispatcher:
    """Per-bar two-phase bump animations.

    A bar lifts, and only when the lift completes does it return to rest.
    A bar that is still lifting ignores new triggers; a bar on its way back
    can be lifted again, which restarts the bump from where it is.
    """

    def __init__(self, surface, layout: ChartLayout):
        self.surface = surface
        self.layout = layout
        self._generations: list[int] = []
        self.reset()

    def reset(self) -> None:
        # Generations only grow, so callbacks from before a reset stay stale
        count = len(self.layout.bars)
        start = max(self._generations, default=0) + 1
        self.states = [BumpState.IDLE] * count
        self._generations = [start] * count

    def dispatch(self, word: str, data_points: list[BarDataPoint]) -> list[int]:
        """Schedule a bump for every bar matching word.

        Returns the indices of the matching bars.
        """
        if not word.strip():
            return []
        matched = [
            i for i, point in enumerate(data_points)
            if i < len(self.states) and category_matches(word, point.category)
        ]
        for index in matched:
            self.bump(index)
        if matched:
            logger.debug("Highlight %r -> bars %s", word, matched)
        return matched

    def bump(self, index: int) -> bool:
        """Start the lift phase for one bar. Returns False if it is already lifting."""
        if self.states[index] is BumpState.BUMPING_UP:
            return False
        self._generations[index] += 1
        generation = self._generations[index]
        self.states[index] = BumpState.BUMPING_UP
        self.surface.transition_bar(
            index,
            {"y": self.layout.bars[index].bump_y},
            BUMP_PHASE_MS,
            on_end=partial(self._on_lifted, index, generation),
        )
        return True

    def _on_lifted(self, index: int, generation: int) -> None:
        if generation != self._generations[index]:
            return
        self.states[index] = BumpState.RETURNING
        self.surface.transition_bar(
            index,
            {"y": self.layout.bars[index].rest_y},
            BUMP_PHASE_MS,
            on_end=partial(self._on_returned, index, generation),
        )

    def _on_returned(self, index: int, generation: int) -> None:
        if generation != self._generations[index]:
            return
        self.states[index] = BumpState.IDLE
