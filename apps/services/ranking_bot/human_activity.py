"""
Human-like activity on a product page.

Adds realistic behaviour while the bot dwells on a page:
- Variable typing speed when filling inputs
- Pointer movements inside an element's bounding box
- Random short pauses between movements
- A dwell loop that keeps picking activities until the minimum time passed
"""

import asyncio
import random
import time
from typing import Optional, Sequence

from playwright.async_api import ElementHandle, Page

from libs.core.config import HumanActivitySettings

from .diagnostics import DiagnosticSink

COMPONENT = "HumanActivity"


class HumanActivitySimulator:
    """Simulates a person reading a page: pointer moves, pauses, typing."""

    def __init__(
        self,
        page: Optional[Page],
        settings: HumanActivitySettings,
        diagnostics: DiagnosticSink,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            page: Playwright Page the activity happens on
            settings: Ranges for moves, pauses and typing delays
            diagnostics: Sink for activity events
            rng: Random source; pass a seeded one for reproducible runs
        """
        self.page = page
        self.settings = settings
        self.diagnostics = diagnostics
        self.rng = rng or random.Random()

    async def type_like_human(self, element, text: str) -> None:
        """Type ``text`` into ``element`` one key at a time with variable delays."""
        for char in text:
            await element.type(char)
            delay = self.rng.uniform(self.settings.typing_delay_min_ms, self.settings.typing_delay_max_ms)
            # Longer pauses at word boundaries
            if char in " .,-":
                delay *= self.rng.uniform(1.5, 2.5)
            await asyncio.sleep(delay / 1000.0)

    async def random_pause(self, min_seconds: Optional[float] = None, max_seconds: Optional[float] = None) -> float:
        low = self.settings.pause_min_s if min_seconds is None else min_seconds
        high = self.settings.pause_max_s if max_seconds is None else max_seconds
        duration = self.rng.uniform(low, high)
        await asyncio.sleep(duration)
        return duration

    async def move_within(self, element: ElementHandle) -> int:
        """Make a bounded number of pointer moves inside ``element``; returns moves made."""
        try:
            await element.scroll_into_view_if_needed()
        except Exception as e:
            self.diagnostics.debug(COMPONENT, f"Scroll into view failed: {e}")
        box = await element.bounding_box()
        if not box or box["width"] <= 0 or box["height"] <= 0:
            self.diagnostics.debug(COMPONENT, "Element has no bounding box, skipping pointer movement")
            return 0

        moves = self.rng.randint(self.settings.moves_min, self.settings.moves_max)
        for _ in range(moves):
            x = box["x"] + self.rng.uniform(0, box["width"])
            y = box["y"] + self.rng.uniform(0, box["height"])
            await self.page.mouse.move(x, y, steps=self.settings.move_steps)
            await self.random_pause()
        return moves

    async def dwell(self, min_seconds: float, targets: Sequence[str]) -> float:
        """Run activities until at least ``min_seconds`` elapsed; returns elapsed seconds.

        Each round picks one of ``targets`` uniformly at random. A target that
        is not on the page costs one pause so the loop never spins.
        """
        start = time.monotonic()
        rounds = 0
        while time.monotonic() - start < min_seconds:
            selector = self.rng.choice(list(targets))
            element = await self.page.query_selector(selector)
            moved = 0
            if element is not None:
                moved = await self.move_within(element)
            if moved == 0:
                await self.random_pause()
            rounds += 1
        elapsed = time.monotonic() - start
        self.diagnostics.debug(COMPONENT, f"Dwelled {elapsed:.1f}s over {rounds} activities")
        return elapsed
