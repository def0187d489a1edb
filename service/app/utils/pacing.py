"""
Typing cadence between reply parts.

Waits are done with asyncio.sleep, so a paused conversation never holds up
other users and is cancelled together with its task.
"""

import asyncio
import random
from typing import Awaitable, Callable


class TypingPacer:
    """Delay proportional to the length of the part about to be sent, plus jitter."""

    def __init__(
        self,
        min_delay: float = 1.0,
        max_delay: float = 10.0,
        seconds_per_char: float = 0.01,
        jitter: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.seconds_per_char = seconds_per_char
        self.jitter = jitter
        self._sleep = sleep
        self._rng = rng or random.Random()

    def delay_for(self, part: str) -> float:
        base = min(self.max_delay, max(self.min_delay, len(part) * self.seconds_per_char))
        return base + self._rng.uniform(0, self.jitter)

    async def pause_before(self, part: str) -> None:
        await self._sleep(self.delay_for(part))


class InstantPacer:
    """Pacer for non-interactive callers: never waits."""

    def delay_for(self, part: str) -> float:
        return 0.0

    async def pause_before(self, part: str) -> None:
        return None
