"""Background polling with jitter and progressive backoff."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

PollCallback = Callable[[], Awaitable[Optional[bool]]]


class SyncPoller:
    """Schedules update checks without ever overlapping two of them.

    The callback returns True when it found updates. Quiet polls stretch the
    interval by ``backoff_increment`` up to ``max_interval``; a poll that
    finds updates, or an interval that reaches a jittered ceiling, snaps it
    back to ``base_interval``. Intervals are in seconds.
    """

    def __init__(
        self,
        callback: PollCallback,
        base_interval: float = 10.0,
        max_jitter: float = 5.0,
        backoff_increment: float = 5.0,
        max_interval: float = 300.0,
        max_interval_jitter: float = 60.0,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._callback = callback
        self.base_interval = base_interval
        self.max_jitter = max_jitter
        self.backoff_increment = backoff_increment
        self.max_interval = max_interval
        self.max_interval_jitter = max_interval_jitter
        self.current_interval = base_interval
        self.is_running = False
        self._rng = rng or random.Random()

    def _spread(self, amount: float) -> float:
        return (self._rng.random() - 0.5) * 2 * amount

    def next_interval(self) -> float:
        reset_threshold = self.max_interval + self._spread(self.max_interval_jitter)
        if self.current_interval >= reset_threshold:
            logging.info(
                "Progressive backoff reset: %ss -> %ss", round(self.current_interval), round(self.base_interval)
            )
            self.current_interval = self.base_interval
        return max(0.0, self.current_interval + self._spread(self.max_jitter))

    def record_result(self, found_updates: bool) -> None:
        if found_updates:
            if self.current_interval != self.base_interval:
                logging.info(
                    "Activity detected - resetting backoff: %ss -> %ss",
                    round(self.current_interval),
                    round(self.base_interval),
                )
            self.current_interval = self.base_interval
            return
        new_interval = min(self.current_interval + self.backoff_increment, self.max_interval)
        if new_interval != self.current_interval:
            logging.debug("Progressive backoff: %ss -> %ss", round(self.current_interval), round(new_interval))
            self.current_interval = new_interval

    async def run_once(self) -> Optional[bool]:
        """Runs the callback unless a previous run is still going.

        Returns None when skipped, otherwise whether updates were found.
        """

        if self.is_running:
            logging.info("Skipping background poll - previous poll still running")
            return None
        self.is_running = True
        try:
            found_updates = await self._callback() is True
            logging.info(
                "Background poll completed%s", " (updates found)" if found_updates else " (no updates)"
            )
        except Exception as exc:
            logging.error("Polling callback error: %s", exc)
            found_updates = False
        finally:
            self.is_running = False
        self.record_result(found_updates)
        return found_updates

    async def run_forever(self, stop_event: asyncio.Event, run_immediately: bool = False) -> None:
        if run_immediately:
            await self.run_once()
        while not stop_event.is_set():
            delay = self.next_interval()
            logging.info("Next background poll scheduled in %ss", round(delay))
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                await self.run_once()
