"""Exponential backoff schedule for retrying blocked fetches."""

import random


class Backoff:
    """Exponential backoff with an upper bound.

    The n-th call to ``duration()`` returns ``interval * 2**n`` seconds,
    capped at ``max_duration``. With jitter enabled the value is drawn
    uniformly from ``[0, t)`` instead.
    """

    def __init__(
        self,
        max_duration: float = 60.0,
        interval: float = 10.0,
        jitter: bool = True,
        rng: random.Random | None = None,
    ):
        self.max_duration = max_duration
        self.interval = interval
        self.jitter = jitter
        self._rng = rng or random.Random()
        self.n = 0

    def duration(self) -> float:
        """Return the next wait in seconds and advance the schedule."""
        t = min(self.interval * (2 ** self.n), self.max_duration)
        self.n += 1
        if self.jitter and t > 0:
            t = self._rng.uniform(0, t)
        return t

    def reset(self) -> None:
        self.n = 0
