"""Rotating user-agent identities."""

import csv
import random
import threading
from collections.abc import Sequence
from pathlib import Path

# Desktop browser identities weighted roughly by market share.
DEFAULT_USER_AGENTS: list[tuple[str, float]] = [
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        40.0,
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        18.0,
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.4 Safari/605.1.15",
        12.0,
    ),
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
        8.0,
    ),
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.2478.80",
        10.0,
    ),
    (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
        6.0,
    ),
    (
        "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:125.0) Gecko/20100101 Firefox/125.0",
        3.0,
    ),
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.4; rv:125.0) Gecko/20100101 Firefox/125.0",
        3.0,
    ),
]


class UserAgentRotator:
    """Weighted-random selection over a fixed pool of user-agent strings.

    Safe to share between threads and tasks.
    """

    def __init__(
        self,
        agents: Sequence[str],
        weights: Sequence[float] | None = None,
        rng: random.Random | None = None,
    ):
        if not agents:
            raise ValueError("user-agent pool is empty")
        if weights is not None and len(weights) != len(agents):
            raise ValueError("weights must match agents one-to-one")
        self.agents = list(agents)
        self.weights = list(weights) if weights is not None else None
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    @classmethod
    def default(cls, rng: random.Random | None = None) -> "UserAgentRotator":
        agents, weights = zip(*DEFAULT_USER_AGENTS)
        return cls(agents, weights, rng=rng)

    @classmethod
    def from_csv(cls, path: Path, rng: random.Random | None = None) -> "UserAgentRotator":
        """Load identities from a CSV file.

        The file has a header row. The user agent is read from a
        ``user_agent`` (or ``useragent``) column, falling back to the second
        column; an optional ``weight`` column sets relative frequency.
        """
        agents: list[str] = []
        weights: list[float] = []
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.reader(f)
            header = [h.strip().lower() for h in next(reader, [])]
            ua_idx = _column(header, ("user_agent", "useragent", "user-agent"), default=1)
            weight_idx = _column(header, ("weight", "percent"), default=None)
            for row in reader:
                if len(row) <= ua_idx or not row[ua_idx].strip():
                    continue
                agents.append(row[ua_idx].strip())
                weight = 1.0
                if weight_idx is not None and len(row) > weight_idx:
                    try:
                        weight = float(row[weight_idx])
                    except ValueError:
                        weight = 1.0
                weights.append(weight)
        return cls(agents, weights, rng=rng)

    def next(self) -> str:
        """Pick the identity for the next request."""
        with self._lock:
            return self._rng.choices(self.agents, weights=self.weights, k=1)[0]

    def __len__(self) -> int:
        return len(self.agents)


def _column(header: list[str], names: tuple[str, ...], default: int | None) -> int | None:
    for name in names:
        if name in header:
            return header.index(name)
    return default
