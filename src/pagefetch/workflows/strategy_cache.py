"""Per-host memory of the fetch strategy that last produced text."""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Tuple

from .fetch_config import DEFAULT_STRATEGY_CACHE_SIZE

CHANNEL_DIRECT = "direct"
CHANNEL_PROXY = "proxy"


@dataclass(frozen=True)
class Strategy:
    channel: str
    prefer_extraction: bool

    @property
    def is_proxy(self) -> bool:
        return self.channel == CHANNEL_PROXY


DEFAULT_STRATEGIES: Tuple[Strategy, ...] = (
    Strategy(CHANNEL_DIRECT, True),
    Strategy(CHANNEL_DIRECT, False),
    Strategy(CHANNEL_PROXY, True),
    Strategy(CHANNEL_PROXY, False),
)


def order_strategies(cached: Optional[Strategy]) -> Tuple[Strategy, ...]:
    """Move ``cached`` to the front of the default precedence, keeping the rest in order."""

    strategies = list(DEFAULT_STRATEGIES)
    if cached is None or cached not in strategies:
        return tuple(strategies)
    index = strategies.index(cached)
    if index > 0:
        strategies.insert(0, strategies.pop(index))
    return tuple(strategies)


class StrategyCache:
    """Bounded, thread-safe LRU map of hostname -> last successful Strategy.

    Entries are only a hint for ordering attempts; concurrent writers for the
    same host resolve as last-writer-wins.
    """

    def __init__(self, max_entries: int = DEFAULT_STRATEGY_CACHE_SIZE) -> None:
        self.max_entries = max(1, int(max_entries))
        self._entries: "OrderedDict[str, Strategy]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, host: str) -> Optional[Strategy]:
        key = (host or "").lower()
        if not key:
            return None
        with self._lock:
            strategy = self._entries.get(key)
            if strategy is not None:
                self._entries.move_to_end(key)
            return strategy

    def put(self, host: str, strategy: Strategy) -> None:
        key = (host or "").lower()
        if not key:
            return
        with self._lock:
            self._entries[key] = strategy
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, host: object) -> bool:
        if not isinstance(host, str):
            return False
        with self._lock:
            return host.lower() in self._entries


__all__ = [
    "CHANNEL_DIRECT",
    "CHANNEL_PROXY",
    "Strategy",
    "DEFAULT_STRATEGIES",
    "order_strategies",
    "StrategyCache",
]
