"""Request identity pools and deterministic per-URL selection."""

from __future__ import annotations

from typing import Dict, List, Tuple

USER_AGENTS: Dict[str, Tuple[str, ...]] = {
    "desktop": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36",
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_5_2) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Safari/605.1.15",
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    ),
    "mobile": (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1",
        "Mozilla/5.0 (Linux; Android 13; Pixel 7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Mobile Safari/537.36",
        "Mozilla/5.0 (Linux; Android 12; SM-G991B) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Mobile Safari/537.36",
    ),
    "tablet": (
        "Mozilla/5.0 (iPad; CPU OS 16_6 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 Mobile/15E148 Safari/604.1",
        "Mozilla/5.0 (Linux; Android 12; SAMSUNG SM-T865) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    ),
}

DEFAULT_FAMILY = "desktop"

_FNV_OFFSET = 2166136261
_FNV_PRIME = 16777619


def _utf16_units(value: str) -> List[int]:
    data = value.encode("utf-16-le", "surrogatepass")
    return [data[i] | (data[i + 1] << 8) for i in range(0, len(data), 2)]


def hash_string(value: str) -> int:
    """32-bit FNV-1a over UTF-16 code units, returned as ``abs(signed32)``."""

    h = _FNV_OFFSET
    for unit in _utf16_units(value):
        h ^= unit
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return abs(h)


def user_agent_families() -> List[str]:
    return list(USER_AGENTS)


def pick_user_agent(
    mode: str = "fixed",
    url: str = "",
    family: str = DEFAULT_FAMILY,
    fixed: str = "Mozilla/5.0",
) -> str:
    """Return ``fixed`` in fixed mode, else a pool entry chosen by hashing ``family:url``."""

    if mode == "fixed":
        return fixed
    candidates = USER_AGENTS.get(family) or USER_AGENTS[DEFAULT_FAMILY]
    if not url:
        return candidates[0]
    index = hash_string(f"{family}:{url}") % len(candidates)
    return candidates[index]


__all__ = [
    "USER_AGENTS",
    "DEFAULT_FAMILY",
    "hash_string",
    "user_agent_families",
    "pick_user_agent",
]
