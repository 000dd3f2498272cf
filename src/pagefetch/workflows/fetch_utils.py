"""Shared helper functions used by the page fetch workflow."""

from __future__ import annotations

import math
import os
from typing import Optional
from urllib.parse import urlparse


def idna_normalize(host: str) -> str:
    """Return a lowercase, IDNA-normalized host name."""

    h = (host or "").strip().rstrip(".").lower()
    if not h:
        return ""
    try:
        h = h.encode("idna").decode("ascii")
    except UnicodeError:
        pass
    return h


def host_key(url: str) -> str:
    """Return the strategy-cache key for a URL ("" when it has no host)."""

    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return ""
    return idna_normalize(hostname or "")


def as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if not normalized:
        return default
    return normalized not in {"0", "false", "off", "no"}


def safe_int(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        cleaned = value.strip()
        if not cleaned:
            return default
        number = float(cleaned)
    except ValueError:
        return default
    if not math.isfinite(number):
        return default
    return int(number)


def env_bool(name: str, default: bool = False) -> bool:
    return as_bool(os.getenv(name), default)


def env_int(name: str, default: int) -> int:
    return safe_int(os.getenv(name), default)


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def sanity_check() -> None:
    assert idna_normalize("ExAmple.COM.") == "example.com"
    assert host_key("https://WWW.Example.com:8443/a?b=1") == "www.example.com"
    assert host_key("not a url") == ""
    assert as_bool("off", True) is False
    assert safe_int("12.0", 0) == 12
    assert safe_int("nan", 7) == 7


sanity_check()

__all__ = [
    "idna_normalize",
    "host_key",
    "as_bool",
    "safe_int",
    "env_bool",
    "env_int",
    "env_str",
    "sanity_check",
]
