"""Environment diagnostics for ``pagefetch doctor``."""

from __future__ import annotations

import importlib.util
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .fetch_config import ENV_ALLOW_PRIVATE, ENV_MIRROR_PREFIX, MIRROR_PREFIX
from .fetch_utils import env_bool, env_str
from .page_fetch import FetchOptions
from .user_agents import user_agent_families

# (distribution, import name, role)
_DEPENDENCIES = (
    ("trafilatura", "trafilatura", "article extraction"),
    ("readability-lxml", "readability", "article extraction fallback"),
    ("lxml_html_clean", "lxml_html_clean", "HTML cleaner used by readability-lxml"),
    ("uvicorn", "uvicorn", "HTTP service runner"),
)


def redact_url_credentials(url: str) -> str:
    """Mask the password of ``user:password@host`` URLs; other URLs pass through."""

    try:
        parsed = urlparse(url)
        password = parsed.password
    except ValueError:
        return url
    if password is None:
        return url
    userinfo, _, hostinfo = parsed.netloc.rpartition("@")
    user = userinfo.split(":", 1)[0]
    return parsed._replace(netloc=f"{user}:***@{hostinfo}").geturl()


def _module_available(module: str) -> bool:
    try:
        return importlib.util.find_spec(module) is not None
    except (ImportError, ValueError):
        return False


def _check(name: str, ok: bool, detail: str, *, level: str = "warn", remedy: Optional[str] = None) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"name": name, "ok": ok, "level": level, "detail": detail}
    if remedy and not ok:
        entry["remedy"] = remedy
    return entry


def collect_environment_warnings(prefix: Optional[str] = None) -> List[Dict[str, str]]:
    """Flag settings that weaken the default safety posture."""

    prefix = prefix if prefix is not None else env_str(ENV_MIRROR_PREFIX, MIRROR_PREFIX)
    warnings: List[Dict[str, str]] = []
    if env_bool(ENV_ALLOW_PRIVATE, False):
        warnings.append(
            {
                "code": "private_targets_allowed",
                "message": f"{ENV_ALLOW_PRIVATE} is on; loopback and private hosts are reachable.",
            }
        )
    if not prefix.lower().startswith("https://"):
        warnings.append(
            {
                "code": "mirror_not_https",
                "message": f"Mirror prefix does not use https: {redact_url_credentials(prefix)}",
            }
        )
    return warnings


def build_doctor_report() -> Dict[str, Any]:
    options = FetchOptions.from_env()
    prefix = env_str(ENV_MIRROR_PREFIX, MIRROR_PREFIX)
    families = user_agent_families()

    checks = [
        _check(dist, _module_available(module), role, remedy=f"pip install {dist}")
        for dist, module, role in _DEPENDENCIES
    ]
    checks.append(
        _check(
            "user_agent_family",
            options.user_agent_family in families,
            f"{options.user_agent_family} (known: {', '.join(families)})",
            level="info",
            remedy="Unknown families use the desktop pool.",
        )
    )

    return {
        "generated_at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        "ok": all(check["ok"] for check in checks if check["level"] == "warn"),
        "options": {
            "max_chars": options.max_chars,
            "timeout_ms": options.timeout_ms,
            "max_bytes": options.max_bytes,
            "redirect_limit": options.follow,
            "user_agent_mode": options.user_agent_mode,
            "user_agent_family": options.user_agent_family,
            "allow_fallbacks": options.allow_fallbacks,
            "prefer_readability": options.prefer_readability,
            "mirror_prefix": redact_url_credentials(prefix),
            "debug": options.debug,
        },
        "checks": checks,
        "environment_warnings": collect_environment_warnings(prefix),
    }


def format_doctor_report(report: Dict[str, Any]) -> str:
    lines = [f"pagefetch doctor ({report.get('generated_at')})", "", "Options:"]
    options = report.get("options") or {}
    width = max((len(key) for key in options), default=0)
    lines.extend(f"  {key.ljust(width)}  {value}" for key, value in options.items())

    lines.extend(["", "Checks:"])
    for check in report.get("checks", []):
        mark = "ok" if check.get("ok") else ("MISSING" if check.get("level") == "warn" else "note")
        lines.append(f"  [{mark}] {check.get('name')}: {check.get('detail')}")
        if check.get("remedy"):
            lines.append(f"         {check['remedy']}")

    warnings = report.get("environment_warnings") or []
    if warnings:
        lines.extend(["", "Warnings:"])
        lines.extend(f"  {w.get('code')}: {w.get('message')}" for w in warnings)
    return "\n".join(lines).rstrip() + "\n"


__all__ = [
    "redact_url_credentials",
    "collect_environment_warnings",
    "build_doctor_report",
    "format_doctor_report",
]
