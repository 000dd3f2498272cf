"""Bounded, SSRF-filtered web page text fetching with mirror fallbacks."""

__version__ = "0.1.0"
