"""Readable-text extraction (trafilatura, then readability-lxml, then raw DOM text)."""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import Optional, Tuple

import ftfy
import trafilatura
from bs4 import BeautifulSoup
from readability import Document

from .errors import ExtractionFailed
from .fetch_config import DEFAULT_MAX_CHARS, STRIP_SELECTORS

logger = logging.getLogger(__name__)

METHOD_EXTRACTION = "extraction"
METHOD_RAW = "raw"

_ZERO_WIDTH = {0x200B, 0x200C, 0x200D, 0x2060, 0xFEFF}
_TRANSLATE = {cp: None for cp in _ZERO_WIDTH | {0x00}}
_WHITESPACE = re.compile(r"\s+")

_BYLINE_META = ("author", "article:author", "byl", "dc.creator")
_EXCERPT_META = ("description", "og:description", "twitter:description")


@dataclass
class Extraction:
    text: str
    title: str
    byline: str
    excerpt: str
    method: str


def normalize_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Repair mojibake, collapse whitespace and truncate to ``max_chars``."""

    if not text:
        return ""
    fixed = ftfy.fix_text(unicodedata.normalize("NFC", text), normalization="NFC")
    collapsed = _WHITESPACE.sub(" ", fixed.translate(_TRANSLATE)).strip()
    return collapsed[:max(0, max_chars)]


def _meta_content(soup: BeautifulSoup, names: Tuple[str, ...]) -> str:
    for name in names:
        node = soup.find("meta", attrs={"name": name}) or soup.find("meta", attrs={"property": name})
        if node is not None:
            content = (node.get("content") or "").strip()
            if content:
                return content
    return ""


def _strip_noise(soup: BeautifulSoup) -> None:
    for tag in soup(list(STRIP_SELECTORS)):
        tag.decompose()


def _run_trafilatura(html: str, url: Optional[str]) -> str:
    try:
        text = trafilatura.extract(
            html,
            url=url,
            include_comments=False,
            include_tables=False,
            favor_recall=True,
        )
    except Exception as exc:  # trafilatura internals raise a wide range of errors
        raise ExtractionFailed(f"trafilatura: {exc}") from exc
    return text or ""


def _run_readability(html: str) -> Tuple[str, str]:
    try:
        doc = Document(html)
        summary = doc.summary(html_partial=True)
        title = doc.short_title() or ""
    except Exception as exc:  # readability-lxml raises lxml and its own Unparseable errors
        raise ExtractionFailed(f"readability: {exc}") from exc
    text = BeautifulSoup(summary, "lxml").get_text(" ", strip=True)
    return text, title


def _extract_article(html: str, base_url: str) -> Tuple[str, str]:
    title = ""
    try:
        text = _run_trafilatura(html, base_url)
    except ExtractionFailed as exc:
        logger.debug("extraction fallback for %s: %s", base_url, exc)
        text = ""
    try:
        readable_text, title = _run_readability(html)
    except ExtractionFailed as exc:
        logger.debug("extraction fallback for %s: %s", base_url, exc)
        readable_text = ""
    return text or readable_text, title


def extract_readable_text(
    html: str,
    base_url: str,
    *,
    max_chars: int = DEFAULT_MAX_CHARS,
    prefer_readability: bool = True,
) -> Extraction:
    """Return the article text of ``html``, or its whole body text as a fallback.

    ``method`` is ``"extraction"`` when an article extractor produced the
    text and ``"raw"`` when the body text was used. Extractor failures are
    never raised.
    """

    soup = BeautifulSoup(html or "", "lxml")
    page_title = soup.title.get_text(" ", strip=True) if soup.title else ""
    byline = _meta_content(soup, _BYLINE_META)
    excerpt = _meta_content(soup, _EXCERPT_META)
    _strip_noise(soup)

    article_text, article_title = "", ""
    if prefer_readability:
        article_text, article_title = _extract_article(str(soup), base_url)

    if article_text:
        return Extraction(
            text=normalize_text(article_text, max_chars),
            title=article_title or page_title,
            byline=byline,
            excerpt=excerpt,
            method=METHOD_EXTRACTION,
        )

    body = soup.body or soup
    return Extraction(
        text=normalize_text(body.get_text(" ", strip=True), max_chars),
        title=page_title,
        byline="",
        excerpt="",
        method=METHOD_RAW,
    )


__all__ = [
    "METHOD_EXTRACTION",
    "METHOD_RAW",
    "Extraction",
    "normalize_text",
    "extract_readable_text",
]
