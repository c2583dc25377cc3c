"""Canonical text form and fingerprint for ingested content."""

import hashlib
import logging
import re
from typing import Optional

from bs4 import BeautifulSoup
from pydantic import BaseModel

from ..models.item import ItemKind, RawItem

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 5000

_WHITESPACE = re.compile(r"\s+")


class NormalizedContent(BaseModel):
    """Normalized text ready to become an Item."""

    title: str
    text: str
    fingerprint: str
    url: Optional[str] = None
    kind: ItemKind = ItemKind.ARTICLE


def strip_html(markup: str) -> str:
    """Return the visible text of an HTML fragment."""
    if not markup:
        return ""
    if "<" not in markup:
        return markup
    soup = BeautifulSoup(markup, "lxml")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup.get_text(" ")


def normalize_text(text: str) -> str:
    """Collapse whitespace and trim. Case is preserved."""
    return _WHITESPACE.sub(" ", text or "").strip()


def compute_fingerprint(normalized_text: str) -> str:
    """Stable SHA-256 hex digest over normalized text."""
    return hashlib.sha256(normalized_text.encode("utf-8")).hexdigest()


def normalize(raw: RawItem, max_chars: int = MAX_CONTENT_CHARS) -> Optional[NormalizedContent]:
    """Normalize a raw feed entry.

    Title and body are joined so that two entries with identical text
    produce the same fingerprint no matter which feed delivered them.

    Args:
        raw: Entry as delivered by the feed reader
        max_chars: Cap on body length

    Returns:
        Normalized content, or None when there is no usable text
    """
    title = normalize_text(strip_html(raw.title))
    body = normalize_text(strip_html(raw.text))[:max_chars]

    combined = normalize_text(f"{title} {body}")
    if not combined:
        logger.debug(f"⚠️ Skipping empty entry from {raw.source_name}")
        return None

    return NormalizedContent(
        title=title,
        text=combined,
        fingerprint=compute_fingerprint(combined),
        url=raw.url,
        kind=raw.kind,
    )


