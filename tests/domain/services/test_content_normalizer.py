"""Tests for content normalization and fingerprinting."""

from confirmd.domain.models.item import ItemKind, RawItem
from confirmd.domain.services.content_normalizer import (
    MAX_CONTENT_CHARS,
    MAX_TRANSCRIPT_CHARS,
    compute_fingerprint,
    normalize,
    normalize_text,
    strip_html,
)


def _raw(title: str, text: str) -> RawItem:
    return RawItem(title=title, text=text, url="https://theblock.co/a", source_name="The Block", source_domain="theblock.co")


def test_strip_html_keeps_visible_text():
    assert normalize_text(strip_html("<p>Bitcoin <b>ETF</b> approved</p>")) == "Bitcoin ETF approved"


def test_strip_html_passes_plain_text_through():
    assert strip_html("no markup here") == "no markup here"


def test_normalize_text_collapses_whitespace_and_keeps_case():
    assert normalize_text("  SEC \n\t approves   ETF ") == "SEC approves ETF"


def test_fingerprint_is_stable_sha256():
    first = compute_fingerprint("SEC approves ETF")
    assert first == compute_fingerprint("SEC approves ETF")
    assert len(first) == 64
    assert first != compute_fingerprint("SEC approves ETFs")


def test_fingerprint_ignores_markup_and_spacing_differences():
    a = normalize(_raw("Nexus hacked", "<p>Funds   drained</p>"))
    b = normalize(_raw("Nexus  hacked", "Funds drained"))
    assert a.fingerprint == b.fingerprint


def test_normalize_caps_body_length():
    content = normalize(_raw("Title", "x" * 10000), max_chars=100)
    assert content.text == "Title " + "x" * 100


def test_normalize_returns_none_for_empty_entry():
    assert normalize(_raw("", "   ")) is None


def test_transcripts_keep_a_longer_body_than_articles():
    article = normalize(_raw("Title", "x" * 30000))
    transcript = normalize(RawItem(
        title="Title",
        text="x" * 30000,
        url="https://www.youtube.com/watch?v=abc123",
        source_name="Crypto Eri",
        source_domain="youtube.com/@CryptoEri",
        kind=ItemKind.TRANSCRIPT,
    ))

    assert len(article.text) == len("Title ") + MAX_CONTENT_CHARS
    assert len(transcript.text) == len("Title ") + MAX_TRANSCRIPT_CHARS
    assert transcript.kind == ItemKind.TRANSCRIPT
