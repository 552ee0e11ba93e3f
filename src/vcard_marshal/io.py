from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

import vobject

from .hcard import HCardReader, HCardWriter
from .jcard import JCardReader, JCardWriter
from .model import Card
from .stream import StreamReader, StreamWriter
from .text import VCardReader, VCardWriter
from .versions import VCardVersion
from .xcard import XCardReader, XCardWriter

logger = logging.getLogger(__name__)

FORMATS = ("text", "xml", "json", "html")

_SUFFIXES = {
    ".vcf": "text",
    ".vcard": "text",
    ".txt": "text",
    ".xml": "xml",
    ".json": "json",
    ".html": "html",
    ".htm": "html",
}


def format_for(path: Path) -> str:
    """Syntax implied by a file suffix; unknown suffixes are read as text."""
    return _SUFFIXES.get(path.suffix.lower(), "text")


# ── Readers and writers by name ────────────────────────────────────────────────

def reader_for(text: str, fmt: str = "text") -> StreamReader:
    if fmt == "text":
        return VCardReader(text)
    if fmt == "xml":
        return XCardReader(text)
    if fmt == "json":
        return JCardReader(text)
    if fmt == "html":
        return HCardReader(text)
    raise ValueError(f"Unknown format {fmt!r}; expected one of {', '.join(FORMATS)}.")


def writer_for(fmt: str = "text", version: VCardVersion | None = None, **options) -> StreamWriter:
    if fmt == "text":
        return VCardWriter(version=version, **options)
    if fmt == "xml":
        return XCardWriter(**options)
    if fmt == "json":
        return JCardWriter(**options)
    if fmt == "html":
        return HCardWriter(**options)
    raise ValueError(f"Unknown format {fmt!r}; expected one of {', '.join(FORMATS)}.")


# ── Public API ─────────────────────────────────────────────────────────────────

def parse_string(text: str, fmt: str = "text") -> list[Card]:
    """All cards in ``text``. Use a reader directly to see the warnings."""
    return reader_for(text, fmt).read_all()


def write_string(
    cards: Card | Iterable[Card],
    fmt: str = "text",
    version: VCardVersion | None = None,
    **options,
) -> str:
    if isinstance(cards, Card):
        cards = [cards]
    writer = writer_for(fmt, version, **options)
    writer.write_all(cards)
    return writer.getvalue()


def read_cards_from_files(paths: list[Path]) -> list[tuple[Card, str, list[str]]]:
    """Parse every file, picking the syntax by suffix.

    Returns ``(card, source_label, warnings)`` triples.
    """
    results: list[tuple[Card, str, list[str]]] = []
    for p in paths:
        label = p.stem
        raw = p.read_text(encoding="utf-8", errors="replace")
        reader = reader_for(raw, format_for(p))
        count = 0
        for card in reader:
            results.append((card, label, reader.warnings))
            count += 1
        logger.debug("%s: %d card(s) read", label, count)
    return results


def collect_sources(source_dir: Path) -> list[Path]:
    """All readable card files directly inside ``source_dir``, sorted by name."""
    if not source_dir.is_dir():
        return []
    return sorted(p for p in source_dir.iterdir() if p.is_file() and p.suffix.lower() in _SUFFIXES)


def export_cards(
    cards: list[Card],
    path: Path,
    fmt: str | None = None,
    version: VCardVersion | None = None,
    **options,
) -> int:
    """Write ``cards`` to ``path``; the syntax defaults to the one the suffix implies."""
    fmt = fmt or format_for(path)
    text = write_string(cards, fmt, version, **options)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="")
    return len(cards)


# ── vobject interop ────────────────────────────────────────────────────────────

def to_vobject(card: Card, version: VCardVersion = VCardVersion.V3_0) -> vobject.base.Component:
    """Hand a card to vobject, e.g. for tools built on it."""
    text = write_string(card, "text", version)
    return vobject.readOne(text)


def from_vobject(component: vobject.base.Component) -> Card:
    text = component.serialize()
    card = VCardReader(text).read_next()
    if card is None:
        raise ValueError("vobject component did not serialize to a vCard.")
    return card
