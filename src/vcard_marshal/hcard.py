"""hCard: vCard properties embedded in HTML class names.

hCard follows vCard 3.0, so cards read from HTML are version 3.0 and cards
written to HTML go through the 3.0 version policy.
"""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterator

from .model import Card, Label, ListProperty, Property
from .scribe import CannotParse, EmbeddedCard, Parsed, Skip
from .scribes import RawScribe
from .stream import StreamReader, StreamWriter, assign_labels
from .versions import VCardVersion
from .wire import HCardElement, class_names, has_class, parse_html

logger = logging.getLogger(__name__)

V30 = VCardVersion.V3_0

_MAILTO = re.compile(r"(?i)mailto:")
_TEL = re.compile(r"(?i)tel:")


# ── Reading ────────────────────────────────────────────────────────────────────

def _outermost_cards(element: ET.Element) -> Iterator[ET.Element]:
    for child in element:
        if has_class(child, "vcard"):
            yield child
        else:
            yield from _outermost_cards(child)


class HCardReader(StreamReader):
    """Reads every top-level ``class="vcard"`` element of an HTML page.

    ``page_url`` resolves relative links such as ``<img src="me.jpg">``.
    """

    def __init__(self, html: str, page_url: str | None = None):
        super().__init__()
        self.page_url = page_url
        self._cards = iter(list(_outermost_cards(parse_html(html))))

    def _read_next(self) -> Card | None:
        element = next(self._cards, None)
        if element is None:
            return None
        return self._read_card(element)

    def _read_card(self, element: ET.Element) -> Card:
        card = Card(V30)
        labels: list[Label] = []
        self._visit(element, card, labels, root=True)
        assign_labels(card, labels)
        return card

    def _visit(self, element: ET.Element, card: Card, labels: list[Label], root: bool = False) -> None:
        if not root:
            classes = [c.lower() for c in class_names(element)]
            for css in classes:
                if css != "vcard":
                    self._parse_class(css, element, card, labels)
            if "vcard" in classes:
                # nested card: only a property such as AGENT may claim it
                return
        for child in element:
            self._visit(child, card, labels)

    def _parse_class(self, css: str, element: ET.Element, card: Card, labels: list[Label]) -> None:
        name = css
        href = element.get("href", "")
        if css == "url" and _MAILTO.match(href):
            name = "email"
        elif css == "url" and _TEL.match(href):
            name = "tel"
        elif css == "category":
            name = "categories"

        scribe = self.index.get(name)
        if scribe is None:
            if not name.startswith("x-"):
                return
            scribe = RawScribe(name.upper())

        result = scribe.parse_html(HCardElement(element, self.page_url))
        if isinstance(result, Parsed):
            for w in result.warnings:
                self._warnings.add(w, property_name=scribe.name)
            self._add(result.property, card, labels)
        elif isinstance(result, CannotParse):
            self._warnings.add(f"Element could not be parsed ({result.reason}); skipped.", property_name=scribe.name)
        elif isinstance(result, EmbeddedCard):
            result.inject(self._read_card(element))
            card.add(result.property)
        else:
            self._warnings.add(f"Property skipped: {result.reason}", property_name=scribe.name)

    @staticmethod
    def _add(prop: Property, card: Card, labels: list[Label]) -> None:
        if isinstance(prop, Label):
            labels.append(prop)
            return
        if isinstance(prop, ListProperty):
            existing = card.get(type(prop))
            if existing is not None:
                existing.values.extend(prop.values)
                return
        card.add(prop)


# ── Writing ────────────────────────────────────────────────────────────────────

class HCardWriter(StreamWriter):
    """Renders each card as a ``<div class="vcard">`` fragment."""

    def __init__(self, *, add_prodid: bool = False, version_strict: bool = True):
        super().__init__(V30, add_prodid=add_prodid, version_strict=version_strict)
        self.fragments: list[str] = []

    def _write(self, card: Card, version: VCardVersion, properties: list[Property]) -> None:
        root = self._card_element(card, properties, "vcard")
        self.fragments.append(root.to_html())

    def _card_element(self, card: Card, properties: list[Property], css_class: str) -> HCardElement:
        root = HCardElement.create("div", css_class)
        for prop in properties:
            scribe = self.index.scribe_for(prop)
            result = scribe.write_html(prop, V30)
            if isinstance(result, Skip):
                logger.debug("%s skipped: %s", scribe.name, result.reason)
                continue
            if isinstance(result, EmbeddedCard):
                if result.card is None:
                    continue
                nested = result.card
                add_prodid, self.add_prodid = self.add_prodid, False
                try:
                    result = self._card_element(
                        nested, self.prepare(nested, V30), f"{scribe.name.lower()} vcard",
                    )
                finally:
                    self.add_prodid = add_prodid
            root.element.append(result.element)
        return root

    def getvalue(self) -> str:
        return "\n".join(self.fragments)
