"""jCard (RFC 7095): vCard 4.0 as JSON arrays."""
from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any, TextIO

from .model import Card, Property, RawProperty
from .parameters import Parameters
from .scribe import CannotParse, EmbeddedCard, Parsed, Skip
from .scribes import raw_json_text
from .stream import StreamReader, StreamWriter
from .versions import DataType, VCardVersion
from .wire import JCardValue

logger = logging.getLogger(__name__)

V40 = VCardVersion.V4_0
UNKNOWN = "unknown"


# ── Reading ────────────────────────────────────────────────────────────────────

def _is_card(value: Any) -> bool:
    return (
        isinstance(value, list) and len(value) == 2
        and isinstance(value[0], str) and value[0].lower() == "vcard"
        and isinstance(value[1], list)
    )


class JCardReader(StreamReader):
    """Reads one jCard, or an array of them, from JSON text or a stream."""

    def __init__(self, source: str | TextIO | list):
        super().__init__()
        if isinstance(source, str):
            data = json.loads(source)
        elif isinstance(source, list):
            data = source
        else:
            data = json.load(source)

        if _is_card(data):
            cards = [data]
        elif isinstance(data, list):
            cards = [c for c in data if _is_card(c)]
        else:
            raise ValueError("JSON input is not a jCard array.")
        self._cards: Iterator[list] = iter(cards)

    def _read_next(self) -> Card | None:
        data = next(self._cards, None)
        if data is None:
            return None
        card = Card(V40)
        for item in data[1]:
            if (
                not isinstance(item, list) or len(item) < 4 or not isinstance(item[0], str)
                or not isinstance(item[1], dict) or not isinstance(item[2], str)
            ):
                self._warnings.add(f"Skipped a malformed property array: {json.dumps(item)}")
                continue
            self._read_property(item, card)
        return card

    def _read_property(self, item: list, card: Card) -> None:
        name, raw_params, raw_type, *values = item
        if name.lower() == "version":
            if str(values[0]) != V40.version:
                self._warnings.add(f'Unexpected VERSION "{values[0]}"; jCard is always 4.0.', property_name="VERSION")
            return

        group = None
        params = Parameters()
        for pname, pvalue in raw_params.items():
            if pname.lower() == "group":
                group = str(pvalue)
                continue
            pvalues = pvalue if isinstance(pvalue, list) else [pvalue]
            params.put_all(pname, [JCardValue.stringify(v) for v in pvalues])

        scribe = self.index.lookup_name(name.upper())
        if name not in self.index and self.index.needs_warning(name):
            self._warnings.add("Unrecognized property; kept as raw text.", property_name=name.upper())

        data_type = None if raw_type == UNKNOWN else DataType.get(raw_type)
        if data_type is None:
            data_type = scribe.default_data_type(V40)
        value = JCardValue(values)

        result = scribe.parse_json(value, data_type, params)
        if isinstance(result, Parsed):
            for w in result.warnings:
                self._warnings.add(w, property_name=scribe.name)
            result.property.group = group
            card.add(result.property)
        elif isinstance(result, CannotParse):
            self._warnings.add(
                f"Value could not be parsed ({result.reason}); kept as raw text.",
                property_name=scribe.name,
            )
            card.add(RawProperty(
                name=name.upper(), value=raw_json_text(value), data_type=data_type, group=group,
            ))
        elif isinstance(result, EmbeddedCard):
            self._warnings.add("jCard cannot contain nested cards; skipped.", property_name=scribe.name)
        else:
            self._warnings.add(f"Property skipped: {result.reason}", property_name=scribe.name)


# ── Writing ────────────────────────────────────────────────────────────────────

class JCardWriter(StreamWriter):
    """Collects cards as jCard arrays. Always writes version 4.0."""

    def __init__(self, *, add_prodid: bool = True, version_strict: bool = True):
        super().__init__(V40, add_prodid=add_prodid, version_strict=version_strict)
        self.cards: list[list] = []

    def _write(self, card: Card, version: VCardVersion, properties: list[Property]) -> None:
        out: list[list] = [["version", {}, "text", V40.version]]
        for prop in properties:
            item = self._property_array(prop, card)
            if item is not None:
                out.append(item)
        self.cards.append(["vcard", out])

    def _property_array(self, prop: Property, card: Card) -> list | None:
        scribe = self.index.scribe_for(prop)
        result = scribe.write_json(prop)
        if isinstance(result, Skip):
            logger.debug("%s skipped: %s", scribe.name, result.reason)
            return None
        if isinstance(result, EmbeddedCard):
            self._warnings.add("jCard cannot contain nested cards; skipped.", property_name=scribe.name)
            return None

        params = scribe.prepare_parameters(prop, V40, card)
        params.value = None
        obj: dict[str, Any] = {}
        if prop.group:
            obj["group"] = prop.group
        for pname, values in params.items():
            if pname is None:
                continue
            obj[pname.lower()] = values[0] if len(values) == 1 else values

        data_type = scribe.data_type(prop, V40)
        name = prop.name if isinstance(prop, RawProperty) else scribe.name
        return [name.lower(), obj, data_type.name if data_type else UNKNOWN, *result.values]

    def data(self) -> list:
        """A single jCard, or an array of them when more than one was written."""
        return self.cards[0] if len(self.cards) == 1 else list(self.cards)

    def getvalue(self, indent: int | None = None) -> str:
        return json.dumps(self.data(), ensure_ascii=False, indent=indent)
