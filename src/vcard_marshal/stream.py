"""Reader and writer machinery shared by every syntax.

Readers hand out one :class:`Card` per :meth:`StreamReader.read_next` call and
collect warnings for that card; writers run :meth:`StreamWriter.prepare`
before serializing so that all syntaxes apply the same version policy.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from .model import Address, Card, Kind, Label, Member, ProductId, Property, RawProperty
from .registry import ScribeIndex
from .scribe import Scribe
from .versions import VCardVersion

logger = logging.getLogger(__name__)

PRODUCT_ID = "-//vcard-marshal//vcard-marshal 0.1//EN"


# ── Warnings ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ParseWarning:
    message: str
    line: int | None = None
    property_name: str | None = None

    def __str__(self) -> str:
        where = []
        if self.line is not None:
            where.append(f"Line {self.line}")
        if self.property_name:
            where.append(f"{self.property_name} property")
        return f"{' | '.join(where)}: {self.message}" if where else self.message


class ParseWarnings:
    """Warnings collected for the card currently being read or written."""

    def __init__(self) -> None:
        self._items: list[ParseWarning] = []

    def add(self, message: str, line: int | None = None, property_name: str | None = None) -> None:
        self._items.append(ParseWarning(message, line, property_name))

    def clear(self) -> None:
        self._items = []

    def copy(self) -> list[str]:
        return [str(w) for w in self._items]

    def __len__(self) -> int:
        return len(self._items)


# ── Reading ────────────────────────────────────────────────────────────────────

class StreamReader:
    def __init__(self) -> None:
        self.index = ScribeIndex()
        self._warnings = ParseWarnings()
        self.warnings: list[str] = []

    def register_scribe(self, scribe: Scribe) -> None:
        self.index.register(scribe)

    def _read_next(self) -> Card | None:
        raise NotImplementedError

    def read_next(self) -> Card | None:
        """The next card, or ``None`` once the input is exhausted.

        :attr:`warnings` is replaced with the warnings for that card.
        """
        self._warnings.clear()
        card = self._read_next()
        self.warnings = self._warnings.copy()
        if card is not None:
            logger.debug(
                "Read vCard %s with %d properties (%d warnings)",
                card.version.version, len(card), len(self.warnings),
            )
        return card

    def read_all(self) -> list[Card]:
        return list(self)

    def __iter__(self) -> Iterator[Card]:
        while (card := self.read_next()) is not None:
            yield card


def _type_key(types: Iterable[str]) -> list[str]:
    return [t.lower() for t in types]


def assign_labels(card: Card, labels: list[Label]) -> None:
    """Attach stand-alone LABELs to the ADR whose TYPEs match exactly.

    Labels that match no address are kept as :attr:`Card.orphaned_labels`.
    """
    for label in labels:
        for adr in card.get_all(Address):
            if adr.label is None and _type_key(adr.types) == _type_key(label.types):
                adr.label = label.value
                break
        else:
            card.orphaned_labels.append(label)


# ── Writing ────────────────────────────────────────────────────────────────────

class StreamWriter:
    """Base writer.

    ``version`` of ``None`` writes each card in its own version.
    """

    def __init__(
        self,
        version: VCardVersion | None = None,
        *,
        add_prodid: bool = True,
        version_strict: bool = True,
    ) -> None:
        self.version = version
        self.add_prodid = add_prodid
        self.version_strict = version_strict
        self.index = ScribeIndex()
        self._warnings = ParseWarnings()
        self.warnings: list[str] = []

    def register_scribe(self, scribe: Scribe) -> None:
        self.index.register(scribe)

    def target_version(self, card: Card) -> VCardVersion:
        return self.version or card.version

    def prepare(self, card: Card, version: VCardVersion) -> list[Property]:
        """The properties to write, after applying the version policy."""
        out: list[Property] = []
        if self.add_prodid:
            if version is VCardVersion.V2_1:
                out.append(RawProperty(name="X-PRODID", value=PRODUCT_ID))
            else:
                out.append(ProductId(PRODUCT_ID))

        is_group = any(k.is_group for k in card.get_all(Kind))
        member_warned = False

        for prop in card.properties:
            if self.add_prodid and isinstance(prop, ProductId):
                continue

            scribe = self.index.scribe_for(prop)
            if scribe is None:
                self._drop(f"No scribe registered for {type(prop).__name__}; skipped.", None)
                continue

            if self.version_strict and not prop.supported_by(version):
                supported = ", ".join(
                    v.version for v in sorted(type(prop).SUPPORTED_VERSIONS)
                )
                self._drop(
                    f"Not supported by vCard {version.version} "
                    f"(supported versions: {supported}); skipped.",
                    scribe.name,
                )
                continue

            if isinstance(prop, Member) and not is_group:
                if not member_warned:
                    self._drop("MEMBER requires KIND:group; all MEMBER properties skipped.", "MEMBER")
                    member_warned = True
                continue

            out.append(prop)

            if isinstance(prop, Address) and version is not VCardVersion.V4_0 and prop.label is not None:
                label = Label(prop.label)
                label.parameters.put_all("TYPE", prop.types)
                out.append(label)

        if version is not VCardVersion.V4_0:
            out.extend(card.orphaned_labels)
        return out

    def _drop(self, message: str, property_name: str | None) -> None:
        logger.debug("%s: %s", property_name or "property", message)
        self._warnings.add(message, property_name=property_name)

    def _write(self, card: Card, version: VCardVersion, properties: list[Property]) -> None:
        raise NotImplementedError

    def write(self, card: Card) -> None:
        self._warnings.clear()
        version = self.target_version(card)
        self._write(card, version, self.prepare(card, version))
        self.warnings = self._warnings.copy()

    def write_all(self, cards: Iterable[Card]) -> None:
        for card in cards:
            self.write(card)
