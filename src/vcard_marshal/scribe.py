"""The scribe contract: one transcoder per property kind.

A scribe turns a property into a wire value (text, xCard element, jCard
value, hCard element) and back, for every vCard version. Instead of raising,
the write and parse methods may hand back an outcome:

* :class:`Skip` - leave the property out;
* :class:`CannotParse` - keep the raw text as a :class:`RawProperty` and warn;
* :class:`EmbeddedCard` - the value is a whole card the orchestrator must
  read or write itself (AGENT only).
"""
from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Generic, TypeVar, Union

from .linecodec import escape_text, parse_structured, split_escaped, unescape_text
from .model import Card, Property
from .parameters import Parameters
from .versions import TEXT, XCARD_NAMESPACE, DataType, VCardVersion
from .wire import HCardElement, JCardValue, XCardElement

P = TypeVar("P", bound=Property)


# ── Outcomes ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Skip:
    reason: str = ""


@dataclass(frozen=True)
class CannotParse:
    raw: str | None
    reason: str = ""


@dataclass
class EmbeddedCard:
    """A nested card to be written, or to be read and handed to ``inject``."""

    property: Property
    card: Card | None = None
    injector: Callable[[Card | None], None] | None = None

    def inject(self, card: Card | None) -> None:
        if self.injector is not None:
            self.injector(card)


@dataclass
class Parsed(Generic[P]):
    property: P
    warnings: list[str] = field(default_factory=list)


TextResult = Union[str, Skip, EmbeddedCard]
JsonResult = Union[JCardValue, Skip, EmbeddedCard]
ParseResult = Union[Parsed, CannotParse, EmbeddedCard]


@dataclass(frozen=True)
class WriteContext:
    version: VCardVersion
    include_trailing_semicolons: bool | None = None

    @property
    def trailing_semicolons(self) -> bool:
        if self.include_trailing_semicolons is None:
            return self.version is VCardVersion.V4_0
        return self.include_trailing_semicolons


# ── Structured values ──────────────────────────────────────────────────────────

class StructuredIterator:
    """Hands out the components of a ``;``-separated value one at a time.

    Running off the end is fine: missing components read as ``None`` / ``[]``.
    """

    def __init__(self, components: list[list[str]]):
        self._it: Iterator[list[str]] = iter(components)

    @classmethod
    def from_text(cls, text: str) -> StructuredIterator:
        return cls(parse_structured(text))

    def next_value(self) -> str | None:
        c = next(self._it, None)
        if not c:
            return None
        return ",".join(c)

    def next_list(self) -> list[str]:
        return list(next(self._it, None) or [])

    def __iter__(self) -> Iterator[list[str]]:
        return self._it


def structured_component(value: str | None) -> list[str]:
    return [] if value is None or value == "" else [value]


# ── Base scribe ────────────────────────────────────────────────────────────────

class Scribe(Generic[P]):
    """Base class for all scribes.

    Subclasses override the ``_``-prefixed hooks; the public methods check
    the property kind and manage the parameter copy and warnings.
    """

    def __init__(self, kind: type[P], name: str, qname: tuple[str, str] | None = None):
        self.kind = kind
        self.name = name.upper()
        self.qname = qname or (XCARD_NAMESPACE, name.lower())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"

    # ── typing ─────────────────────────────────────────────────────────────

    def default_data_type(self, version: VCardVersion) -> DataType | None:
        return TEXT

    def data_type(self, prop: P, version: VCardVersion) -> DataType | None:
        self._check(prop)
        return self._data_type(prop, version)

    def _data_type(self, prop: P, version: VCardVersion) -> DataType | None:
        return self.default_data_type(version)

    # ── parameters ─────────────────────────────────────────────────────────

    def prepare_parameters(self, prop: P, version: VCardVersion, card: Card | None = None) -> Parameters:
        """Copy of ``prop.parameters`` adjusted for ``version``; never mutates ``prop``."""
        self._check(prop)
        params = prop.parameters.copy()
        self._prepare_parameters(prop, params, version, card)
        return params

    def _prepare_parameters(self, prop: P, params: Parameters, version: VCardVersion, card: Card | None) -> None:
        pass

    # ── writing ────────────────────────────────────────────────────────────

    def write_text(self, prop: P, context: WriteContext | VCardVersion) -> TextResult:
        self._check(prop)
        if isinstance(context, VCardVersion):
            context = WriteContext(context)
        return self._write_text(prop, context)

    def _write_text(self, prop: P, context: WriteContext) -> TextResult:
        raise NotImplementedError

    def write_xml(self, prop: P, element: XCardElement) -> Skip | None:
        self._check(prop)
        return self._write_xml(prop, element)

    def _write_xml(self, prop: P, element: XCardElement) -> Skip | None:
        result = self._write_text(prop, WriteContext(element.version))
        if isinstance(result, (Skip, EmbeddedCard)):
            return Skip("no xCard representation") if isinstance(result, EmbeddedCard) else result
        element.append(self._data_type(prop, element.version), unescape_text(result))
        return None

    def write_json(self, prop: P) -> JsonResult:
        self._check(prop)
        return self._write_json(prop)

    def _write_json(self, prop: P) -> JsonResult:
        result = self._write_text(prop, WriteContext(VCardVersion.V4_0))
        if isinstance(result, (Skip, EmbeddedCard)):
            return result
        return JCardValue.single(unescape_text(result))

    def write_html(self, prop: P, version: VCardVersion = VCardVersion.V3_0) -> HCardElement | Skip | EmbeddedCard:
        self._check(prop)
        return self._write_html(prop, version)

    def _write_html(self, prop: P, version: VCardVersion) -> HCardElement | Skip | EmbeddedCard:
        result = self._write_text(prop, WriteContext(version))
        if isinstance(result, (Skip, EmbeddedCard)):
            return result
        el = HCardElement.create("span", self.name.lower())
        el.append_text(unescape_text(result))
        return el

    # ── parsing ────────────────────────────────────────────────────────────

    def _finish(self, outcome: P | CannotParse | EmbeddedCard, params: Parameters, warnings: list[str]) -> ParseResult:
        if isinstance(outcome, (CannotParse, EmbeddedCard)):
            if isinstance(outcome, EmbeddedCard):
                outcome.property.parameters = params
            return outcome
        outcome.parameters = params
        return Parsed(outcome, warnings)

    def parse_text(
        self, value: str, data_type: DataType | None, parameters: Parameters, version: VCardVersion
    ) -> ParseResult:
        warnings: list[str] = []
        outcome = self._parse_text(value, data_type, version, parameters, warnings)
        return self._finish(outcome, parameters, warnings)

    def _parse_text(
        self, value: str, data_type: DataType | None, version: VCardVersion,
        params: Parameters, warnings: list[str],
    ) -> P | CannotParse | EmbeddedCard:
        raise NotImplementedError

    def parse_xml(self, element: XCardElement, parameters: Parameters) -> ParseResult:
        warnings: list[str] = []
        outcome = self._parse_xml(element, parameters, warnings)
        return self._finish(outcome, parameters, warnings)

    def _parse_xml(self, element: XCardElement, params: Parameters, warnings: list[str]) -> P | CannotParse | EmbeddedCard:
        found = element.first_any()
        if found is None:
            return CannotParse(None, "property element has no value")
        name, text = found
        data_type = None if name == "unknown" else DataType.get(name)
        return self._parse_text(escape_text(text), data_type, element.version, params, warnings)

    def parse_json(self, value: JCardValue, data_type: DataType | None, parameters: Parameters) -> ParseResult:
        warnings: list[str] = []
        outcome = self._parse_json(value, data_type, parameters, warnings)
        return self._finish(outcome, parameters, warnings)

    def _parse_json(
        self, value: JCardValue, data_type: DataType | None, params: Parameters, warnings: list[str]
    ) -> P | CannotParse | EmbeddedCard:
        return self._parse_text(escape_text(value.as_single()), data_type, VCardVersion.V4_0, params, warnings)

    def parse_html(self, element: HCardElement) -> ParseResult:
        warnings: list[str] = []
        params = Parameters()
        outcome = self._parse_html(element, params, warnings)
        return self._finish(outcome, params, warnings)

    def _parse_html(self, element: HCardElement, params: Parameters, warnings: list[str]) -> P | CannotParse | EmbeddedCard:
        return self._parse_text(
            escape_text(element.value()), self.default_data_type(VCardVersion.V3_0),
            VCardVersion.V3_0, params, warnings,
        )

    # ── helpers ────────────────────────────────────────────────────────────

    def _check(self, prop: Property) -> None:
        if type(prop) is not self.kind:
            raise TypeError(
                f"{type(self).__name__} handles {self.kind.__name__} properties, "
                f"got {type(prop).__name__}"
            )


# ── Pref handling shared by the multi-instance kinds ──────────────────────────

def handle_pref(prop: Property, params: Parameters, version: VCardVersion, card: Card | None) -> None:
    """4.0 has ``PREF=n``; 2.1 and 3.0 only know ``TYPE=pref``."""
    if version is VCardVersion.V4_0:
        if params.remove_type("pref"):
            params.pref = 1
        return

    params.pref = None
    if card is None:
        return

    best: Property | None = None
    best_pref: int | None = None
    for other in card.get_all(type(prop)):
        p = other.parameters.pref
        if p is not None and (best_pref is None or p < best_pref):
            best, best_pref = other, p
    if best is prop and not params.has_type("pref"):
        params.add_type("pref")


def split_list(value: str) -> list[str]:
    return split_escaped(value, ",") if value else []
