from __future__ import annotations

import copy
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import ClassVar, TypeVar

from .dates import PartialDate, UtcOffset
from .parameters import Parameters
from .uris import GeoUri
from .versions import ALL_VERSIONS, DataType, VCardVersion

_V21_30 = frozenset({VCardVersion.V2_1, VCardVersion.V3_0})
_V30_40 = frozenset({VCardVersion.V3_0, VCardVersion.V4_0})
_V40 = frozenset({VCardVersion.V4_0})

P = TypeVar("P", bound="Property")


@dataclass
class Property:
    SUPPORTED_VERSIONS: ClassVar[frozenset[VCardVersion]] = ALL_VERSIONS

    group: str | None = field(default=None, kw_only=True)
    parameters: Parameters = field(default_factory=Parameters, kw_only=True)

    @classmethod
    def supported_by(cls, version: VCardVersion) -> bool:
        return version in cls.SUPPORTED_VERSIONS

    @property
    def types(self) -> list[str]:
        return self.parameters.types

    @property
    def pref(self) -> int | None:
        return self.parameters.pref

    def copy(self: P) -> P:
        return copy.deepcopy(self)


# ── Scalar text ────────────────────────────────────────────────────────────────

@dataclass
class TextProperty(Property):
    value: str | None = None


class FormattedName(TextProperty):
    pass


class Note(TextProperty):
    pass


class Title(TextProperty):
    pass


class Role(TextProperty):
    pass


class Email(TextProperty):
    pass


class Telephone(TextProperty):
    pass


class Uid(TextProperty):
    pass


class Url(TextProperty):
    pass


class ProductId(TextProperty):
    SUPPORTED_VERSIONS = _V30_40


class Kind(TextProperty):
    SUPPORTED_VERSIONS = _V40

    @property
    def is_group(self) -> bool:
        return (self.value or "").lower() == "group"


class Member(TextProperty):
    SUPPORTED_VERSIONS = _V40


class Label(TextProperty):
    """Stand-alone address label (2.1/3.0). 4.0 carries it on ADR instead."""

    SUPPORTED_VERSIONS = _V21_30


# ── Lists and structured values ────────────────────────────────────────────────

@dataclass
class ListProperty(Property):
    values: list[str] = field(default_factory=list)


class Categories(ListProperty):
    pass


class Nickname(ListProperty):
    SUPPORTED_VERSIONS = _V30_40


@dataclass
class StructuredName(Property):
    family: str | None = None
    given: str | None = None
    additional: list[str] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    suffixes: list[str] = field(default_factory=list)


@dataclass
class Address(Property):
    po_box: str | None = None
    extended: str | None = None
    street: str | None = None
    locality: str | None = None
    region: str | None = None
    postal_code: str | None = None
    country: str | None = None

    @property
    def label(self) -> str | None:
        return self.parameters.label

    @label.setter
    def label(self, value: str | None) -> None:
        self.parameters.label = value


@dataclass
class Organization(Property):
    values: list[str] = field(default_factory=list)


# ── Dates and times ────────────────────────────────────────────────────────────

@dataclass
class DateOrTimeProperty(Property):
    """Exactly one of ``date``, ``partial`` or ``text`` is expected to be set."""

    date: date | datetime | None = None
    partial: PartialDate | None = None
    text: str | None = None


class Birthday(DateOrTimeProperty):
    pass


class Anniversary(DateOrTimeProperty):
    SUPPORTED_VERSIONS = _V40


class Deathdate(DateOrTimeProperty):
    SUPPORTED_VERSIONS = _V40


@dataclass
class Revision(Property):
    timestamp: datetime | None = None


@dataclass
class Timezone(Property):
    offset: UtcOffset | None = None
    text: str | None = None


# ── Binary, links and the rest ─────────────────────────────────────────────────

@dataclass(frozen=True)
class MediaType:
    """``type_value`` is the 2.1/3.0 TYPE token, ``media_type`` the MIME type."""

    type_value: str | None
    media_type: str | None
    extension: str | None = None


@dataclass
class BinaryProperty(Property):
    data: bytes | None = None
    url: str | None = None
    content_type: MediaType | None = None


class Photo(BinaryProperty):
    pass


class Logo(BinaryProperty):
    pass


class Sound(BinaryProperty):
    pass


class Key(BinaryProperty):
    pass


@dataclass
class Related(Property):
    SUPPORTED_VERSIONS = _V40

    uri: str | None = None
    text: str | None = None


@dataclass
class Geo(Property):
    uri: GeoUri | None = None

    @classmethod
    def of(cls, latitude: float, longitude: float, **kwargs) -> Geo:
        return cls(GeoUri(latitude, longitude), **kwargs)

    @property
    def latitude(self) -> float | None:
        return None if self.uri is None else self.uri.coord_a

    @property
    def longitude(self) -> float | None:
        return None if self.uri is None else self.uri.coord_b


@dataclass
class Agent(Property):
    SUPPORTED_VERSIONS = _V21_30

    url: str | None = None
    vcard: Card | None = None


@dataclass
class Xml(Property):
    SUPPORTED_VERSIONS = _V40

    value: str | None = None


@dataclass
class RawProperty(Property):
    """Property with no scribe of its own; the wire value is kept verbatim."""

    name: str = ""
    value: str | None = None
    data_type: DataType | None = None


# ── Card ───────────────────────────────────────────────────────────────────────

@dataclass
class Card:
    version: VCardVersion = VCardVersion.V4_0
    properties: list[Property] = field(default_factory=list)
    orphaned_labels: list[Label] = field(default_factory=list)

    def add(self, prop: P) -> P:
        self.properties.append(prop)
        return prop

    def remove(self, prop: Property) -> None:
        self.properties.remove(prop)

    def get_all(self, kind: type[P]) -> list[P]:
        return [p for p in self.properties if type(p) is kind]

    def get(self, kind: type[P]) -> P | None:
        found = self.get_all(kind)
        return found[0] if found else None

    def remove_all(self, kind: type[Property]) -> None:
        self.properties = [p for p in self.properties if type(p) is not kind]

    def extended(self, name: str) -> list[RawProperty]:
        return [
            p for p in self.properties
            if isinstance(p, RawProperty) and p.name.upper() == name.upper()
        ]

    @property
    def formatted_name(self) -> str | None:
        fn = self.get(FormattedName)
        return None if fn is None else fn.value

    def __iter__(self) -> Iterator[Property]:
        return iter(self.properties)

    def __len__(self) -> int:
        return len(self.properties)
