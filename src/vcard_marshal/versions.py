from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

XCARD_NAMESPACE = "urn:ietf:params:xml:ns:vcard-4.0"


class VCardVersion(Enum):
    V2_1 = "2.1"
    V3_0 = "3.0"
    V4_0 = "4.0"

    @property
    def version(self) -> str:
        return self.value

    @property
    def xml_namespace(self) -> str | None:
        return XCARD_NAMESPACE if self is VCardVersion.V4_0 else None

    @property
    def _rank(self) -> int:
        return _ORDER.index(self)

    def __lt__(self, other: VCardVersion) -> bool:
        if not isinstance(other, VCardVersion):
            return NotImplemented
        return self._rank < other._rank

    def __le__(self, other: VCardVersion) -> bool:
        if not isinstance(other, VCardVersion):
            return NotImplemented
        return self._rank <= other._rank

    @classmethod
    def find(cls, text: str | None) -> VCardVersion | None:
        if text is None:
            return None
        text = text.strip()
        for v in cls:
            if v.value == text:
                return v
        return None


_ORDER = (VCardVersion.V2_1, VCardVersion.V3_0, VCardVersion.V4_0)
ALL_VERSIONS = frozenset(VCardVersion)


@dataclass(frozen=True)
class DataType:
    """Value type named by the ``VALUE`` parameter (``text``, ``uri`` ...)."""

    name: str
    versions: frozenset[VCardVersion] = field(default=ALL_VERSIONS, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", self.name.lower())

    def supported_by(self, version: VCardVersion) -> bool:
        return version in self.versions

    @staticmethod
    def find(name: str | None) -> DataType | None:
        if name is None:
            return None
        return KNOWN_DATA_TYPES.get(name.lower())

    @staticmethod
    def get(name: str) -> DataType:
        """Known data type, or a new one so unrecognized ``VALUE`` params survive."""
        return DataType.find(name) or DataType(name)

    def __str__(self) -> str:
        return self.name


_V21 = frozenset({VCardVersion.V2_1})
_V30_40 = frozenset({VCardVersion.V3_0, VCardVersion.V4_0})
_V40 = frozenset({VCardVersion.V4_0})

TEXT = DataType("text")
URL = DataType("url", _V21)
CONTENT_ID = DataType("content-id", _V21)
URI = DataType("uri", _V30_40)
BINARY = DataType("binary", frozenset({VCardVersion.V3_0}))
DATE = DataType("date", _V30_40)
TIME = DataType("time", _V30_40)
DATE_TIME = DataType("date-time", _V30_40)
DATE_AND_OR_TIME = DataType("date-and-or-time", _V40)
TIMESTAMP = DataType("timestamp", _V40)
BOOLEAN = DataType("boolean", _V30_40)
INTEGER = DataType("integer", _V30_40)
FLOAT = DataType("float", _V30_40)
UTC_OFFSET = DataType("utc-offset", _V30_40)
LANGUAGE_TAG = DataType("language-tag", _V40)

KNOWN_DATA_TYPES = MappingProxyType({
    dt.name: dt
    for dt in (
        TEXT, URL, CONTENT_ID, URI, BINARY, DATE, TIME, DATE_TIME, DATE_AND_OR_TIME,
        TIMESTAMP, BOOLEAN, INTEGER, FLOAT, UTC_OFFSET, LANGUAGE_TAG,
    )
})
