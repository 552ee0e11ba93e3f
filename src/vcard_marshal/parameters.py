from __future__ import annotations

from collections.abc import Iterable, Iterator
from types import MappingProxyType

from .versions import KNOWN_DATA_TYPES, DataType

TYPE = "TYPE"
VALUE = "VALUE"
ENCODING = "ENCODING"
CHARSET = "CHARSET"
PREF = "PREF"
LABEL = "LABEL"
MEDIATYPE = "MEDIATYPE"

QUOTED_PRINTABLE = "quoted-printable"
BASE64 = "base64"
B = "b"

# Values each parameter is known to take; used to guess the name of a bare
# 2.1 parameter such as ``TEL;WORK;VOICE:``.
KNOWN_VALUES: MappingProxyType[str, frozenset[str]] = MappingProxyType({
    VALUE: frozenset(KNOWN_DATA_TYPES),
    ENCODING: frozenset({QUOTED_PRINTABLE, BASE64, B, "8bit", "7bit"}),
    TYPE: frozenset({
        "home", "work", "pref", "voice", "fax", "msg", "cell", "pager", "bbs",
        "modem", "car", "isdn", "video", "pcs", "text", "textphone", "internet",
        "x400", "dom", "intl", "postal", "parcel",
    }),
})


def guess_name(value: str) -> str:
    """Name of a nameless parameter: VALUE, then ENCODING, otherwise TYPE."""
    v = value.lower()
    if v in KNOWN_VALUES[VALUE]:
        return VALUE
    if v in KNOWN_VALUES[ENCODING]:
        return ENCODING
    return TYPE


class Parameters:
    """Case-insensitive, ordered multimap of parameter name to values.

    Names are upper-cased on the way in; values keep their case and order.
    The ``None`` key holds nameless parameters while a 2.1 line is parsed.
    """

    def __init__(self, items: Iterable[tuple[str | None, str]] | None = None):
        self._map: dict[str | None, list[str]] = {}
        for name, value in items or ():
            self.put(name, value)

    @staticmethod
    def _key(name: str | None) -> str | None:
        return None if name is None else name.upper()

    # ── multimap ────────────────────────────────────────────────────────────

    def put(self, name: str | None, value: str) -> None:
        self._map.setdefault(self._key(name), []).append(value)

    def put_all(self, name: str | None, values: Iterable[str]) -> None:
        for v in values:
            self.put(name, v)

    def get(self, name: str | None) -> str | None:
        values = self._map.get(self._key(name))
        return values[0] if values else None

    def get_all(self, name: str | None) -> list[str]:
        return list(self._map.get(self._key(name), ()))

    def replace(self, name: str | None, value: str | None) -> None:
        """Set a single value; ``None`` removes the parameter."""
        key = self._key(name)
        if value is None:
            self._map.pop(key, None)
        else:
            self._map[key] = [value]

    def replace_all(self, name: str | None, values: Iterable[str]) -> None:
        key = self._key(name)
        values = list(values)
        if values:
            self._map[key] = values
        else:
            self._map.pop(key, None)

    def remove_all(self, name: str | None) -> list[str]:
        return self._map.pop(self._key(name), [])

    def remove(self, name: str | None, value: str) -> bool:
        key = self._key(name)
        values = self._map.get(key)
        if not values or value not in values:
            return False
        values.remove(value)
        if not values:
            del self._map[key]
        return True

    def items(self) -> Iterator[tuple[str | None, list[str]]]:
        for name, values in self._map.items():
            yield name, list(values)

    def copy(self) -> Parameters:
        other = Parameters()
        other._map = {k: list(v) for k, v in self._map.items()}
        return other

    def __contains__(self, name: object) -> bool:
        return isinstance(name, (str, type(None))) and self._key(name) in self._map

    def __len__(self) -> int:
        return len(self._map)

    def __bool__(self) -> bool:
        return bool(self._map)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Parameters):
            return NotImplemented
        return self._map == other._map

    def __repr__(self) -> str:
        return f"Parameters({self._map!r})"

    # ── typed accessors ─────────────────────────────────────────────────────

    @property
    def types(self) -> list[str]:
        return self.get_all(TYPE)

    def add_type(self, value: str) -> None:
        self.put(TYPE, value)

    def remove_type(self, value: str) -> bool:
        for v in self.get_all(TYPE):
            if v.lower() == value.lower():
                return self.remove(TYPE, v)
        return False

    def has_type(self, value: str) -> bool:
        return any(v.lower() == value.lower() for v in self.types)

    @property
    def pref(self) -> int | None:
        raw = self.get(PREF)
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None

    @pref.setter
    def pref(self, value: int | None) -> None:
        self.replace(PREF, None if value is None else str(value))

    @property
    def encoding(self) -> str | None:
        raw = self.get(ENCODING)
        return None if raw is None else raw.lower()

    @encoding.setter
    def encoding(self, value: str | None) -> None:
        self.replace(ENCODING, value)

    @property
    def charset(self) -> str | None:
        return self.get(CHARSET)

    @charset.setter
    def charset(self, value: str | None) -> None:
        self.replace(CHARSET, value)

    @property
    def value(self) -> DataType | None:
        raw = self.get(VALUE)
        return None if raw is None else DataType.get(raw)

    @value.setter
    def value(self, data_type: DataType | None) -> None:
        self.replace(VALUE, None if data_type is None else data_type.name)

    @property
    def label(self) -> str | None:
        return self.get(LABEL)

    @label.setter
    def label(self, value: str | None) -> None:
        self.replace(LABEL, value)

    @property
    def mediatype(self) -> str | None:
        return self.get(MEDIATYPE)

    @mediatype.setter
    def mediatype(self, value: str | None) -> None:
        self.replace(MEDIATYPE, value)

