from __future__ import annotations

import base64
import binascii
import string
from dataclasses import dataclass, field
from urllib.parse import unquote, unquote_to_bytes

# ── Decimal formatting ─────────────────────────────────────────────────────────


def format_decimal(value: float, max_decimals: int = 6) -> str:
    """Fixed-point, locale independent, at least one decimal: ``12`` -> ``"12.0"``."""
    if max_decimals <= 0:
        return str(int(round(value)))
    text = f"{value:.{max_decimals}f}"
    whole, _, frac = text.partition(".")
    frac = frac.rstrip("0") or "0"
    return f"{whole}.{frac}"


def parse_decimal(text: str) -> float:
    text = text.strip()
    # reject anything float() would accept beyond plain ASCII decimals
    if not text or any(c not in "0123456789+-.eE" for c in text):
        raise ValueError(f"Not a decimal number: {text!r}")
    return float(text)


# ── geo: URIs (RFC 5870) ───────────────────────────────────────────────────────

CRS_WGS84 = "wgs84"
_GEO_SCHEME = "geo:"
_PARAM_OK = frozenset(string.ascii_letters + string.digits + "!$&'()*+-.:[]_~")


def _encode_param_value(value: str) -> str:
    out: list[str] = []
    for c in value:
        if c in _PARAM_OK:
            out.append(c)
        else:
            out.extend(f"%{b:02x}" for b in c.encode("utf-8"))
    return "".join(out)


@dataclass(frozen=True)
class GeoUri:
    """``geo:A,B[,C][;crs=..][;u=..][;name=value...]``."""

    coord_a: float
    coord_b: float
    coord_c: float | None = None
    crs: str | None = None
    uncertainty: float | None = None
    parameters: dict[str, str] = field(default_factory=dict)

    @classmethod
    def parse(cls, uri: str) -> GeoUri:
        if uri[:len(_GEO_SCHEME)].lower() != _GEO_SCHEME:
            raise ValueError(f"Not a geo URI: {uri!r}")

        coord_text, *param_texts = uri[len(_GEO_SCHEME):].split(";")
        coords = coord_text.split(",")
        if len(coords) < 2 or not coords[1]:
            raise ValueError(f"geo URI needs at least two coordinates: {uri!r}")
        try:
            values = [parse_decimal(c) for c in coords[:3]]
        except ValueError as e:
            raise ValueError(f"Invalid coordinate in geo URI {uri!r}: {e}") from e

        crs = None
        uncertainty = None
        params: dict[str, str] = {}
        for p in param_texts:
            if not p:
                continue
            name, sep, value = p.partition("=")
            value = unquote(value) if sep else ""
            if name.lower() == "crs":
                crs = None if value.lower() == CRS_WGS84 else value
                continue
            if name.lower() == "u":
                try:
                    uncertainty = parse_decimal(value)
                    continue
                except ValueError:
                    pass
            params[name] = value

        return cls(
            coord_a=values[0],
            coord_b=values[1],
            coord_c=values[2] if len(values) > 2 else None,
            crs=crs,
            uncertainty=uncertainty,
            parameters=params,
        )

    def to_string(self, decimals: int = 6) -> str:
        out = [_GEO_SCHEME, format_decimal(self.coord_a, decimals), ",", format_decimal(self.coord_b, decimals)]
        if self.coord_c is not None:
            out += [",", format_decimal(self.coord_c, decimals)]

        params: list[tuple[str, str]] = []
        if self.crs is not None and self.crs.lower() != CRS_WGS84:
            params.append(("crs", self.crs))
        if self.uncertainty is not None:
            params.append(("u", format_decimal(self.uncertainty, decimals)))
        params.extend(self.parameters.items())
        for name, value in params:
            out.append(f";{name}={_encode_param_value(value)}")
        return "".join(out)

    def __str__(self) -> str:
        return self.to_string()


# ── data: URIs (RFC 2397) ──────────────────────────────────────────────────────

_DATA_SCHEME = "data:"


@dataclass(frozen=True)
class DataUri:
    content_type: str
    data: bytes

    @classmethod
    def parse(cls, uri: str) -> DataUri:
        if uri[:len(_DATA_SCHEME)].lower() != _DATA_SCHEME:
            raise ValueError(f"Not a data URI: {uri!r}")
        header, sep, payload = uri[len(_DATA_SCHEME):].partition(",")
        if not sep:
            raise ValueError(f"Data URI has no comma: {uri!r}")

        parts = header.split(";")
        content_type = parts[0]
        if any(p.lower() == "base64" for p in parts[1:]):
            try:
                data = base64.b64decode(payload, validate=True)
            except binascii.Error as e:
                raise ValueError(f"Invalid base64 in data URI: {e}") from e
        else:
            data = unquote_to_bytes(payload)
        return cls(content_type, data)

    def to_string(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"{_DATA_SCHEME}{self.content_type};base64,{encoded}"

    def __str__(self) -> str:
        return self.to_string()
