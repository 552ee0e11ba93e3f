from __future__ import annotations

import pytest

from vcard_marshal.parameters import ENCODING, TYPE, VALUE, Parameters, guess_name
from vcard_marshal.uris import DataUri, GeoUri, format_decimal, parse_decimal


# ── Decimals ───────────────────────────────────────────────────────────────────

def test_format_decimal():
    assert format_decimal(12) == "12.0"
    assert format_decimal(-122.0829321) == "-122.082932"
    assert format_decimal(0.1 + 0.2) == "0.3"


def test_parse_decimal_rejects_locale_forms():
    assert parse_decimal(" 1.5 ") == 1.5
    with pytest.raises(ValueError):
        parse_decimal("1,5")
    with pytest.raises(ValueError):
        parse_decimal("nan")


# ── geo: ───────────────────────────────────────────────────────────────────────

def test_geo_parse_with_uncertainty():
    uri = GeoUri.parse("geo:37.386013,-122.082932;u=10")
    assert (uri.coord_a, uri.coord_b) == (37.386013, -122.082932)
    assert uri.uncertainty == 10.0
    assert uri.to_string() == "geo:37.386013,-122.082932;u=10.0"


def test_geo_default_crs_omitted():
    assert GeoUri.parse("geo:1,2;crs=wgs84").to_string() == "geo:1.0,2.0"
    assert GeoUri.parse("geo:1,2;crs=moon").to_string() == "geo:1.0,2.0;crs=moon"


def test_geo_parameter_values_percent_encoded():
    uri = GeoUri(1.0, 2.0, parameters={"name": "a b"})
    assert uri.to_string() == "geo:1.0,2.0;name=a%20b"
    assert GeoUri.parse(uri.to_string()).parameters == {"name": "a b"}


def test_geo_third_coordinate():
    assert GeoUri.parse("geo:1,2,3").coord_c == 3.0


@pytest.mark.parametrize("text", ["geo:1", "http://example.com", "geo:a,b"])
def test_geo_rejects(text):
    with pytest.raises(ValueError):
        GeoUri.parse(text)


# ── data: ──────────────────────────────────────────────────────────────────────

def test_data_uri_base64():
    uri = DataUri.parse("data:image/png;base64,AQID")
    assert uri.content_type == "image/png"
    assert uri.data == b"\x01\x02\x03"
    assert uri.to_string() == "data:image/png;base64,AQID"


def test_data_uri_percent_encoded():
    assert DataUri.parse("data:text/plain,a%20b").data == b"a b"


def test_data_uri_rejects():
    with pytest.raises(ValueError):
        DataUri.parse("data:text/plain")
    with pytest.raises(ValueError):
        DataUri.parse("http://example.com/a.png")


# ── Parameters ─────────────────────────────────────────────────────────────────

def test_parameters_case_insensitive():
    p = Parameters()
    p.put("type", "HOME")
    assert p.get_all("TYPE") == ["HOME"]
    assert "Type" in p
    assert p.has_type("home")


def test_parameters_pref():
    p = Parameters()
    p.pref = 1
    assert p.get("PREF") == "1"
    p.replace("PREF", "x")
    assert p.pref is None


def test_parameters_remove_type_ignores_case():
    p = Parameters([("TYPE", "Work"), ("TYPE", "voice")])
    assert p.remove_type("WORK")
    assert p.types == ["voice"]


def test_parameters_copy_is_independent():
    p = Parameters([("TYPE", "work")])
    q = p.copy()
    q.put("TYPE", "home")
    assert p.types == ["work"]
    assert p != q


def test_guess_name_precedence():
    assert guess_name("uri") == VALUE
    assert guess_name("QUOTED-PRINTABLE") == ENCODING
    assert guess_name("WORK") == TYPE
    assert guess_name("something-else") == TYPE


def test_geo_default_crs_suppressed_on_write():
    assert GeoUri(46.772673, -71.282945, crs="WGS84").to_string() == "geo:46.772673,-71.282945"


def test_geo_default_crs_parses_as_none():
    uri = GeoUri.parse("geo:1.0,2.0;crs=WGS84")
    assert uri.crs is None
    assert uri == GeoUri.parse(uri.to_string())
    assert uri == GeoUri(1.0, 2.0)
