from __future__ import annotations

import xml.etree.ElementTree as ET

from vcard_marshal import model as m
from vcard_marshal.dates import PartialDate
from vcard_marshal.model import Card
from vcard_marshal.versions import XCARD_NAMESPACE, VCardVersion
from vcard_marshal.xcard import XCardReader, XCardWriter

V30, V40 = VCardVersion.V3_0, VCardVersion.V4_0


# ── helpers ────────────────────────────────────────────────────────────────────

def _xml(*properties: str) -> str:
    body = "".join(properties)
    return f'<vcards xmlns="{XCARD_NAMESPACE}"><vcard>{body}</vcard></vcards>'


def _write(*cards: Card, **kwargs) -> tuple[str, XCardWriter]:
    kwargs.setdefault("add_prodid", False)
    writer = XCardWriter(**kwargs)
    for card in cards:
        writer.write(card)
    return writer.getvalue(), writer


def _card(*props: m.Property, version: VCardVersion = V40) -> Card:
    card = Card(version)
    for p in props:
        card.add(p)
    return card


# ── Reading ────────────────────────────────────────────────────────────────────

def test_read_basic():
    reader = XCardReader(_xml(
        "<fn><text>John Doe</text></fn>",
        "<n><surname>Doe</surname><given>John</given><additional/><prefix/><suffix/></n>",
        '<group name="item1"><tel><parameters><type><text>work</text></type></parameters>'
        "<uri>tel:+1-555-0100</uri></tel></group>",
    ))
    card = reader.read_next()
    assert card.version is V40
    assert card.formatted_name == "John Doe"
    assert card.get(m.StructuredName).given == "John"
    tel = card.get(m.Telephone)
    assert tel.group == "item1"
    assert tel.types == ["work"]
    assert tel.value == "tel:+1-555-0100"
    assert reader.warnings == []
    assert reader.read_next() is None


def test_read_single_vcard_root():
    text = f'<vcard xmlns="{XCARD_NAMESPACE}"><fn><text>x</text></fn></vcard>'
    assert [c.formatted_name for c in XCardReader(text)] == ["x"]


def test_read_from_element():
    root = ET.fromstring(_xml("<fn><text>x</text></fn>"))
    assert XCardReader(root).read_next().formatted_name == "x"


def test_read_partial_birthday():
    card = XCardReader(_xml("<bday><date>--0415</date></bday>")).read_next()
    assert card.get(m.Birthday).partial == PartialDate(month=4, day=15)


def test_read_extension_property():
    reader = XCardReader(_xml("<x-custom><unknown>v</unknown></x-custom>"))
    card = reader.read_next()
    raw = card.extended("X-CUSTOM")[0]
    assert raw.value == "v"
    assert raw.data_type is None
    assert reader.warnings == []


def test_read_foreign_element_as_xml_property():
    card = XCardReader(_xml(
        "<fn><text>x</text></fn>",
        '<foo xmlns="urn:example">bar</foo>',
    )).read_next()
    xml = card.get(m.Xml)
    assert "urn:example" in xml.value
    assert "bar" in xml.value


def test_unparseable_value_kept_as_xml():
    reader = XCardReader(_xml("<bday><integer>5</integer></bday>"))
    card = reader.read_next()
    assert card.get(m.Birthday) is None
    assert "integer" in card.get(m.Xml).value
    assert len(reader.warnings) == 1


# ── Writing ────────────────────────────────────────────────────────────────────

def test_write_basic():
    email = m.Email("a@example.com")
    email.parameters.pref = 1
    text, _ = _write(_card(m.FormattedName("John"), email))
    assert text.startswith(f'<vcards xmlns="{XCARD_NAMESPACE}"><vcard>')
    assert "<fn><text>John</text></fn>" in text
    assert "<email><parameters><pref><integer>1</integer></pref></parameters><text>a@example.com</text></email>" in text


def test_write_groups_share_element():
    tel = m.Telephone("1", group="item1")
    label = m.Note("office", group="item1")
    text, _ = _write(_card(tel, label))
    assert text.count('<group name="item1">') == 1
    assert '<group name="item1"><tel><text>1</text></tel><note><text>office</text></note></group>' in text


def test_write_groups_roundtrip():
    text, _ = _write(_card(m.FormattedName("x"), m.Telephone("1", group="item1")))
    card = XCardReader(text).read_next()
    assert card.get(m.Telephone).group == "item1"
    assert card.get(m.FormattedName).group is None


def test_write_always_40():
    text, writer = _write(_card(m.FormattedName("x"), m.Label("PO Box 1"), version=V30))
    assert "label" not in text
    assert len(writer.warnings) == 1


def test_write_prodid():
    text, _ = _write(_card(m.FormattedName("x")), add_prodid=True)
    assert "<prodid><text>-//vcard-marshal//vcard-marshal 0.1//EN</text></prodid>" in text


def test_write_xml_property():
    text, writer = _write(_card(m.Xml('<foo xmlns="urn:example">bar</foo>')))
    card = XCardReader(text).read_next()
    assert "bar" in card.get(m.Xml).value
    assert writer.warnings == []


def test_write_xml_property_without_namespace_skipped():
    text, writer = _write(_card(m.FormattedName("x"), m.Xml("<foo>bar</foo>")))
    assert "foo" not in text
    assert len(writer.warnings) == 1


def test_roundtrip():
    adr = m.Address(street="1 Main St", locality="Springfield")
    adr.parameters.add_type("home")
    original = _card(
        m.FormattedName("John Doe"),
        m.StructuredName(family="Doe", given="John", suffixes=["Jr."]),
        adr,
        m.Categories(["a", "b"]),
        m.Birthday(partial=PartialDate(month=4, day=15)),
        m.Geo.of(37.386013, -122.082932),
        m.RawProperty(name="X-CUSTOM", value="v"),
    )
    text, _ = _write(original)
    card = XCardReader(text).read_next()
    assert card.formatted_name == "John Doe"
    assert card.get(m.StructuredName).suffixes == ["Jr."]
    assert card.get(m.Address).street == "1 Main St"
    assert card.get(m.Address).types == ["home"]
    assert card.get(m.Categories).values == ["a", "b"]
    assert card.get(m.Birthday).partial.day == 15
    assert card.get(m.Geo).latitude == 37.386013
    assert card.extended("X-CUSTOM")[0].value == "v"


def test_indent():
    text, _ = _write(_card(m.FormattedName("x")))
    writer = XCardWriter(add_prodid=False)
    writer.write(_card(m.FormattedName("x")))
    assert "\n" not in text
    assert "\n  <vcard>" in writer.getvalue(indent=True)
