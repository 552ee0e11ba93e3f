from __future__ import annotations

from datetime import date

from vcard_marshal import model as m
from vcard_marshal.hcard import HCardReader, HCardWriter
from vcard_marshal.model import Card
from vcard_marshal.versions import VCardVersion

V30, V40 = VCardVersion.V3_0, VCardVersion.V4_0

PAGE = """
<html><body>
<h1>Staff</h1>
<div class="vcard">
  <span class="fn">John Doe</span>
  <div class="n"><span class="family-name">Doe</span> <span class="given-name">John</span></div>
  <a class="url" href="mailto:john@example.com">Email me</a>
  <a class="email" href="mailto:j2@example.com">j2@example.com</a>
  <span class="tel"><span class="type">Work</span> <span class="value">+1 555 0100</span></span>
  <a class="url" href="tel:+15550199">Call</a>
  <a class="url" href="/about">Home page</a>
  <span class="category">friends</span>, <span class="category">work</span>
  <div class="adr"><span class="street-address">1 Main St</span> <span class="locality">Springfield</span></div>
  <img class="photo" src="me.jpg">
  <time class="bday" datetime="1980-03-15">March 15th</time>
  <span class="x-mood">happy</span>
  <span class="unknown-thing">ignored</span>
  <div class="agent vcard"><span class="fn">Assistant</span></div>
</div>
<div class="vcard"><span class="fn">Jane</span></div>
</body></html>
"""


# ── helpers ────────────────────────────────────────────────────────────────────

def _first(html: str = PAGE) -> tuple[Card, HCardReader]:
    reader = HCardReader(html, page_url="http://example.com/people/")
    return reader.read_next(), reader


def _html(*props: m.Property) -> str:
    card = Card(V40)
    for p in props:
        card.add(p)
    writer = HCardWriter()
    writer.write(card)
    return writer.getvalue()


# ── Reading ────────────────────────────────────────────────────────────────────

def test_outermost_cards_only():
    reader = HCardReader(PAGE)
    assert [c.formatted_name for c in reader] == ["John Doe", "Jane"]


def test_cards_are_30():
    card, reader = _first()
    assert card.version is V30
    assert reader.warnings == []


def test_name():
    card, _ = _first()
    n = card.get(m.StructuredName)
    assert (n.family, n.given) == ("Doe", "John")


def test_url_links_become_email_and_tel():
    card, _ = _first()
    assert [e.value for e in card.get_all(m.Email)] == ["john@example.com", "j2@example.com"]
    assert [t.value for t in card.get_all(m.Telephone)] == ["+1 555 0100", "+15550199"]
    assert card.get(m.Url).value == "http://example.com/about"


def test_telephone_types_lowercased():
    card, _ = _first()
    assert card.get(m.Telephone).types == ["work"]


def test_categories_merged():
    card, _ = _first()
    assert len(card.get_all(m.Categories)) == 1
    assert card.get(m.Categories).values == ["friends", "work"]


def test_address():
    card, _ = _first()
    adr = card.get(m.Address)
    assert adr.street == "1 Main St"
    assert adr.locality == "Springfield"


def test_photo_url_resolved():
    card, _ = _first()
    assert card.get(m.Photo).url == "http://example.com/people/me.jpg"


def test_birthday_from_datetime_attribute():
    card, _ = _first()
    assert card.get(m.Birthday).date == date(1980, 3, 15)


def test_extension_class_kept():
    card, _ = _first()
    assert card.extended("X-MOOD")[0].value == "happy"
    assert card.extended("UNKNOWN-THING") == []


def test_nested_agent_card():
    card, _ = _first()
    agent = card.get(m.Agent)
    assert agent.vcard.formatted_name == "Assistant"
    assert card.formatted_name == "John Doe"
    assert len(card.get_all(m.FormattedName)) == 1


def test_label_attached_to_address():
    html = (
        '<div class="vcard"><span class="fn">x</span>'
        '<div class="adr"><span class="type">home</span><span class="street-address">1 Main St</span></div>'
        '<div class="label"><span class="type">home</span>1 Main St<br>Springfield</div></div>'
    )
    card, _ = _first(html)
    assert card.get(m.Address).label == "1 Main St\nSpringfield"
    assert card.orphaned_labels == []


# ── Writing ────────────────────────────────────────────────────────────────────

def test_write_fragment():
    tel = m.Telephone("+1 555")
    tel.parameters.add_type("work")
    html = _html(m.FormattedName("John"), m.Email("j@example.com"), tel)
    assert html.startswith('<div class="vcard">')
    assert '<span class="fn">John</span>' in html
    assert '<a class="email" href="mailto:j@example.com">j@example.com</a>' in html
    assert '<span class="tel"><span class="type">work</span>+1 555</span>' in html


def test_write_no_prodid_by_default():
    assert "prodid" not in _html(m.FormattedName("x"))


def test_write_applies_30_policy():
    card = Card(V40)
    card.add(m.FormattedName("x"))
    card.add(m.Kind("individual"))
    writer = HCardWriter()
    writer.write(card)
    assert "kind" not in writer.getvalue()
    assert len(writer.warnings) == 1


def test_write_one_fragment_per_card():
    writer = HCardWriter()
    for name in ("a", "b"):
        card = Card(V30)
        card.add(m.FormattedName(name))
        writer.write(card)
    assert len(writer.fragments) == 2
    assert [c.formatted_name for c in HCardReader(writer.getvalue())] == ["a", "b"]


def test_roundtrip():
    nested = Card(V30)
    nested.add(m.FormattedName("Assistant"))
    tel = m.Telephone("+1 555")
    tel.parameters.add_type("work")
    html = _html(
        m.FormattedName("John"),
        m.StructuredName(family="Doe", given="John"),
        m.Email("j@example.com"),
        tel,
        m.Categories(["a", "b"]),
        m.Birthday(date=date(1980, 3, 15)),
        m.Agent(vcard=nested),
    )
    assert 'class="agent vcard"' in html
    card = HCardReader(html).read_next()
    assert card.formatted_name == "John"
    assert card.get(m.StructuredName).family == "Doe"
    assert card.get(m.Email).value == "j@example.com"
    assert card.get(m.Telephone).value == "+1 555"
    assert card.get(m.Telephone).types == ["work"]
    assert card.get(m.Categories).values == ["a", "b"]
    assert card.get(m.Birthday).date == date(1980, 3, 15)
    assert card.get(m.Agent).vcard.formatted_name == "Assistant"
