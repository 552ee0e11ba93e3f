"""Plain-text vCards: reading, writing and the version policy."""
from __future__ import annotations

import io
from datetime import date

import pytest

from vcard_marshal import model as m
from vcard_marshal.model import Card
from vcard_marshal.parameters import Parameters
from vcard_marshal.scribes import TextScribe
from vcard_marshal.stream import PRODUCT_ID
from vcard_marshal.text import VCardReader, VCardWriter, parse_line, write_line
from vcard_marshal.versions import VCardVersion

V21, V30, V40 = VCardVersion.V2_1, VCardVersion.V3_0, VCardVersion.V4_0


# ── helpers ────────────────────────────────────────────────────────────────────

def _vcf(*lines: str, version: str | None = "3.0") -> str:
    head = ["BEGIN:VCARD"] + ([f"VERSION:{version}"] if version else [])
    return "\r\n".join(head + list(lines) + ["END:VCARD"]) + "\r\n"


def _read_one(text: str) -> tuple[Card, list[str]]:
    reader = VCardReader(text)
    card = reader.read_next()
    assert card is not None
    return card, reader.warnings


def _write(card: Card, version: VCardVersion | None = None, **kwargs) -> str:
    kwargs.setdefault("add_prodid", False)
    writer = VCardWriter(version=version, **kwargs)
    writer.write(card)
    return writer.getvalue()


def _card(*props: m.Property, version: VCardVersion = V40) -> Card:
    card = Card(version)
    for p in props:
        card.add(p)
    return card


class Mood(m.TextProperty):
    pass


class MoodScribe(TextScribe):
    def __init__(self):
        super().__init__(Mood, "X-MOOD")


# ── Line parsing ───────────────────────────────────────────────────────────────

def test_parse_line_group_and_params():
    raw = parse_line('item1.ADR;TYPE=home,work;LABEL="a;b":;;x', V30)
    assert raw.group == "item1"
    assert raw.name == "ADR"
    assert raw.parameters.get_all("TYPE") == ["home", "work"]
    assert raw.parameters.get("LABEL") == "a;b"
    assert raw.value == ";;x"


def test_parse_line_21_nameless_params():
    raw = parse_line("TEL;WORK;VOICE:123", V21)
    assert raw.parameters.get_all(None) == ["WORK", "VOICE"]


def test_parse_line_caret_decoding():
    raw = parse_line("FN;X-NOTE=a^'b^'^nc:John", V40)
    assert raw.parameters.get("X-NOTE") == "a\"b\"\nc"
    raw = parse_line("FN;X-NOTE=a^nb:John", V40, caret_decoding=False)
    assert raw.parameters.get("X-NOTE") == "a^nb"


def test_parse_line_malformed():
    with pytest.raises(ValueError):
        parse_line("no colon here")
    with pytest.raises(ValueError):
        parse_line(":value")


def test_write_line_quotes_special_values():
    params = Parameters([("LABEL", "a;b")])
    line, qp = write_line("ADR", ";;x", parameters=params, version=V40)
    assert line == 'ADR;LABEL="a;b":;;x'
    assert not qp


def test_write_line_21_newlines_use_quoted_printable():
    line, qp = write_line("NOTE", "a\nb", version=V21)
    assert qp
    assert line == "NOTE;ENCODING=QUOTED-PRINTABLE;CHARSET=UTF-8:a=0Ab"


# ── Reading ────────────────────────────────────────────────────────────────────

def test_read_basic_30():
    card, warnings = _read_one(_vcf(
        "FN:John Doe",
        "N:Doe;John;;;",
        "TEL;TYPE=work,voice:+1 555 0100",
        "item1.URL:http://example.com",
        "X-CUSTOM:abc",
    ))
    assert card.version is V30
    assert card.formatted_name == "John Doe"
    assert card.get(m.StructuredName).family == "Doe"
    assert card.get(m.Telephone).types == ["work", "voice"]
    assert card.get(m.Url).group == "item1"
    assert card.extended("X-CUSTOM")[0].value == "abc"
    assert warnings == []


def test_read_21_positional_params_and_quoted_printable():
    card, warnings = _read_one(_vcf(
        "TEL;WORK;VOICE:123",
        "NOTE;ENCODING=QUOTED-PRINTABLE;CHARSET=ISO-8859-1:caf=E9",
        version="2.1",
    ))
    assert card.get(m.Telephone).types == ["WORK", "VOICE"]
    note = card.get(m.Note)
    assert note.value == "café"
    assert "ENCODING" not in note.parameters
    assert "CHARSET" not in note.parameters
    assert warnings == []


def test_read_21_nameless_encoding():
    card, _ = _read_one(_vcf("NOTE;QUOTED-PRINTABLE:a=3Db", version="2.1"))
    assert card.get(m.Note).value == "a=b"


def test_read_unknown_charset_warns():
    card, warnings = _read_one(_vcf(
        "NOTE;ENCODING=QUOTED-PRINTABLE;CHARSET=bogus:caf=C3=A9", version="2.1",
    ))
    assert card.get(m.Note).value == "café"
    assert any("CHARSET" in w for w in warnings)


def test_read_unknown_property_warns():
    card, warnings = _read_one(_vcf("FN:x", "FOO:bar"))
    assert card.extended("FOO")[0].value == "bar"
    assert len(warnings) == 1
    assert "FOO property" in warnings[0]
    assert warnings[0].startswith("Line 4")


def test_read_missing_version():
    card, warnings = _read_one(_vcf("FN:x", version=None))
    assert card.version is V40
    assert any("VERSION" in w for w in warnings)


def test_read_missing_end():
    card, warnings = _read_one("BEGIN:VCARD\r\nVERSION:3.0\r\nFN:x\r\n")
    assert card.formatted_name == "x"
    assert any("END:VCARD" in w for w in warnings)


def test_read_skips_malformed_line():
    card, warnings = _read_one(_vcf("FN:x", "garbage line"))
    assert card.formatted_name == "x"
    assert any("malformed" in w for w in warnings)


def test_unparseable_value_kept_raw():
    card, warnings = _read_one(_vcf("BDAY:not a date"))
    raw = card.extended("BDAY")
    assert raw and raw[0].value == "not a date"
    assert card.get(m.Birthday) is None
    assert warnings


def test_read_all_and_iteration():
    text = _vcf("FN:a") + _vcf("FN:b", "FOO:x")
    reader = VCardReader(text)
    first = reader.read_next()
    assert first.formatted_name == "a" and reader.warnings == []
    second = reader.read_next()
    assert second.formatted_name == "b" and len(reader.warnings) == 1
    assert reader.read_next() is None
    assert [c.formatted_name for c in VCardReader(text)] == ["a", "b"]


def test_labels_attached_to_matching_address():
    card, _ = _read_one(_vcf(
        "ADR;TYPE=home:;;1 Main St;Springfield;;;",
        "LABEL;TYPE=home:1 Main St\\nSpringfield",
        "LABEL;TYPE=work:Elsewhere",
    ))
    adr = card.get(m.Address)
    assert adr.label == "1 Main St\nSpringfield"
    assert [label.value for label in card.orphaned_labels] == ["Elsewhere"]
    assert card.get(m.Label) is None


def test_read_closed_stream_raises_oserror():
    stream = io.StringIO(_vcf("FN:x"))
    stream.close()
    with pytest.raises(OSError):
        VCardReader(stream).read_next()


def test_custom_scribe_on_reader():
    reader = VCardReader(_vcf("X-MOOD:happy"))
    reader.register_scribe(MoodScribe())
    card = reader.read_next()
    assert card.get(Mood).value == "happy"


# ── Writing ────────────────────────────────────────────────────────────────────

def test_write_minimal_30():
    text = _write(_card(m.FormattedName("John Doe"), version=V30))
    assert text == "BEGIN:VCARD\r\nVERSION:3.0\r\nFN:John Doe\r\nEND:VCARD\r\n"


def test_address_line_survives_read_and_write():
    line = "ADR;TYPE=home:;;123 Main St.;Austin;TX;12345;"
    card, warnings = _read_one(_vcf(line, version="4.0"))
    assert warnings == []
    assert _write(card) == f"BEGIN:VCARD\r\nVERSION:4.0\r\n{line}\r\nEND:VCARD\r\n"


def test_write_uses_card_version_when_none_given():
    writer = VCardWriter(add_prodid=False)
    writer.write_all([_card(m.FormattedName("a"), version=V21), _card(m.FormattedName("b"))])
    text = writer.getvalue()
    assert "VERSION:2.1" in text
    assert "VERSION:4.0" in text


def test_write_group_and_params():
    tel = m.Telephone("+1 555 0100", group="item1")
    tel.parameters.put_all("TYPE", ["work", "voice"])
    text = _write(_card(tel), V30)
    assert "item1.TEL;TYPE=work,voice:+1 555 0100\r\n" in text


def test_write_folds_long_lines():
    note = "x" * 200
    text = _write(_card(m.Note(note)), V40)
    assert all(len(line) <= 75 for line in text.split("\r\n"))
    card, _ = _read_one(text)
    assert card.get(m.Note).value == note


def test_fold_width_none_disables_folding():
    text = _write(_card(m.Note("x" * 200)), V40, fold_width=None)
    assert "NOTE:" + "x" * 200 + "\r\n" in text


def test_invalid_fold_width():
    with pytest.raises(ValueError):
        VCardWriter(fold_width=0)


def test_write_closed_stream_raises_oserror():
    out = io.StringIO()
    out.close()
    with pytest.raises(OSError):
        VCardWriter(out).write(_card(m.FormattedName("x")))


def test_write_21_newlines_roundtrip():
    text = _write(_card(m.Note("line one\nline two")), V21)
    assert "NOTE;ENCODING=QUOTED-PRINTABLE;CHARSET=UTF-8:line one=0Aline two" in text
    card, _ = _read_one(text)
    assert card.get(m.Note).value == "line one\nline two"


def test_write_value_parameter_only_when_not_default():
    text = _write(_card(
        m.Birthday(date=date(1980, 3, 15)),
        m.Anniversary(text="circa 1800"),
    ), V40)
    assert "BDAY:19800315\r\n" in text
    assert "ANNIVERSARY;VALUE=text:circa 1800\r\n" in text


def test_caret_encoding_roundtrip():
    fn = m.FormattedName("John")
    fn.parameters.put("X-NOTE", 'a "b"\nc')
    text = _write(_card(fn), V40, caret_encoding=True)
    assert "FN;X-NOTE=a ^'b^'^nc:John" in text
    card, _ = _read_one(text)
    assert card.get(m.FormattedName).parameters.get("X-NOTE") == 'a "b"\nc'


def test_parameter_values_sanitized_without_caret_encoding():
    fn = m.FormattedName("John")
    fn.parameters.put("X-NOTE", 'a "b"\nc')
    card, _ = _read_one(_write(_card(fn), V40))
    assert card.get(m.FormattedName).parameters.get("X-NOTE") == "a 'b'\nc"


def test_custom_scribe_on_writer():
    card = _card(Mood("happy"))
    writer = VCardWriter(add_prodid=False)
    writer.write(card)
    assert "X-MOOD" not in writer.getvalue()
    assert any("No scribe" in w for w in writer.warnings)

    writer = VCardWriter(add_prodid=False)
    writer.register_scribe(MoodScribe())
    writer.write(card)
    assert "X-MOOD:happy\r\n" in writer.getvalue()


# ── Version policy ─────────────────────────────────────────────────────────────

def test_prodid_per_version():
    card = _card(m.FormattedName("x"))
    assert f"\r\nPRODID:{PRODUCT_ID}\r\n" in _write(card, V30, add_prodid=True)
    assert f"\r\nX-PRODID:{PRODUCT_ID}\r\n" in _write(card, V21, add_prodid=True)


def test_existing_prodid_replaced():
    card = _card(m.FormattedName("x"), m.ProductId("-//Other//EN"))
    text = _write(card, V40, add_prodid=True)
    assert text.count("PRODID") == 1
    assert "-//Other//EN" not in text


def test_unsupported_property_dropped_with_warning():
    writer = VCardWriter(version=V30, add_prodid=False)
    writer.write(_card(m.FormattedName("x"), m.Kind("individual")))
    assert "KIND" not in writer.getvalue()
    assert len(writer.warnings) == 1
    assert "4.0" in writer.warnings[0]


def test_version_strict_off_keeps_property():
    text = _write(_card(m.Kind("individual")), V30, version_strict=False)
    assert "KIND:individual" in text


def test_member_requires_group_kind():
    card = _card(m.Member("urn:uuid:1"), m.Member("urn:uuid:2"))
    writer = VCardWriter(version=V40, add_prodid=False)
    writer.write(card)
    assert "MEMBER" not in writer.getvalue()
    assert len(writer.warnings) == 1

    card.add(m.Kind("group"))
    writer = VCardWriter(version=V40, add_prodid=False)
    writer.write(card)
    assert writer.getvalue().count("MEMBER:") == 2
    assert writer.warnings == []


def test_address_label_by_version():
    adr = m.Address(street="1 Main St")
    adr.parameters.add_type("home")
    adr.label = "1 Main St\nSpringfield"
    card = _card(adr)

    text30 = _write(card, V30)
    assert "ADR;TYPE=home:;;1 Main St\r\n" in text30
    assert "LABEL;TYPE=home:1 Main St\\nSpringfield\r\n" in text30
    assert _read_one(text30)[0].get(m.Address).label == "1 Main St\nSpringfield"

    text40 = _write(card, V40)
    assert "LABEL=1 Main St\\nSpringfield" in text40
    assert "\r\nLABEL" not in text40


def test_orphaned_labels_written_before_40():
    card = _card(m.FormattedName("x"))
    card.orphaned_labels.append(m.Label("PO Box 1"))
    assert "LABEL:PO Box 1\r\n" in _write(card, V30)
    assert "LABEL" not in _write(card, V40)


# ── Embedded cards ─────────────────────────────────────────────────────────────

def _boss_with_agent(version: VCardVersion) -> Card:
    assistant = _card(m.FormattedName("Assistant"), version=version)
    return _card(m.FormattedName("Boss"), m.Agent(vcard=assistant), version=version)


def test_agent_30_is_escaped_value():
    text = _write(_boss_with_agent(V30), V30)
    assert "AGENT:BEGIN:VCARD\\nVERSION:3.0\\nFN:Assistant\\nEND:VCARD\\n\r\n" in text
    card, warnings = _read_one(text)
    assert card.formatted_name == "Boss"
    assert card.get(m.Agent).vcard.formatted_name == "Assistant"
    assert warnings == []


def test_agent_21_is_inline():
    text = _write(_boss_with_agent(V21), V21)
    assert "AGENT:\r\nBEGIN:VCARD\r\nVERSION:2.1\r\nFN:Assistant\r\nEND:VCARD\r\nEND:VCARD\r\n" in text
    card, warnings = _read_one(text)
    assert card.formatted_name == "Boss"
    nested = card.get(m.Agent).vcard
    assert nested.version is V21
    assert nested.formatted_name == "Assistant"
    assert warnings == []


def test_agent_url():
    card, _ = _read_one(_vcf("AGENT;VALUE=uri:http://example.com/agent.vcf"))
    assert card.get(m.Agent).url == "http://example.com/agent.vcf"
