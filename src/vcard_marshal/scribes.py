from __future__ import annotations

import base64
import binascii
import re
import xml.etree.ElementTree as ET
from datetime import UTC, date, datetime, time

from . import model as m
from .dates import DateFormat, PartialDate, UtcOffset, parse_date
from .linecodec import (
    escape_text,
    parse_structured,
    split_escaped,
    unescape_text,
    write_list,
    write_structured,
)
from .model import Card, MediaType, Property
from .parameters import Parameters
from .scribe import (
    CannotParse,
    EmbeddedCard,
    Scribe,
    Skip,
    StructuredIterator,
    WriteContext,
    handle_pref,
    split_list,
    structured_component,
)
from .uris import DataUri, GeoUri, format_decimal, parse_decimal
from .versions import (
    DATE,
    DATE_AND_OR_TIME,
    DATE_TIME,
    TEXT,
    TIME,
    TIMESTAMP,
    URI,
    URL,
    UTC_OFFSET,
    DataType,
    VCardVersion,
)
from .wire import HCardElement, JCardValue, XCardElement, namespace_of

V21, V30, V40 = VCardVersion.V2_1, VCardVersion.V3_0, VCardVersion.V4_0


def _html_element(prop: Property, tag: str, css_class: str) -> HCardElement:
    el = HCardElement.create(tag, css_class)
    for t in prop.parameters.types:
        el.append_child("span", "type", t)
    return el


def element_to_string(element: ET.Element) -> str:
    """Serialize ``element`` without the text that follows it."""
    tail, element.tail = element.tail, None
    try:
        return ET.tostring(element, encoding="unicode")
    finally:
        element.tail = tail


# ── Plain values ───────────────────────────────────────────────────────────────

class ScalarScribe(Scribe):
    """A property whose value is a single string.

    ``escaped`` controls backslash escaping in the text format; URIs are
    written as-is.
    """

    escaped = True
    html_tag = "span"

    def __init__(self, kind, name, *, data_type: DataType | None = TEXT, pref: bool = False):
        super().__init__(kind, name)
        self._default = data_type
        self._pref = pref

    def default_data_type(self, version):
        return self._default

    def _prepare_parameters(self, prop, params, version, card):
        if self._pref:
            handle_pref(prop, params, version, card)

    # hooks on the unescaped value
    def _write_value(self, prop) -> str | None:
        return prop.value

    def _parse_value(self, value: str, data_type, version, params, warnings):
        return self.kind(value)

    def _write_text(self, prop, context):
        value = self._write_value(prop)
        if value is None:
            return Skip("property has no value")
        if not self.escaped:
            return value
        return escape_text(value, newlines=context.version is not V21)

    def _parse_text(self, value, data_type, version, params, warnings):
        if self.escaped:
            value = unescape_text(value)
        return self._parse_value(value, data_type, version, params, warnings)

    def _write_xml(self, prop, element):
        value = self._write_value(prop)
        if value is None:
            return Skip("property has no value")
        element.append(self._data_type(prop, element.version), value)
        return None

    def _parse_xml(self, element, params, warnings):
        found = element.first_any()
        if found is None:
            return CannotParse(None, "property element has no value")
        name, text = found
        data_type = None if name == "unknown" else DataType.get(name)
        return self._parse_value(text, data_type, element.version, params, warnings)

    def _write_json(self, prop):
        value = self._write_value(prop)
        if value is None:
            return Skip("property has no value")
        return JCardValue.single(value)

    def _parse_json(self, value, data_type, params, warnings):
        return self._parse_value(value.as_single(), data_type, V40, params, warnings)

    def _write_html(self, prop, version):
        value = self._write_value(prop)
        if value is None:
            return Skip("property has no value")
        el = _html_element(prop, self.html_tag, self.name.lower())
        el.append_text(value)
        return el

    def _parse_html(self, element, params, warnings):
        params.put_all("TYPE", element.types())
        return self._parse_value(element.value(), self.default_data_type(V30), V30, params, warnings)


class TextScribe(ScalarScribe):
    pass


class UriScribe(ScalarScribe):
    escaped = False
    html_tag = "a"

    def __init__(self, kind, name, **kwargs):
        kwargs.setdefault("data_type", URI)
        super().__init__(kind, name, **kwargs)

    def _write_html(self, prop, version):
        el = super()._write_html(prop, version)
        if isinstance(el, HCardElement):
            el.element.set("href", prop.value)
        return el

    def _parse_html(self, element, params, warnings):
        href = element.abs_url("href")
        if href:
            return self.kind(href)
        return super()._parse_html(element, params, warnings)


class EmailScribe(TextScribe):
    html_tag = "a"

    def __init__(self):
        super().__init__(m.Email, "EMAIL", pref=True)

    def _write_html(self, prop, version):
        el = super()._write_html(prop, version)
        if isinstance(el, HCardElement):
            el.element.set("href", f"mailto:{prop.value}")
        return el

    def _parse_html(self, element, params, warnings):
        params.put_all("TYPE", element.types())
        href = element.attr("href")
        if re.match(r"(?i)mailto:", href):
            return m.Email(href[len("mailto:"):].split("?", 1)[0])
        return m.Email(element.value())


class TelephoneScribe(TextScribe):
    def __init__(self):
        super().__init__(m.Telephone, "TEL", pref=True)

    def _parse_html(self, element, params, warnings):
        params.put_all("TYPE", element.types())
        href = element.attr("href")
        if re.match(r"(?i)tel:", href):
            return m.Telephone(href[len("tel:"):])
        return m.Telephone(element.value())


# ── Lists ──────────────────────────────────────────────────────────────────────

class ListScribe(Scribe):
    """Comma-separated values, e.g. ``CATEGORIES:work,friends``."""

    def _write_text(self, prop, context):
        return write_list(prop.values)

    def _parse_text(self, value, data_type, version, params, warnings):
        return self.kind(split_list(value))

    def _write_xml(self, prop, element):
        element.append_all(TEXT, prop.values)

    def _parse_xml(self, element, params, warnings):
        return self.kind(element.all(TEXT))

    def _write_json(self, prop):
        return JCardValue.multi(prop.values) if prop.values else JCardValue.single("")

    def _parse_json(self, value, data_type, params, warnings):
        return self.kind([v for v in value.as_multi() if v])

    def _write_html(self, prop, version):
        el = HCardElement.create("span", self.name.lower())
        for i, v in enumerate(prop.values):
            if i:
                el.append_text(", ")
            el.append_child("span", "value", v)
        return el

    def _parse_html(self, element, params, warnings):
        values = element.all_values("value")
        if not values:
            values = [v.strip() for v in element.value().split(",") if v.strip()]
        return self.kind(values)


# ── Structured values ──────────────────────────────────────────────────────────

class StructuredNameScribe(Scribe):
    _XML = ("surname", "given", "additional", "prefix", "suffix")
    _HTML = ("family-name", "given-name", "additional-name", "honorific-prefix", "honorific-suffix")

    def __init__(self):
        super().__init__(m.StructuredName, "N")

    @staticmethod
    def _components(prop: m.StructuredName) -> list[list[str]]:
        return [
            structured_component(prop.family),
            structured_component(prop.given),
            list(prop.additional),
            list(prop.prefixes),
            list(prop.suffixes),
        ]

    @staticmethod
    def _from_components(components: list[list[str]]) -> m.StructuredName:
        it = StructuredIterator(components)
        return m.StructuredName(
            family=it.next_value(),
            given=it.next_value(),
            additional=it.next_list(),
            prefixes=it.next_list(),
            suffixes=it.next_list(),
        )

    def _write_text(self, prop, context):
        return write_structured(self._components(prop), context.trailing_semicolons)

    def _parse_text(self, value, data_type, version, params, warnings):
        return self._from_components(parse_structured(value))

    def _write_xml(self, prop, element):
        for name, values in zip(self._XML, self._components(prop)):
            element.append_all(name, values or [""])

    def _parse_xml(self, element, params, warnings):
        return self._from_components([[v for v in element.all(n) if v] for n in self._XML])

    def _write_json(self, prop):
        return JCardValue.structured(self._components(prop))

    def _parse_json(self, value, data_type, params, warnings):
        return self._from_components(value.as_structured())

    def _write_html(self, prop, version):
        el = HCardElement.create("span", "n")
        first = True
        for css, values in zip(self._HTML, self._components(prop)):
            for v in values:
                if not first:
                    el.append_text(" ")
                el.append_child("span", css, v)
                first = False
        return el

    def _parse_html(self, element, params, warnings):
        return m.StructuredName(
            family=element.first_value("family-name"),
            given=element.first_value("given-name"),
            additional=element.all_values("additional-name"),
            prefixes=element.all_values("honorific-prefix"),
            suffixes=element.all_values("honorific-suffix"),
        )


class AddressScribe(Scribe):
    _FIELDS = ("po_box", "extended", "street", "locality", "region", "postal_code", "country")
    _XML = ("pobox", "ext", "street", "locality", "region", "code", "country")
    _HTML = (
        "post-office-box", "extended-address", "street-address", "locality",
        "region", "postal-code", "country-name",
    )

    def __init__(self):
        super().__init__(m.Address, "ADR")

    def _prepare_parameters(self, prop, params, version, card):
        handle_pref(prop, params, version, card)
        if version is not V40:
            # written as a separate LABEL property instead
            params.label = None

    def _components(self, prop: m.Address) -> list[list[str]]:
        return [structured_component(getattr(prop, f)) for f in self._FIELDS]

    def _from_components(self, components: list[list[str]]) -> m.Address:
        it = StructuredIterator(components)
        return m.Address(**{f: it.next_value() for f in self._FIELDS})

    def _write_text(self, prop, context):
        return write_structured(self._components(prop), context.trailing_semicolons)

    def _parse_text(self, value, data_type, version, params, warnings):
        return self._from_components(parse_structured(value))

    def _write_xml(self, prop, element):
        for name, values in zip(self._XML, self._components(prop)):
            element.append_all(name, values or [""])

    def _parse_xml(self, element, params, warnings):
        return self._from_components([[v for v in element.all(n) if v] for n in self._XML])

    def _write_json(self, prop):
        return JCardValue.structured(self._components(prop))

    def _parse_json(self, value, data_type, params, warnings):
        return self._from_components(value.as_structured())

    def _write_html(self, prop, version):
        el = _html_element(prop, "div", "adr")
        for css, field_name in zip(self._HTML, self._FIELDS):
            value = getattr(prop, field_name)
            if value:
                el.append_child("div", css, value)
        return el

    def _parse_html(self, element, params, warnings):
        params.put_all("TYPE", element.types())
        return m.Address(**{
            f: element.first_value(css) for f, css in zip(self._FIELDS, self._HTML)
        })


class OrganizationScribe(Scribe):
    def __init__(self):
        super().__init__(m.Organization, "ORG")

    def _write_text(self, prop, context):
        return ";".join(escape_text(v) for v in prop.values)

    def _parse_text(self, value, data_type, version, params, warnings):
        return m.Organization([v for v in split_escaped(value, ";")] if value else [])

    def _write_xml(self, prop, element):
        element.append_all(TEXT, prop.values)

    def _parse_xml(self, element, params, warnings):
        return m.Organization(element.all(TEXT))

    def _write_json(self, prop):
        if len(prop.values) == 1:
            return JCardValue.single(prop.values[0])
        return JCardValue.structured([[v] if v else [] for v in prop.values])

    def _parse_json(self, value, data_type, params, warnings):
        return m.Organization([",".join(c) for c in value.as_structured()])

    def _write_html(self, prop, version):
        el = HCardElement.create("span", "org")
        for i, v in enumerate(prop.values):
            if i:
                el.append_text(", ")
            el.append_child("span", "organization-name" if i == 0 else "organization-unit", v)
        return el

    def _parse_html(self, element, params, warnings):
        name = element.first_value("organization-name")
        if name is None:
            return m.Organization([element.value()])
        return m.Organization([name, *element.all_values("organization-unit")])


# ── Dates and times ────────────────────────────────────────────────────────────

def _date_format(value: date | datetime, extended: bool, utc: bool = False) -> DateFormat:
    if isinstance(value, datetime):
        if utc:
            return DateFormat.UTC_DATE_TIME_EXTENDED if extended else DateFormat.UTC_DATE_TIME_BASIC
        return DateFormat.DATE_TIME_EXTENDED if extended else DateFormat.DATE_TIME_BASIC
    return DateFormat.DATE_EXTENDED if extended else DateFormat.DATE_BASIC


class DateOrTimeScribe(Scribe):
    """BDAY, ANNIVERSARY and DEATHDATE.

    A full date/time is legal everywhere. Partial dates and free text only
    exist from 4.0 on; older versions report such values as unparseable.
    """

    def default_data_type(self, version):
        return DATE_AND_OR_TIME if version is V40 else None

    def _data_type(self, prop, version):
        if version is not V40:
            return None
        if prop.text is not None:
            return TEXT
        if prop.date is not None:
            return DATE_TIME if isinstance(prop.date, datetime) else DATE
        if prop.partial is not None:
            return DATE_TIME if prop.partial.has_time_component else DATE
        return DATE_AND_OR_TIME

    def _write_text(self, prop, context):
        version = context.version
        if prop.date is not None:
            return _date_format(prop.date, extended=version is V30).format(prop.date)
        if version is V40:
            if prop.text is not None:
                return escape_text(prop.text)
            if prop.partial is not None:
                return prop.partial.to_iso8601(False)
        return ""

    def _parse_text(self, value, data_type, version, params, warnings):
        value = unescape_text(value)
        if version is V40 and data_type == TEXT:
            return self.kind(text=value)
        return self._parse(value, version, warnings)

    def _parse(self, value: str, version: VCardVersion, warnings: list[str]):
        parsed = None
        try:
            parsed = parse_date(value)
        except ValueError:
            pass
        if isinstance(parsed, (date, datetime)):
            return self.kind(date=parsed)

        if version is not V40:
            return CannotParse(value, "Date string could not be parsed.")
        try:
            return self.kind(partial=PartialDate.parse(value))
        except ValueError:
            pass
        if isinstance(parsed, time):
            return self.kind(partial=PartialDate.from_time(parsed))
        warnings.append("Date string could not be parsed as a date or partial date; saved as text.")
        return self.kind(text=value)

    def _write_xml(self, prop, element):
        if prop.date is not None:
            data_type = DATE_TIME if isinstance(prop.date, datetime) else DATE
            element.append(data_type, _date_format(prop.date, extended=False).format(prop.date))
        elif prop.partial is not None:
            p = prop.partial
            if p.has_time_component and p.has_date_component:
                data_type = DATE_TIME
            elif p.has_time_component:
                data_type = TIME
            elif p.has_date_component:
                data_type = DATE
            else:
                data_type = DATE_AND_OR_TIME
            element.append(data_type, p.to_iso8601(False))
        elif prop.text is not None:
            element.append(TEXT, prop.text)
        else:
            element.append(DATE_AND_OR_TIME, "")

    def _parse_xml(self, element, params, warnings):
        value = element.first(DATE, DATE_TIME, TIME, DATE_AND_OR_TIME)
        if value is not None:
            return self._parse(value, element.version, warnings)
        value = element.first(TEXT)
        if value is not None:
            return self.kind(text=value)
        return CannotParse(None, "Property value must be a date, date-time, time or text element.")

    def _write_json(self, prop):
        if prop.date is not None:
            return JCardValue.single(_date_format(prop.date, extended=True).format(prop.date))
        if prop.partial is not None:
            return JCardValue.single(prop.partial.to_iso8601(True))
        return JCardValue.single(prop.text or "")

    def _parse_json(self, value, data_type, params, warnings):
        text = value.as_single()
        if data_type == TEXT:
            return self.kind(text=text)
        return self._parse(text, V40, warnings)

    def _write_html(self, prop, version):
        el = HCardElement.create("time", self.name.lower())
        if prop.date is not None:
            text = _date_format(prop.date, extended=True).format(prop.date)
            el.element.set("datetime", text)
        elif prop.partial is not None:
            text = prop.partial.to_iso8601(True)
        else:
            text = prop.text or ""
        el.append_text(text)
        return el

    def _parse_html(self, element, params, warnings):
        value = element.attr("datetime") if element.tag_name == "time" else ""
        return self._parse(value or element.value(), V30, warnings)


class RevisionScribe(Scribe):
    def __init__(self):
        super().__init__(m.Revision, "REV")

    def default_data_type(self, version):
        return TIMESTAMP

    def _write_text(self, prop, context):
        if prop.timestamp is None:
            return ""
        fmt = DateFormat.UTC_DATE_TIME_EXTENDED if context.version is V30 else DateFormat.UTC_DATE_TIME_BASIC
        return fmt.format(prop.timestamp)

    def _parse_text(self, value, data_type, version, params, warnings):
        return self._parse(unescape_text(value))

    @staticmethod
    def _parse(value: str):
        if not value:
            return m.Revision()
        try:
            parsed = parse_date(value)
        except ValueError:
            return CannotParse(value, "Timestamp could not be parsed.")
        if isinstance(parsed, time):
            return CannotParse(value, "Timestamp has no date.")
        if not isinstance(parsed, datetime):
            parsed = datetime(parsed.year, parsed.month, parsed.day, tzinfo=UTC)
        return m.Revision(parsed)

    def _write_xml(self, prop, element):
        value = "" if prop.timestamp is None else DateFormat.UTC_DATE_TIME_BASIC.format(prop.timestamp)
        element.append(TIMESTAMP, value)

    def _parse_xml(self, element, params, warnings):
        value = element.first(TIMESTAMP)
        if value is None:
            return CannotParse(None, "Property value must be a timestamp element.")
        return self._parse(value)

    def _write_json(self, prop):
        if prop.timestamp is None:
            return JCardValue.single("")
        return JCardValue.single(DateFormat.UTC_DATE_TIME_EXTENDED.format(prop.timestamp))

    def _parse_json(self, value, data_type, params, warnings):
        return self._parse(value.as_single())

    def _write_html(self, prop, version):
        el = HCardElement.create("time", "rev")
        if prop.timestamp is not None:
            text = DateFormat.UTC_DATE_TIME_EXTENDED.format(prop.timestamp)
            el.element.set("datetime", text)
            el.append_text(text)
        return el

    def _parse_html(self, element, params, warnings):
        value = element.attr("datetime") if element.tag_name == "time" else ""
        return self._parse(value or element.value())


class TimezoneScribe(Scribe):
    """TZ: a UTC offset in 2.1/3.0, free text (or an offset) in 4.0."""

    def __init__(self):
        super().__init__(m.Timezone, "TZ")

    def default_data_type(self, version):
        return TEXT if version is V40 else UTC_OFFSET

    def _data_type(self, prop, version):
        if version is V21:
            return UTC_OFFSET
        if version is V30:
            return UTC_OFFSET if prop.offset is not None else TEXT
        return TEXT if prop.text is not None or prop.offset is None else UTC_OFFSET

    def _write_text(self, prop, context):
        version = context.version
        if version is V40 and prop.text is not None:
            return escape_text(prop.text)
        if prop.offset is not None:
            return prop.offset.to_string(extended=version is V30)
        if version is V21:
            return Skip("vCard 2.1 only supports UTC offsets in TZ")
        return escape_text(prop.text or "")

    def _parse_text(self, value, data_type, version, params, warnings):
        value = unescape_text(value)
        if data_type == TEXT:
            return m.Timezone(text=value)
        return self._parse_offset(value, version, warnings)

    @staticmethod
    def _parse_offset(value: str, version: VCardVersion, warnings: list[str]):
        try:
            return m.Timezone(offset=UtcOffset.parse(value))
        except ValueError:
            if version is V21:
                return CannotParse(value, "UTC offset could not be parsed.")
            warnings.append("UTC offset could not be parsed; saved as text.")
            return m.Timezone(text=value)

    def _write_xml(self, prop, element):
        if prop.text is not None:
            element.append(TEXT, prop.text)
        elif prop.offset is not None:
            element.append(UTC_OFFSET, prop.offset.to_string(False))
        else:
            element.append(TEXT, "")

    def _parse_xml(self, element, params, warnings):
        text = element.first(TEXT)
        if text is not None:
            return m.Timezone(text=text)
        offset = element.first(UTC_OFFSET)
        if offset is not None:
            return self._parse_offset(offset, V40, warnings)
        return CannotParse(None, "Property value must be a text or utc-offset element.")

    def _write_json(self, prop):
        if prop.text is not None:
            return JCardValue.single(prop.text)
        if prop.offset is not None:
            return JCardValue.single(prop.offset.to_string(True))
        return JCardValue.single("")

    def _parse_json(self, value, data_type, params, warnings):
        text = value.as_single()
        if data_type == UTC_OFFSET:
            return self._parse_offset(text, V40, warnings)
        return m.Timezone(text=text)


# ── Binary or URI ──────────────────────────────────────────────────────────────

IMAGE_TYPES = (
    MediaType("jpeg", "image/jpeg", "jpg"),
    MediaType("gif", "image/gif", "gif"),
    MediaType("png", "image/png", "png"),
    MediaType("bmp", "image/bmp", "bmp"),
)
SOUND_TYPES = (
    MediaType("wave", "audio/wav", "wav"),
    MediaType("mp3", "audio/mpeg", "mp3"),
    MediaType("ogg", "audio/ogg", "ogg"),
    MediaType("aac", "audio/aac", "aac"),
)
KEY_TYPES = (
    MediaType("pgp", "application/pgp-keys", "pgp"),
    MediaType("gpg", "application/gpg", "gpg"),
    MediaType("x509", "application/x-x509-ca-cert", "crt"),
)


def _file_extension(url: str) -> str | None:
    dot = url.rfind(".")
    if dot < 0 or dot == len(url) - 1 or url.rfind("/") > dot:
        return None
    return url[dot + 1:]


class BinaryScribe(Scribe):
    """PHOTO, LOGO, SOUND and KEY: inline data xor a URL.

    2.1 writes ``ENCODING=BASE64``, 3.0 ``ENCODING=b`` with the content type
    in TYPE; 4.0 inlines the data as a ``data:`` URI and uses MEDIATYPE.
    """

    def __init__(self, kind, name, known: tuple[MediaType, ...], html_tag: str = "object"):
        super().__init__(kind, name)
        self.known = known
        self.html_tag = html_tag

    # ── media types ─────────────────────────────────────────────────────────

    def from_type_param(self, value: str) -> MediaType:
        for mt in self.known:
            if mt.type_value and mt.type_value.lower() == value.lower():
                return mt
        if "/" in value:
            return self.from_media_type(value)
        return MediaType(value, None, None)

    def from_media_type(self, value: str) -> MediaType:
        for mt in self.known:
            if mt.media_type and mt.media_type.lower() == value.lower():
                return mt
        return MediaType(None, value, None)

    def from_extension(self, value: str) -> MediaType | None:
        for mt in self.known:
            if mt.extension and mt.extension.lower() == value.lower():
                return mt
        return None

    # ── typing and parameters ──────────────────────────────────────────────

    def default_data_type(self, version):
        return URI if version is V40 else None

    def _data_type(self, prop, version):
        if prop.url is not None:
            return URL if version is V21 else URI
        if prop.data is not None:
            return URI if version is V40 else None
        return self.default_data_type(version)

    def _prepare_parameters(self, prop, params, version, card):
        ct = prop.content_type
        type_value = None if ct is None else (ct.type_value or ct.media_type)
        if prop.url is not None:
            params.encoding = None
            if version is V40:
                params.mediatype = None if ct is None else ct.media_type
            else:
                params.replace("TYPE", type_value)
                params.mediatype = None
        elif prop.data is not None:
            params.mediatype = None
            if version is V21:
                params.encoding = "BASE64"
                params.replace("TYPE", type_value)
            elif version is V30:
                params.encoding = "b"
                params.replace("TYPE", type_value)
            else:
                params.encoding = None

    # ── values ─────────────────────────────────────────────────────────────

    def _write(self, prop, version: VCardVersion) -> str:
        if prop.url is not None:
            return prop.url
        if prop.data is not None:
            if version is V40:
                ct = prop.content_type
                media = ct.media_type if ct is not None and ct.media_type else "application/octet-stream"
                return DataUri(media, prop.data).to_string()
            return base64.b64encode(prop.data).decode("ascii")
        return ""

    def _content_type(self, value: str, params: Parameters, version: VCardVersion) -> MediaType | None:
        if version is V40:
            media = params.mediatype
            if media is not None:
                params.mediatype = None
                return self.from_media_type(media)
        else:
            types = params.types
            if types:
                params.remove("TYPE", types[0])
                return self.from_type_param(types[0])
        ext = _file_extension(value)
        return None if ext is None else self.from_extension(ext)

    def _parse(self, value: str, data_type, params: Parameters, version: VCardVersion, warnings):
        ct = self._content_type(value, params, version)
        if version is V40:
            try:
                uri = DataUri.parse(value)
            except ValueError:
                return self.kind(url=value, content_type=ct)
            return self.kind(data=uri.data, content_type=self.from_media_type(uri.content_type))

        if data_type in (URL, URI):
            return self.kind(url=value, content_type=ct)
        encoding = params.encoding
        if encoding in ("base64", "b") or not value.startswith("http"):
            params.encoding = None
            try:
                data = base64.b64decode(re.sub(r"[ \t]", "", value), validate=True)
            except binascii.Error:
                return CannotParse(value, "Property value is not valid base64.")
            return self.kind(data=data, content_type=ct)
        return self.kind(url=value, content_type=ct)

    def _write_text(self, prop, context):
        return self._write(prop, context.version)

    def _parse_text(self, value, data_type, version, params, warnings):
        return self._parse(unescape_text(value), data_type, params, version, warnings)

    def _write_xml(self, prop, element):
        element.append(URI, self._write(prop, element.version))

    def _parse_xml(self, element, params, warnings):
        value = element.first(URI)
        if value is None:
            return CannotParse(None, "Property value must be a uri element.")
        return self._parse(value, URI, params, element.version, warnings)

    def _write_json(self, prop):
        return JCardValue.single(self._write(prop, V40))

    def _parse_json(self, value, data_type, params, warnings):
        return self._parse(value.as_single(), data_type, params, V40, warnings)

    def _write_html(self, prop, version):
        el = HCardElement.create(self.html_tag, self.name.lower())
        attr = "src" if self.html_tag == "img" else "data"
        el.element.set(attr, self._write(prop, V40))
        if prop.url is not None and prop.content_type is not None and prop.content_type.media_type:
            el.element.set("type", prop.content_type.media_type)
        return el

    def _parse_html(self, element, params, warnings):
        tag = element.tag_name
        if tag == "img":
            source = element.abs_url("src")
        elif tag == "object":
            source = element.abs_url("data")
        else:
            return CannotParse(None, f"Cannot parse a {self.name} from a <{tag}> element.")
        if not source:
            return CannotParse(None, "Element has no data source.")
        try:
            uri = DataUri.parse(source)
        except ValueError:
            media = element.attr("type")
            if media:
                ct = self.from_media_type(media)
            else:
                ext = _file_extension(source)
                ct = None if ext is None else self.from_extension(ext)
            return self.kind(url=source, content_type=ct)
        return self.kind(data=uri.data, content_type=self.from_media_type(uri.content_type))


# ── Links, geo, embedded cards ─────────────────────────────────────────────────

class RelatedScribe(Scribe):
    """RELATED: a URI unless ``VALUE=text``."""

    def __init__(self):
        super().__init__(m.Related, "RELATED")

    def default_data_type(self, version):
        return URI

    def _data_type(self, prop, version):
        return TEXT if prop.text is not None else URI

    def _write_text(self, prop, context):
        if prop.uri is not None:
            return prop.uri
        if prop.text is not None:
            return escape_text(prop.text)
        return Skip("property has no value")

    def _parse_text(self, value, data_type, version, params, warnings):
        if data_type == TEXT:
            return m.Related(text=unescape_text(value))
        return m.Related(uri=value)

    def _write_xml(self, prop, element):
        if prop.uri is not None:
            element.append(URI, prop.uri)
        elif prop.text is not None:
            element.append(TEXT, prop.text)
        else:
            return Skip("property has no value")
        return None

    def _parse_xml(self, element, params, warnings):
        uri = element.first(URI)
        if uri is not None:
            return m.Related(uri=uri)
        text = element.first(TEXT)
        if text is not None:
            return m.Related(text=text)
        return CannotParse(None, "Property value must be a uri or text element.")

    def _write_json(self, prop):
        value = prop.uri if prop.uri is not None else prop.text
        return Skip("property has no value") if value is None else JCardValue.single(value)

    def _parse_json(self, value, data_type, params, warnings):
        if data_type == TEXT:
            return m.Related(text=value.as_single())
        return m.Related(uri=value.as_single())

    def _write_html(self, prop, version):
        if prop.uri is not None:
            el = HCardElement.create("a", "related")
            el.element.set("href", prop.uri)
            el.append_text(prop.uri)
            return el
        el = HCardElement.create("span", "related")
        el.append_text(prop.text or "")
        return el

    def _parse_html(self, element, params, warnings):
        href = element.abs_url("href")
        if href:
            return m.Related(uri=href)
        return m.Related(text=element.value())


class GeoScribe(Scribe):
    """GEO: ``lat;long`` in 2.1/3.0, a ``geo:`` URI in 4.0."""

    def __init__(self):
        super().__init__(m.Geo, "GEO")

    def default_data_type(self, version):
        return URI if version is V40 else None

    def _write_text(self, prop, context):
        if prop.uri is None:
            return Skip("property has no coordinates")
        if context.version is V40:
            return prop.uri.to_string()
        return f"{format_decimal(prop.uri.coord_a)};{format_decimal(prop.uri.coord_b)}"

    def _parse_text(self, value, data_type, version, params, warnings):
        value = value.strip()
        if version is V40 or value[:4].lower() == "geo:":
            try:
                return m.Geo(GeoUri.parse(value))
            except ValueError as e:
                if version is V40:
                    return CannotParse(value, str(e))
        parts = split_escaped(value, ";")
        if len(parts) != 2:
            return CannotParse(value, "Expected latitude and longitude separated by a semicolon.")
        try:
            return m.Geo(GeoUri(parse_decimal(parts[0]), parse_decimal(parts[1])))
        except ValueError as e:
            return CannotParse(value, str(e))

    def _write_xml(self, prop, element):
        if prop.uri is None:
            return Skip("property has no coordinates")
        element.append(URI, prop.uri.to_string())
        return None

    def _parse_xml(self, element, params, warnings):
        value = element.first(URI)
        if value is None:
            return CannotParse(None, "Property value must be a uri element.")
        return self._parse_text(value, URI, V40, params, warnings)

    def _write_json(self, prop):
        if prop.uri is None:
            return Skip("property has no coordinates")
        return JCardValue.single(prop.uri.to_string())

    def _parse_json(self, value, data_type, params, warnings):
        return self._parse_text(value.as_single(), data_type, V40, params, warnings)

    def _write_html(self, prop, version):
        if prop.uri is None:
            return Skip("property has no coordinates")
        el = HCardElement.create("span", "geo")
        for css, coord in (("latitude", prop.uri.coord_a), ("longitude", prop.uri.coord_b)):
            child = el.append_child("abbr", css, format_decimal(coord))
            child.element.set("title", format_decimal(coord))
            if css == "latitude":
                el.append_text(", ")
        return el

    def _parse_html(self, element, params, warnings):
        lat = element.first_value("latitude")
        lon = element.first_value("longitude")
        if lat is None or lon is None:
            return CannotParse(None, "Latitude or longitude is missing.")
        try:
            return m.Geo(GeoUri(parse_decimal(lat), parse_decimal(lon)))
        except ValueError as e:
            return CannotParse(None, str(e))


class AgentScribe(Scribe):
    """AGENT: a URL, or an entire vCard nested inside this one."""

    def __init__(self):
        super().__init__(m.Agent, "AGENT")

    def default_data_type(self, version):
        return None

    def _data_type(self, prop, version):
        if prop.url is not None:
            return URL if version is V21 else URI
        return None

    def _write_text(self, prop, context):
        if prop.url is not None:
            return prop.url
        if prop.vcard is not None:
            return EmbeddedCard(prop, card=prop.vcard)
        return Skip("property has no URL or nested card")

    @staticmethod
    def _embedded() -> EmbeddedCard:
        agent = m.Agent()

        def inject(card: Card | None) -> None:
            agent.vcard = card

        return EmbeddedCard(agent, injector=inject)

    def _parse_text(self, value, data_type, version, params, warnings):
        if data_type in (URL, URI):
            return m.Agent(url=unescape_text(value))
        return self._embedded()

    def _write_xml(self, prop, element):
        return Skip("xCard does not support AGENT")

    def _parse_xml(self, element, params, warnings):
        return CannotParse(None, "xCard does not support AGENT")

    def _write_json(self, prop):
        if prop.url is not None:
            return JCardValue.single(prop.url)
        return self._write_text(prop, WriteContext(V40))

    def _parse_json(self, value, data_type, params, warnings):
        return m.Agent(url=value.as_single())

    def _write_html(self, prop, version):
        if prop.url is not None:
            el = HCardElement.create("a", "agent")
            el.element.set("href", prop.url)
            el.append_text(prop.url)
            return el
        return self._write_text(prop, WriteContext(version))

    def _parse_html(self, element, params, warnings):
        if "vcard" in (c.lower() for c in element.class_names):
            return self._embedded()
        url = element.abs_url("href") or element.value()
        return m.Agent(url=url)


class XmlScribe(Scribe):
    """XML: an embedded XML document (4.0)."""

    def __init__(self):
        super().__init__(m.Xml, "XML")

    def _write_text(self, prop, context):
        if prop.value is None:
            return Skip("property has no value")
        return escape_text(prop.value)

    def _parse_text(self, value, data_type, version, params, warnings):
        return self._parse(unescape_text(value))

    @staticmethod
    def _parse(value: str):
        try:
            ET.fromstring(value)
        except ET.ParseError as e:
            return CannotParse(value, f"Value is not well-formed XML: {e}")
        return m.Xml(value)

    def write_element(self, prop: m.Xml) -> ET.Element | None:
        """The document element itself; xCard inlines it in place of a property."""
        self._check(prop)
        if prop.value is None:
            return None
        return ET.fromstring(prop.value)

    def _write_xml(self, prop, element):
        return Skip("written as a raw element")

    def _parse_xml(self, element, params, warnings):
        return m.Xml(element_to_string(element.element))

    def _write_json(self, prop):
        if prop.value is None:
            return Skip("property has no value")
        return JCardValue.single(prop.value)

    def _parse_json(self, value, data_type, params, warnings):
        return self._parse(value.as_single())


def raw_json_text(value: JCardValue) -> str:
    """Text-wire form of a jCard value with no scribe: a single array item is
    a structured value, several items are a list."""
    if len(value.values) == 1 and isinstance(value.values[0], list):
        return write_structured(value.as_structured())
    return write_list(value.as_multi())


class RawScribe(Scribe):
    """Any property with no scribe of its own; the value is kept verbatim."""

    def __init__(self, name: str):
        super().__init__(m.RawProperty, name)
        self.name = name

    def default_data_type(self, version):
        return None

    def _data_type(self, prop, version):
        return prop.data_type

    def _write_text(self, prop, context):
        return prop.value or ""

    def _parse_text(self, value, data_type, version, params, warnings):
        return m.RawProperty(name=self.name, value=value, data_type=data_type)

    def _write_xml(self, prop, element):
        element.append(prop.data_type, prop.value or "")

    def _parse_xml(self, element, params, warnings):
        found = element.first_any()
        if found is None:
            text = element.element.text or ""
            return m.RawProperty(name=self.name, value=text)
        name, text = found
        data_type = None if name == "unknown" else DataType.get(name)
        return m.RawProperty(name=self.name, value=text, data_type=data_type)

    def _write_json(self, prop):
        value = prop.value or ""
        if len(split_escaped(value, ";", unescape=False)) > 1:
            return JCardValue.structured(parse_structured(value))
        parts = split_list(value)
        if len(parts) > 1:
            return JCardValue.multi(parts)
        return JCardValue.single(parts[0] if parts else "")

    def _parse_json(self, value, data_type, params, warnings):
        return m.RawProperty(name=self.name, value=raw_json_text(value), data_type=data_type)

    def _write_html(self, prop, version):
        el = HCardElement.create("span", self.name.lower())
        el.append_text(prop.value or "")
        return el

    def _parse_html(self, element, params, warnings):
        return m.RawProperty(name=self.name, value=element.value())


# ── Defaults ───────────────────────────────────────────────────────────────────

def default_scribes() -> list[Scribe]:
    return [
        TextScribe(m.FormattedName, "FN"),
        TextScribe(m.Note, "NOTE"),
        TextScribe(m.Title, "TITLE"),
        TextScribe(m.Role, "ROLE"),
        TextScribe(m.Uid, "UID"),
        TextScribe(m.ProductId, "PRODID"),
        TextScribe(m.Kind, "KIND"),
        TextScribe(m.Label, "LABEL"),
        EmailScribe(),
        TelephoneScribe(),
        UriScribe(m.Url, "URL"),
        UriScribe(m.Member, "MEMBER"),
        ListScribe(m.Categories, "CATEGORIES"),
        ListScribe(m.Nickname, "NICKNAME"),
        StructuredNameScribe(),
        AddressScribe(),
        OrganizationScribe(),
        DateOrTimeScribe(m.Birthday, "BDAY"),
        DateOrTimeScribe(m.Anniversary, "ANNIVERSARY"),
        DateOrTimeScribe(m.Deathdate, "DEATHDATE"),
        RevisionScribe(),
        TimezoneScribe(),
        BinaryScribe(m.Photo, "PHOTO", IMAGE_TYPES, html_tag="img"),
        BinaryScribe(m.Logo, "LOGO", IMAGE_TYPES, html_tag="img"),
        BinaryScribe(m.Sound, "SOUND", SOUND_TYPES),
        BinaryScribe(m.Key, "KEY", KEY_TYPES),
        RelatedScribe(),
        GeoScribe(),
        AgentScribe(),
        XmlScribe(),
    ]


def is_foreign(tag: str) -> bool:
    return namespace_of(tag) not in (None, VCardVersion.V4_0.xml_namespace)
