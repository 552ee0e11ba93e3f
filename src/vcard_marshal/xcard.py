"""xCard (RFC 6351): vCard 4.0 as XML."""
from __future__ import annotations

import copy
import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterator
from types import MappingProxyType
from typing import TextIO

from .model import Card, Property, RawProperty, Xml
from .parameters import Parameters
from .scribe import CannotParse, EmbeddedCard, Parsed, Skip
from .scribes import RawScribe, XmlScribe, element_to_string
from .stream import StreamReader, StreamWriter
from .versions import XCARD_NAMESPACE, VCardVersion
from .wire import XCardElement, local_name, namespace_of

logger = logging.getLogger(__name__)

V40 = VCardVersion.V4_0

# serialize the vCard namespace unprefixed; <group name=".."> carries a plain attribute
ET.register_namespace("", XCARD_NAMESPACE)

# Element wrapping each parameter value; anything else gets "unknown".
PARAMETER_DATA_TYPES = MappingProxyType({
    "ALTID": "text",
    "CALSCALE": "text",
    "GEO": "uri",
    "LABEL": "text",
    "LANGUAGE": "language-tag",
    "MEDIATYPE": "text",
    "PID": "text",
    "PREF": "integer",
    "SORT-AS": "text",
    "TYPE": "text",
    "TZ": "uri",
})


def _tag(name: str) -> str:
    return f"{{{XCARD_NAMESPACE}}}{name}"


# ── Reading ────────────────────────────────────────────────────────────────────

def _parse_parameters(element: ET.Element) -> Parameters:
    params = Parameters()
    node = element.find(_tag("parameters"))
    if node is None:
        return params
    for param in node:
        name = local_name(param.tag).upper()
        values = [v.text or "" for v in param]
        if not values and param.text and param.text.strip():
            values = [param.text.strip()]
        params.put_all(name, values)
    return params


class XCardReader(StreamReader):
    """Reads every ``<vcard>`` element out of an xCard document.

    ``source`` may be XML text, bytes, a file object or a parsed element.
    """

    def __init__(self, source: str | bytes | TextIO | ET.Element):
        super().__init__()
        if isinstance(source, ET.Element):
            root = source
        elif isinstance(source, (str, bytes)):
            root = ET.fromstring(source)
        else:
            root = ET.parse(source).getroot()
        self._cards: Iterator[ET.Element] = iter(
            [root] if root.tag == _tag("vcard") else list(root.iter(_tag("vcard")))
        )

    def _read_next(self) -> Card | None:
        element = next(self._cards, None)
        if element is None:
            return None
        card = Card(V40)
        for child in element:
            if child.tag == _tag("group"):
                group = child.get("name")
                for prop in child:
                    self._read_property(prop, group, card)
            else:
                self._read_property(child, None, card)
        return card

    def _read_property(self, element: ET.Element, group: str | None, card: Card) -> None:
        name = local_name(element.tag)
        qname = (namespace_of(element.tag) or "", name)
        params = _parse_parameters(element)

        scribe = self.index.lookup_qname(qname)
        if isinstance(scribe, RawScribe) and self.index.needs_warning(name):
            self._warnings.add("Unrecognized property; kept as raw text.", property_name=name.upper())

        result = scribe.parse_xml(XCardElement(element, V40), params)
        if isinstance(result, Parsed):
            for w in result.warnings:
                self._warnings.add(w, property_name=scribe.name)
            result.property.group = group
            card.add(result.property)
        elif isinstance(result, CannotParse):
            self._warnings.add(
                f"Value could not be parsed ({result.reason}); kept as an XML property.",
                property_name=scribe.name,
            )
            card.add(Xml(element_to_string(element), group=group))
        elif isinstance(result, EmbeddedCard):
            self._warnings.add("xCard cannot contain nested cards; skipped.", property_name=scribe.name)
        else:
            self._warnings.add(f"Property skipped: {result.reason}", property_name=scribe.name)


# ── Writing ────────────────────────────────────────────────────────────────────

class XCardWriter(StreamWriter):
    """Collects cards into one ``<vcards>`` document.

    Always writes version 4.0, the only version xCard defines.
    """

    def __init__(self, *, add_prodid: bool = True, version_strict: bool = True):
        super().__init__(V40, add_prodid=add_prodid, version_strict=version_strict)
        self.root = ET.Element(_tag("vcards"))

    def _write(self, card: Card, version: VCardVersion, properties: list[Property]) -> None:
        vcard = ET.SubElement(self.root, _tag("vcard"))
        groups: dict[str, ET.Element] = {}

        for prop in properties:
            element = self._property_element(prop, card)
            if element is None:
                continue
            parent = vcard
            if prop.group:
                parent = groups.get(prop.group)
                if parent is None:
                    parent = groups[prop.group] = ET.SubElement(vcard, _tag("group"), {"name": prop.group})
            parent.append(element)

    def _property_element(self, prop: Property, card: Card) -> ET.Element | None:
        scribe = self.index.scribe_for(prop)
        if isinstance(scribe, XmlScribe):
            try:
                element = scribe.write_element(prop)
            except ET.ParseError as e:
                self._warnings.add(f"Value is not well-formed XML ({e}); skipped.", property_name="XML")
                return None
            if element is not None and namespace_of(element.tag) is None:
                self._warnings.add("XML value has no namespace; skipped.", property_name="XML")
                return None
            return element

        namespace, name = scribe.qname
        if isinstance(prop, RawProperty):
            namespace, name = XCARD_NAMESPACE, prop.name.lower()
        element = ET.Element(f"{{{namespace}}}{name}")
        result = scribe.write_xml(prop, XCardElement(element, V40))
        if isinstance(result, Skip):
            logger.debug("%s skipped: %s", scribe.name, result.reason)
            return None

        params = scribe.prepare_parameters(prop, V40, card)
        params.value = None
        if params:
            node = ET.Element(_tag("parameters"))
            for pname, values in params.items():
                if pname is None:
                    continue
                p = ET.SubElement(node, _tag(pname.lower()))
                data_type = PARAMETER_DATA_TYPES.get(pname, "unknown")
                for v in values:
                    ET.SubElement(p, _tag(data_type)).text = v
            element.insert(0, node)
        return element

    def getvalue(self, indent: bool = False) -> str:
        root = self.root
        if indent:
            root = copy.deepcopy(root)
            ET.indent(root)
        return ET.tostring(root, encoding="unicode")
