"""Format-specific intermediate values handed to and from scribes.

A scribe only ever sees one of these per call: a plain string for the text
format, :class:`XCardElement` for xCard, :class:`JCardValue` for jCard and
:class:`HCardElement` for hCard.
"""
from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Any
from urllib.parse import urljoin

from .versions import XCARD_NAMESPACE, DataType, VCardVersion

_NEWLINE = re.compile(r"\r\n|\r|\n")
_WHITESPACE = re.compile(r"\s+")


# ── xCard ──────────────────────────────────────────────────────────────────────

def local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def namespace_of(tag: str) -> str | None:
    return tag[1:].split("}", 1)[0] if tag.startswith("{") else None


class XCardElement:
    """A property element such as ``<fn><text>John</text></fn>``."""

    def __init__(self, element: ET.Element, version: VCardVersion = VCardVersion.V4_0):
        self.element = element
        self.version = version
        self.namespace = version.xml_namespace or XCARD_NAMESPACE

    @classmethod
    def create(cls, name: str, version: VCardVersion = VCardVersion.V4_0) -> XCardElement:
        ns = version.xml_namespace or XCARD_NAMESPACE
        return cls(ET.Element(f"{{{ns}}}{name.lower()}"), version)

    @property
    def name(self) -> str:
        return local_name(self.element.tag)

    def _tag(self, name: str | DataType | None) -> str:
        local = "unknown" if name is None else str(name)
        return f"{{{self.namespace}}}{local}"

    def _children(self) -> list[ET.Element]:
        return [c for c in self.element if namespace_of(c.tag) == self.namespace]

    def first(self, *names: str | DataType | None) -> str | None:
        """Text of the first child named after one of ``names``."""
        wanted = {"unknown" if n is None else str(n) for n in names}
        for child in self._children():
            if local_name(child.tag) in wanted:
                return child.text or ""
        return None

    def first_any(self) -> tuple[str, str] | None:
        """(name, text) of the first child element other than ``parameters``."""
        for child in self._children():
            name = local_name(child.tag)
            if name != "parameters":
                return name, child.text or ""
        return None

    def all(self, name: str | DataType | None) -> list[str]:
        tag = self._tag(name)
        return [c.text or "" for c in self.element if c.tag == tag]

    def append(self, name: str | DataType | None, value: str | None) -> ET.Element:
        child = ET.SubElement(self.element, self._tag(name))
        child.text = value
        return child

    def append_all(self, name: str | DataType | None, values: list[str]) -> None:
        for v in values:
            self.append(name, v)


# ── jCard ──────────────────────────────────────────────────────────────────────

@dataclass
class JCardValue:
    """Everything after the data type in a jCard property array.

    ``["adr", {}, "text", ["", "", "1 Main St", ...]]`` is one structured value;
    ``["categories", {}, "text", "a", "b"]`` is a multi-value.
    """

    values: list[Any] = field(default_factory=list)

    @classmethod
    def single(cls, value: Any) -> JCardValue:
        return cls([value])

    @classmethod
    def multi(cls, values: list[Any]) -> JCardValue:
        return cls(list(values))

    @classmethod
    def structured(cls, components: list[list[str]]) -> JCardValue:
        out: list[Any] = []
        for c in components:
            if not c:
                out.append("")
            elif len(c) == 1:
                out.append(c[0])
            else:
                out.append(list(c))
        return cls([out])

    @staticmethod
    def stringify(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def as_single(self) -> str:
        if not self.values:
            return ""
        first = self.values[0]
        if isinstance(first, list):
            return self.stringify(first[0]) if first else ""
        return self.stringify(first)

    def as_multi(self) -> list[str]:
        if len(self.values) == 1 and isinstance(self.values[0], list):
            return [self.stringify(v) for v in self.values[0]]
        return [self.stringify(v) for v in self.values]

    def as_structured(self) -> list[list[str]]:
        if len(self.values) == 1 and isinstance(self.values[0], list):
            items = self.values[0]
        else:
            items = self.values
        components: list[list[str]] = []
        for item in items:
            if isinstance(item, list):
                components.append([self.stringify(v) for v in item if self.stringify(v)])
            else:
                s = self.stringify(item)
                components.append([s] if s else [])
        return components


# ── hCard ──────────────────────────────────────────────────────────────────────

_VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})


class _TreeBuilder(HTMLParser):
    """Builds an ElementTree out of (possibly sloppy) HTML."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.root = ET.Element("document")
        self._stack = [self.root]

    def handle_starttag(self, tag, attrs):
        el = ET.SubElement(self._stack[-1], tag, {k: v or "" for k, v in attrs})
        if tag not in _VOID_TAGS:
            self._stack.append(el)

    def handle_startendtag(self, tag, attrs):
        ET.SubElement(self._stack[-1], tag, {k: v or "" for k, v in attrs})

    def handle_endtag(self, tag):
        for i in range(len(self._stack) - 1, 0, -1):
            if self._stack[i].tag == tag:
                del self._stack[i:]
                return

    def handle_data(self, data):
        parent = self._stack[-1]
        if len(parent):
            last = parent[-1]
            last.tail = (last.tail or "") + data
        else:
            parent.text = (parent.text or "") + data


def parse_html(html: str) -> ET.Element:
    builder = _TreeBuilder()
    builder.feed(html)
    builder.close()
    return builder.root


def class_names(element: ET.Element) -> list[str]:
    return element.get("class", "").split()


def has_class(element: ET.Element, name: str) -> bool:
    return name.lower() in (c.lower() for c in class_names(element))


class HCardElement:
    """An HTML element carrying an hCard property class."""

    def __init__(self, element: ET.Element, base_url: str | None = None):
        self.element = element
        self.base_url = base_url

    @classmethod
    def create(cls, tag: str, css_class: str) -> HCardElement:
        return cls(ET.Element(tag, {"class": css_class}))

    @property
    def tag_name(self) -> str:
        return self.element.tag

    @property
    def class_names(self) -> list[str]:
        return class_names(self.element)

    def attr(self, name: str) -> str:
        return self.element.get(name, "")

    def abs_url(self, name: str) -> str:
        url = self.attr(name)
        if url and self.base_url and not re.match(r"(?i)(tel|data|mailto):", url):
            return urljoin(self.base_url, url)
        return url

    def value(self) -> str:
        return _value(self.element)

    def first_value(self, css_class: str) -> str | None:
        for el in self.element.iter():
            if has_class(el, css_class):
                return _value(el)
        return None

    def all_values(self, css_class: str) -> list[str]:
        return [_value(el) for el in self.element.iter() if has_class(el, css_class)]

    def types(self) -> list[str]:
        return [t.lower() for t in self.all_values("type")]

    def append_text(self, text: str) -> None:
        """Append ``text``, turning newlines into ``<br>`` tags."""
        for i, line in enumerate(_NEWLINE.split(text)):
            if i:
                ET.SubElement(self.element, "br")
            if line:
                _append_text(self.element, line)

    def append_child(self, tag: str, css_class: str | None = None, text: str | None = None) -> HCardElement:
        attrs = {"class": css_class} if css_class else {}
        child = HCardElement(ET.SubElement(self.element, tag, attrs), self.base_url)
        if text:
            child.append_text(text)
        return child

    def to_html(self) -> str:
        return ET.tostring(self.element, encoding="unicode", method="html")


def _append_text(element: ET.Element, text: str) -> None:
    if len(element):
        last = element[-1]
        last.tail = (last.tail or "") + text
    else:
        element.text = (element.text or "") + text


def _value(element: ET.Element) -> str:
    if element.tag == "abbr" and element.get("title"):
        return element.get("title", "")

    value_elements = _outermost_with_class(element, "value")
    parts: list[str] = []
    if not value_elements:
        _visit_for_value(element, parts)
    else:
        for el in value_elements:
            if el.tag == "abbr" and el.get("title"):
                parts.append(el.get("title", ""))
                continue
            _visit_for_value(el, parts)
    return "".join(parts).strip()


def _outermost_with_class(element: ET.Element, css_class: str) -> list[ET.Element]:
    if has_class(element, css_class):
        return [element]
    found: list[ET.Element] = []
    for child in element:
        found.extend(_outermost_with_class(child, css_class))
    return found


def _visit_for_value(element: ET.Element, parts: list[str]) -> None:
    if element.text:
        parts.append(_WHITESPACE.sub(" ", element.text))
    for child in element:
        if has_class(child, "type"):
            pass
        elif child.tag == "br":
            parts.append("\n")
        elif child.tag != "del":
            _visit_for_value(child, parts)
        if child.tail:
            parts.append(_WHITESPACE.sub(" ", child.tail))
