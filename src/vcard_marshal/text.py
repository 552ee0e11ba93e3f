"""Plain-text vCard (``.vcf``) reading and writing, versions 2.1 to 4.0."""
from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from typing import TextIO

from .linecodec import (
    CRLF,
    DEFAULT_INDENT,
    DEFAULT_WIDTH,
    FoldedLineReader,
    decode_quoted_printable,
    encode_caret,
    encode_quoted_printable,
    escape_newlines,
    escape_text,
    fold,
    has_newlines,
    lookup_charset,
    unescape_text,
)
from .model import Address, Card, Label, Property, RawProperty
from .parameters import QUOTED_PRINTABLE, Parameters, guess_name
from .scribe import CannotParse, EmbeddedCard, Parsed, Scribe, Skip, WriteContext
from .stream import StreamReader, StreamWriter, assign_labels
from .versions import DATE, DATE_AND_OR_TIME, DATE_TIME, TIME, VCardVersion

logger = logging.getLogger(__name__)

V21, V30, V40 = VCardVersion.V2_1, VCardVersion.V3_0, VCardVersion.V4_0

_NEWLINE = re.compile(r"\r\n|\r|\n")
_CONTROL = r"\x00-\x08\x0b\x0c\x0e-\x1f\x7f"
_INVALID_PARAM_21 = re.compile(rf"[,.:=\[\]{_CONTROL}]")
_INVALID_PARAM = re.compile(rf"[{_CONTROL}]")
_NEEDS_QUOTES = re.compile(r"[,:;]")


# ── Raw lines ──────────────────────────────────────────────────────────────────

@dataclass
class RawLine:
    """One unfolded content line, split but not yet interpreted."""

    name: str
    value: str
    group: str | None = None
    parameters: Parameters = field(default_factory=Parameters)


def parse_line(line: str, version: VCardVersion = V21, caret_decoding: bool = True) -> RawLine:
    """Split ``group.NAME;PARAM=a,b:value`` into its parts.

    Parameter values are unescaped here. 2.1 has no quoting and allows
    ``\\;`` inside a parameter value; 3.0 and 4.0 quote values and support
    caret encoding. Raises ``ValueError`` if the line has no name or colon.
    """
    buf: list[str] = []
    group: str | None = None
    name: str | None = None
    param_name: str | None = None
    params = Parameters()
    escape: str | None = None
    in_quotes = False

    for i, ch in enumerate(line):
        if escape == "\\":
            if ch == "\\":
                buf.append(ch)
            elif ch in "nN":
                buf.append("\n")
            elif ch == '"' and version is not V21:
                buf.append(ch)
            elif ch == ";" and version is V21:
                buf.append(ch)
            else:
                buf.append(escape + ch)
            escape = None
            continue
        if escape == "^":
            if ch == "^":
                buf.append(ch)
            elif ch == "n":
                buf.append("\n")
            elif ch == "'":
                buf.append('"')
            else:
                buf.append(escape + ch)
            escape = None
            continue

        if ch == "\\" or (ch == "^" and version is not V21 and caret_decoding):
            escape = ch
            continue

        if ch == "." and group is None and name is None:
            group = "".join(buf)
            buf = []
            continue

        if ch in ";:" and not in_quotes:
            if name is None:
                name = "".join(buf)
                if not name:
                    break
            else:
                value = "".join(buf)
                if version is V21:
                    value = value.lstrip()
                params.put(param_name, value)
                param_name = None
            buf = []
            if ch == ":":
                return RawLine(name, line[i + 1:], group, params)
            continue

        if name is not None:
            if ch == "," and not in_quotes and version is not V21:
                params.put(param_name, "".join(buf))
                buf = []
                continue
            if ch == "=" and param_name is None:
                param_name = "".join(buf)
                if version is V21:
                    param_name = param_name.rstrip()
                buf = []
                continue
            if ch == '"' and version is not V21:
                in_quotes = not in_quotes
                continue

        buf.append(ch)

    raise ValueError(f"Malformed line: {line!r}")


def sanitize_parameter_value(value: str, version: VCardVersion, caret_encoding: bool = False) -> str:
    """Make ``value`` safe to write as a parameter value in ``version``."""
    if version is V21:
        value = _INVALID_PARAM_21.sub("", value)
        value = _NEWLINE.sub(" ", value)
        return value.replace("\\", "\\\\").replace(";", "\\;")

    value = _INVALID_PARAM.sub("", value)
    if caret_encoding:
        return encode_caret(value)
    value = value.replace('"', "'")
    if version is V30:
        return _NEWLINE.sub(" ", value)
    return escape_newlines(value)


def write_line(
    name: str,
    value: str | None,
    *,
    group: str | None = None,
    parameters: Parameters | None = None,
    version: VCardVersion = V30,
    caret_encoding: bool = False,
) -> tuple[str, bool]:
    """The unfolded line, and whether its value is quoted-printable encoded."""
    params = parameters.copy() if parameters is not None else Parameters()
    value = value or ""

    if version is V21 and has_newlines(value):
        params.encoding = QUOTED_PRINTABLE.upper()
    else:
        value = escape_newlines(value)

    qp = params.encoding == QUOTED_PRINTABLE
    if qp:
        charset = params.charset
        if charset is None or lookup_charset(charset) is None:
            charset = "UTF-8"
        params.charset = charset
        value = encode_quoted_printable(value, charset)

    parts = [f"{group}.{name}" if group else name]
    for pname, values in params.items():
        if version is V21 or pname is None:
            for v in values:
                v = sanitize_parameter_value(v, version, caret_encoding)
                parts.append(v if pname in ("TYPE", None) else f"{pname}={v}")
            continue
        written = []
        for v in values:
            v = sanitize_parameter_value(v, version, caret_encoding)
            written.append(f'"{v}"' if _NEEDS_QUOTES.search(v) else v)
        parts.append(f"{pname}={','.join(written)}")
    return f"{';'.join(parts)}:{value}", qp


# ── Reading ────────────────────────────────────────────────────────────────────

@dataclass
class _Frame:
    card: Card
    labels: list[Label] = field(default_factory=list)
    version_seen: bool = False


class VCardReader(StreamReader):
    """Reads cards from a string, a text stream or an iterable of lines.

    The source may also be a :class:`FoldedLineReader` already in use, so a
    nested card can be read from the middle of another one.
    """

    def __init__(self, source, *, caret_decoding: bool = True, default_charset: str = "utf-8"):
        super().__init__()
        self._lines = source if isinstance(source, FoldedLineReader) else FoldedLineReader(source)
        self._syntax = V21
        self.caret_decoding = caret_decoding
        self.default_charset = default_charset

    def _warn(self, message: str, name: str | None = None) -> None:
        self._warnings.add(message, self._lines.line_number or None, name)

    def _read_next(self) -> Card | None:
        root: Card | None = None
        stack: list[_Frame] = []
        pending: EmbeddedCard | None = None

        while (line := self._lines.readline()) is not None:
            try:
                raw = parse_line(line, self._syntax, self.caret_decoding)
            except ValueError:
                if stack:
                    self._warn(f"Skipped a malformed line: {line}")
                continue

            name = raw.name.upper()
            is_card = raw.value.strip().upper() == "VCARD"

            if name == "BEGIN" and is_card:
                card = Card()
                frame = _Frame(card)
                if stack:
                    card.version = stack[-1].card.version
                    frame.version_seen = True
                stack.append(frame)
                if root is None:
                    root = card
                if pending is not None:
                    pending.inject(card)
                    pending = None
                continue

            if not stack:
                continue
            frame = stack[-1]

            if name == "VERSION":
                version = VCardVersion.find(raw.value)
                if version is None:
                    self._warn(f'Invalid VERSION "{raw.value}"; assuming 4.0.', "VERSION")
                else:
                    frame.card.version = version
                    self._syntax = version
                frame.version_seen = True
                continue

            if name == "END" and is_card:
                self._close(stack.pop())
                if not stack:
                    break
                continue

            if pending is not None:
                # the nested card was supposed to start on this line
                pending.inject(None)
                pending = None
            pending = self._read_property(raw, frame)

        if stack:
            self._warn("Input ended before END:VCARD.")
            while stack:
                self._close(stack.pop())
        return root

    def _close(self, frame: _Frame) -> None:
        if not frame.version_seen:
            self._warn("No VERSION property; assuming 4.0.")
        assign_labels(frame.card, frame.labels)

    def _decode(self, name: str, params: Parameters, value: str) -> str:
        if params.encoding != QUOTED_PRINTABLE:
            return value
        params.encoding = None
        charset_name = params.charset
        params.charset = None

        charset = lookup_charset(charset_name, self.default_charset)
        if charset is None:
            charset = self.default_charset
            self._warn(f'Unknown CHARSET "{charset_name}"; decoded as {charset}.', name)
        try:
            return decode_quoted_printable(value, charset)
        except ValueError as e:
            self._warn(f"Could not decode quoted-printable value: {e}", name)
            return value

    def _read_property(self, raw: RawLine, frame: _Frame) -> EmbeddedCard | None:
        params = raw.parameters
        card = frame.card
        version = card.version

        for v in params.remove_all(None):
            params.put(guess_name(v), v)
        types = params.types
        if any("," in t for t in types):
            params.replace_all("TYPE", [s for t in types for s in t.split(",")])

        value = self._decode(raw.name, params, raw.value)

        scribe = self.index.lookup_name(raw.name)
        if raw.name not in self.index and self.index.needs_warning(raw.name):
            self._warn("Unrecognized property; kept as raw text.", raw.name)

        explicit = params.value
        data_type = explicit or scribe.default_data_type(version)
        params.value = None

        original = params.copy()
        result = scribe.parse_text(value, data_type, params, version)

        if isinstance(result, Parsed):
            for w in result.warnings:
                self._warn(w, raw.name)
            prop = result.property
            prop.group = raw.group
            if isinstance(prop, Label):
                frame.labels.append(prop)
            else:
                card.add(prop)
            return None

        if isinstance(result, Skip):
            self._warn(f"Property skipped: {result.reason}", raw.name)
            return None

        if isinstance(result, CannotParse):
            self._warn(f'Value "{value}" could not be parsed ({result.reason}); kept as raw text.', raw.name)
            card.add(RawProperty(
                name=raw.name, value=value, data_type=explicit,
                group=raw.group, parameters=original,
            ))
            return None

        # embedded card
        prop = result.property
        prop.group = raw.group
        card.add(prop)
        if not value or version is V21:
            # 2.1: the nested card follows on the next lines
            return result

        nested = VCardReader(unescape_text(value), caret_decoding=self.caret_decoding)
        nested.index = self.index
        result.inject(nested.read_next())
        for w in nested.warnings:
            self._warn(f"Nested card: {w}", raw.name)
        return None


# ── Writing ────────────────────────────────────────────────────────────────────

def _date_value_special_case(default, data_type) -> bool:
    return default == DATE_AND_OR_TIME and data_type in (DATE, DATE_TIME, TIME)


class VCardWriter(StreamWriter):
    """Writes cards as text.

    With no ``out`` stream the output is collected in memory; see
    :meth:`getvalue`. ``fold_width=None`` turns folding off.
    """

    def __init__(
        self,
        out: TextIO | None = None,
        version: VCardVersion | None = None,
        *,
        fold_width: int | None = DEFAULT_WIDTH,
        indent: str = DEFAULT_INDENT,
        newline: str = CRLF,
        caret_encoding: bool = False,
        include_trailing_semicolons: bool | None = None,
        add_prodid: bool = True,
        version_strict: bool = True,
    ):
        super().__init__(version, add_prodid=add_prodid, version_strict=version_strict)
        if fold_width is not None and (fold_width <= 0 or len(indent) >= fold_width):
            raise ValueError(f"Invalid fold width {fold_width} for indent {indent!r}.")
        self.out = out if out is not None else io.StringIO()
        self.fold_width = fold_width
        self.indent = indent
        self.newline = newline
        self.caret_encoding = caret_encoding
        self.include_trailing_semicolons = include_trailing_semicolons

    def getvalue(self) -> str:
        if not isinstance(self.out, io.StringIO):
            raise TypeError("getvalue() is only available when writing to memory")
        return self.out.getvalue()

    def _emit(
        self, name: str, value: str | None, version: VCardVersion,
        group: str | None = None, params: Parameters | None = None,
    ) -> None:
        line, qp = write_line(
            name, value, group=group, parameters=params,
            version=version, caret_encoding=self.caret_encoding,
        )
        text = fold(line, self.fold_width, self.indent, self.newline, quoted_printable=qp)
        try:
            self.out.write(text + self.newline)
        except ValueError as e:
            raise OSError(str(e)) from e

    def _write(self, card: Card, version: VCardVersion, properties: list[Property]) -> None:
        context = WriteContext(version, self.include_trailing_semicolons)
        self._emit("BEGIN", "VCARD", version)
        self._emit("VERSION", version.version, version)

        for prop in properties:
            scribe = self.index.scribe_for(prop)
            result = scribe.write_text(prop, context)
            if isinstance(result, Skip):
                logger.debug("%s skipped: %s", scribe.name, result.reason)
                continue

            params = scribe.prepare_parameters(prop, version, card)
            if isinstance(result, EmbeddedCard):
                self._write_nested(result.card, prop, scribe, params, version)
                continue

            self._value_parameter(prop, scribe, params, version)
            if isinstance(prop, Address) and params.label is not None:
                params.label = escape_newlines(params.label)
            if version is not V21 and params.encoding == QUOTED_PRINTABLE:
                params.encoding = None
                params.charset = None

            self._emit(scribe.name, result, version, prop.group, params)

        self._emit("END", "VCARD", version)

    @staticmethod
    def _value_parameter(prop: Property, scribe: Scribe, params: Parameters, version: VCardVersion) -> None:
        data_type = scribe.data_type(prop, version)
        if data_type is None:
            return
        default = scribe.default_data_type(version)
        if data_type == default or _date_value_special_case(default, data_type):
            return
        params.value = data_type

    def _write_nested(
        self, nested: Card | None, prop: Property, scribe: Scribe,
        params: Parameters, version: VCardVersion,
    ) -> None:
        if nested is None:
            return
        if version is V21:
            # inline, right after the property
            self._emit(scribe.name, "", version, prop.group, params)
            add_prodid, self.add_prodid = self.add_prodid, False
            try:
                self._write(nested, version, self.prepare(nested, version))
            finally:
                self.add_prodid = add_prodid
            return

        writer = VCardWriter(
            version=version,
            fold_width=None,
            caret_encoding=self.caret_encoding,
            include_trailing_semicolons=self.include_trailing_semicolons,
            add_prodid=False,
            version_strict=self.version_strict,
        )
        writer.index = self.index
        writer.write(nested)
        for w in writer.warnings:
            self._warnings.add(f"Nested card: {w}", property_name=scribe.name)
        self._emit(scribe.name, escape_text(writer.getvalue()), version, prop.group, params)
