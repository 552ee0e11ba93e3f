from __future__ import annotations

import codecs
import quopri
import re
from collections.abc import Iterable, Iterator
from typing import TextIO

DEFAULT_WIDTH = 75
DEFAULT_INDENT = " "
CRLF = "\r\n"

_NEWLINE = re.compile(r"\r\n|\r|\n")
# a line whose parameters declare QUOTED-PRINTABLE and whose value ends in a soft break
_QP_SOFT_BREAK = re.compile(r"[^:]*?QUOTED-PRINTABLE.*?:.*?=", re.IGNORECASE)


# ── Folding ────────────────────────────────────────────────────────────────────

def fold(
    text: str,
    max_width: int | None = DEFAULT_WIDTH,
    indent: str = DEFAULT_INDENT,
    newline: str = CRLF,
    quoted_printable: bool = False,
) -> str:
    """Split a logical line into physical lines no wider than ``max_width``.

    Newlines already present in ``text`` are passed through untouched and
    reset the column counter. A run of whitespace at a break point stays on
    the current line. In quoted-printable mode every break is a soft break
    (``=`` before the newline) and ``=XX`` triplets are never split.
    """
    if max_width is None:
        return text
    if max_width <= 0:
        raise ValueError(f"Line width must be greater than 0 (got {max_width}).")
    if len(indent) >= max_width:
        raise ValueError(
            f"Indent length ({len(indent)}) must be less than the line width ({max_width})."
        )

    width = max_width - 1 if quoted_printable else max_width
    out: list[str] = []
    n = len(text)
    cur = 0
    start = 0
    encoded = -1
    i = 0
    while i < n:
        c = text[i]
        if encoded >= 0:
            encoded += 1
            if encoded == 3:
                encoded = -1

        if c == "\n":
            out.append(text[start:i + 1])
            cur = 0
            start = i + 1
            i += 1
            continue

        if c == "\r":
            if i == n - 1 or text[i + 1] != "\n":
                out.append(text[start:i + 1])
                cur = 0
                start = i + 1
            else:
                cur += 1
            i += 1
            continue

        if c == "=" and quoted_printable:
            encoded = 0

        if cur >= width:
            if c.isspace():
                while c.isspace() and i < n - 1:
                    i += 1
                    c = text[i]
                if i >= n - 1:
                    # nothing but whitespace left
                    break

            if encoded > 0 and i - encoded > start:
                i -= encoded
                encoded = 0

            out.append(text[start:i])
            if quoted_printable:
                out.append("=")
            out.append(newline)
            out.append(indent)
            cur = len(indent) + 1
            start = i
            i += 1
            continue

        cur += 1
        i += 1

    out.append(text[start:])
    return "".join(out)


# ── Unfolding ──────────────────────────────────────────────────────────────────

def _physical_lines(source: str | TextIO | Iterable[str]) -> Iterator[str]:
    if isinstance(source, str):
        lines = _NEWLINE.split(source)
        if lines and lines[-1] == "":
            lines.pop()
        yield from lines
        return

    try:
        for chunk in source:
            pieces = _NEWLINE.split(chunk)
            if len(pieces) > 1 and pieces[-1] == "":
                pieces.pop()
            yield from pieces
    except ValueError as e:
        # reading from a closed file
        raise OSError(str(e)) from e


class FoldedLineReader:
    """Reassembles folded physical lines into logical lines.

    The reader can be handed to a nested parser so that an embedded card
    continues from the same position.
    """

    def __init__(self, source: str | TextIO | Iterable[str]):
        self._lines = _physical_lines(source)
        self._pending: str | None = None
        self._physical = 0
        self.line_number = 0

    def _next_physical(self) -> str | None:
        line = next(self._lines, None)
        if line is not None:
            self._physical += 1
        return line

    def _next_non_empty(self) -> str | None:
        while True:
            line = self._next_physical()
            if line is None or line:
                return line

    def readline(self) -> str | None:
        """Return the next logical line, or ``None`` at end of input."""
        if self._pending is not None:
            whole, self._pending = self._pending, None
        else:
            whole = self._next_non_empty()
        if whole is None:
            return None
        self.line_number = self._physical

        soft_break = bool(_QP_SOFT_BREAK.fullmatch(whole))
        if soft_break:
            whole = whole[:-1]

        parts = [whole]
        while True:
            line = self._next_physical() if soft_break else self._next_non_empty()
            if line is None:
                break
            if soft_break:
                line = line.lstrip()
                more = line.endswith("=")
                parts.append(line[:-1] if more else line)
                if not more:
                    break
            elif line[0].isspace():
                parts.append(line.lstrip())
            else:
                self._pending = line
                break
        return "".join(parts)

    def __iter__(self) -> Iterator[str]:
        while (line := self.readline()) is not None:
            yield line


def unfold(source: str | TextIO | Iterable[str]) -> Iterator[str]:
    """Lazily yield the logical lines of ``source``."""
    yield from FoldedLineReader(source)


# ── Value escaping ─────────────────────────────────────────────────────────────

def escape_text(value: str, newlines: bool = True) -> str:
    """Backslash-escape ``\\``, ``,`` and ``;`` and, unless told otherwise,
    newlines. 2.1 leaves newlines alone and quoted-printable encodes them."""
    value = value.replace("\\", "\\\\").replace(",", "\\,").replace(";", "\\;")
    return _NEWLINE.sub("\\\\n", value) if newlines else value


def unescape_text(value: str) -> str:
    if "\\" not in value:
        return value
    out: list[str] = []
    escaped = False
    for c in value:
        if escaped:
            out.append("\n" if c in "nN" else c)
            escaped = False
        elif c == "\\":
            escaped = True
        else:
            out.append(c)
    if escaped:
        out.append("\\")
    return "".join(out)


def escape_newlines(value: str) -> str:
    return _NEWLINE.sub("\\\\n", value)


def has_newlines(value: str) -> bool:
    return _NEWLINE.search(value) is not None


def split_escaped(text: str, delimiter: str, unescape: bool = True, limit: int = -1) -> list[str]:
    """Split on every ``delimiter`` not preceded by a backslash.

    Each field is trimmed and, if ``unescape`` is set, unescaped. When
    ``limit`` is positive the result holds at most that many fields; the last
    one keeps the rest of the text.
    """
    fields: list[str] = []
    escaped = False
    start = 0
    for i, c in enumerate(text):
        if escaped:
            escaped = False
            continue
        if c == "\\":
            escaped = True
            continue
        if c == delimiter and (limit <= 0 or len(fields) < limit - 1):
            fields.append(text[start:i])
            start = i + 1
    fields.append(text[start:])

    fields = [f.strip() for f in fields]
    if unescape:
        fields = [unescape_text(f) for f in fields]
    return fields


def parse_list(text: str) -> list[str]:
    """Comma-separated list, e.g. CATEGORIES. An empty value is an empty list."""
    if not text:
        return []
    return split_escaped(text, ",")


def write_list(values: Iterable[str]) -> str:
    return ",".join(escape_text(v) for v in values)


def parse_structured(text: str) -> list[list[str]]:
    """``a;b1,b2;;d`` -> ``[["a"], ["b1", "b2"], [], ["d"]]``."""
    if not text:
        return []
    components = split_escaped(text, ";", unescape=False)
    return [parse_list(c) for c in components]


def write_structured(components: Iterable[Iterable[str]], include_trailing: bool = True) -> str:
    parts = [write_list(c) for c in components]
    if not include_trailing:
        while parts and not parts[-1]:
            parts.pop()
    return ";".join(parts)


# ── Quoted-printable ───────────────────────────────────────────────────────────

def lookup_charset(name: str | None, default: str = "utf-8") -> str | None:
    """Normalized codec name, or ``None`` if Python does not know ``name``."""
    if name is None:
        return default
    try:
        return codecs.lookup(name).name
    except LookupError:
        return None


def decode_quoted_printable(value: str, charset: str = "utf-8") -> str:
    """Raises ``ValueError`` if the decoded bytes are not valid in ``charset``."""
    raw = quopri.decodestring(value.encode("latin-1", errors="replace"))
    return raw.decode(charset)


def encode_quoted_printable(value: str, charset: str = "utf-8") -> str:
    out: list[str] = []
    data = value.encode(charset)
    last = len(data) - 1
    for i, b in enumerate(data):
        if (33 <= b <= 126 and b != 61) or (b in (9, 32) and i != last):
            out.append(chr(b))
        else:
            out.append(f"={b:02X}")
    return "".join(out)


# ── Parameter value caret encoding ─────────────────────────────────────────────

def encode_caret(value: str) -> str:
    value = value.replace("^", "^^")
    value = _NEWLINE.sub("^n", value)
    return value.replace('"', "^'")


def decode_caret(value: str) -> str:
    if "^" not in value:
        return value
    out: list[str] = []
    i = 0
    while i < len(value):
        c = value[i]
        nxt = value[i + 1] if i + 1 < len(value) else ""
        if c == "^" and nxt in ("^", "n", "'"):
            out.append({"^": "^", "n": "\n", "'": '"'}[nxt])
            i += 2
            continue
        out.append(c)
        i += 1
    return "".join(out)
