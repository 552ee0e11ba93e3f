"""Folding, escaping, quoted-printable and caret encoding."""
from __future__ import annotations

import random

import pytest

from vcard_marshal.linecodec import (
    FoldedLineReader,
    decode_caret,
    decode_quoted_printable,
    encode_caret,
    encode_quoted_printable,
    escape_text,
    fold,
    lookup_charset,
    parse_list,
    parse_structured,
    split_escaped,
    unescape_text,
    unfold,
    write_structured,
)


# ── Folding ────────────────────────────────────────────────────────────────────

def test_fold_splits_at_width():
    folded = fold("A" * 100, 75)
    assert folded.split("\r\n") == ["A" * 75, " " + "A" * 25]


def test_fold_short_line_untouched():
    assert fold("FN:Alice", 75) == "FN:Alice"


def test_fold_disabled():
    assert fold("A" * 200, None) == "A" * 200


def test_fold_rejects_bad_width():
    with pytest.raises(ValueError):
        fold("abc", 0)
    with pytest.raises(ValueError):
        fold("abc", 2, indent="  ")


def test_fold_custom_newline_and_indent():
    folded = fold("B" * 30, 10, indent="\t", newline="\n")
    lines = folded.split("\n")
    assert lines[0] == "B" * 10
    assert all(line.startswith("\t") for line in lines[1:])
    assert all(len(line) <= 10 for line in lines)


def test_unfold_roundtrip():
    assert list(unfold(fold("A" * 100, 75))) == ["A" * 100]


def test_unfold_skips_blank_lines():
    assert list(unfold("A\r\n\r\nB\n")) == ["A", "B"]


def test_unfold_drops_leading_whitespace_run():
    assert list(unfold("NOTE:one\r\n   two")) == ["NOTE:onetwo"]


def test_unfold_quoted_printable_soft_breaks():
    text = "NOTE;ENCODING=QUOTED-PRINTABLE:abc=\r\n def=\r\nghi\r\nFN:x"
    assert list(unfold(text)) == ["NOTE;ENCODING=QUOTED-PRINTABLE:abcdefghi", "FN:x"]


# generated lines: whitespace runs at break points, multi-byte characters, escapable punctuation
_ALPHABET = "abcXYZ019 \t,;:\\=éß日本😀"


def _random_text(rng: random.Random, min_len: int = 1, max_len: int = 200) -> str:
    return "".join(rng.choice(_ALPHABET) for _ in range(rng.randint(min_len, max_len)))


@pytest.mark.parametrize("seed", range(40))
def test_unfold_reverses_fold(seed):
    rng = random.Random(seed)
    line = "X" + _random_text(rng)
    width = rng.randint(5, 40)
    folded = fold(line, width)
    assert list(unfold(folded)) == [line]
    assert all(not physical[1:2].isspace() for physical in folded.split("\r\n")[1:])


@pytest.mark.parametrize("seed", range(20))
def test_fold_respects_width_without_whitespace(seed):
    rng = random.Random(seed)
    line = "".join(rng.choice("abc,;é日😀") for _ in range(rng.randint(1, 300)))
    width = rng.randint(2, 30)
    assert all(len(physical) <= width for physical in fold(line, width).split("\r\n"))


@pytest.mark.parametrize("seed", range(40))
def test_unfold_reverses_quoted_printable_fold(seed):
    rng = random.Random(seed)
    value = _random_text(rng) + "\r\nend"
    prefix = "NOTE;ENCODING=QUOTED-PRINTABLE:"
    folded = fold(prefix + encode_quoted_printable(value), rng.randint(40, 76), quoted_printable=True)
    lines = list(unfold(folded + "\r\nFN:x"))
    assert len(lines) == 2
    assert lines[0].startswith(prefix)
    assert decode_quoted_printable(lines[0][len(prefix):]) == value
    assert lines[1] == "FN:x"


def test_line_numbers():
    reader = FoldedLineReader("A\r\n B\r\nC")
    assert reader.readline() == "AB"
    assert reader.line_number == 1
    assert reader.readline() == "C"
    assert reader.line_number == 3
    assert reader.readline() is None


# ── Escaping ───────────────────────────────────────────────────────────────────

def test_escape_text():
    assert escape_text("a,b;c\\d\ne") == "a\\,b\\;c\\\\d\\ne"


def test_escape_text_keeps_newlines_when_asked():
    assert escape_text("a\nb", newlines=False) == "a\nb"


def test_unescape_text():
    assert unescape_text("a\\,b\\;c\\\\d\\ne\\Nf") == "a,b;c\\d\ne\nf"


def test_split_escaped():
    assert split_escaped("a\\;b;c", ";") == ["a;b", "c"]
    assert split_escaped("a;b;c", ";", limit=2) == ["a", "b;c"]


def test_parse_structured():
    assert parse_structured("a;b1,b2;;d") == [["a"], ["b1", "b2"], [], ["d"]]
    assert parse_structured("") == []


def test_parse_list():
    assert parse_list("work,friends\\, old") == ["work", "friends, old"]
    assert parse_list("") == []


def test_write_structured_trailing():
    assert write_structured([["a"], [], []]) == "a;;"
    assert write_structured([["a"], [], []], include_trailing=False) == "a"


@pytest.mark.parametrize("seed", range(40))
def test_unescape_reverses_escape(seed):
    rng = random.Random(seed)
    value = _random_text(rng, 0, 60) + rng.choice(["", "\\", "\\\\", "\n", ","])
    assert unescape_text(escape_text(value)) == value


@pytest.mark.parametrize("seed", range(40))
def test_parse_structured_reverses_write(seed):
    rng = random.Random(seed)
    components = []
    for _ in range(rng.randint(2, 5)):
        values = [_random_text(rng, 1, 12).replace("\t", "").strip() for _ in range(rng.randint(0, 3))]
        components.append([v for v in values if v])
    assert parse_structured(write_structured(components)) == components


# ── Quoted-printable ───────────────────────────────────────────────────────────

def test_lookup_charset():
    assert lookup_charset("latin1") == "iso8859-1"
    assert lookup_charset("no-such-charset") is None
    assert lookup_charset(None) == "utf-8"


def test_decode_quoted_printable():
    assert decode_quoted_printable("caf=C3=A9") == "café"
    assert decode_quoted_printable("caf=E9", "iso-8859-1") == "café"


def test_encode_quoted_printable():
    assert encode_quoted_printable("a=b\r\n") == "a=3Db=0D=0A"
    assert encode_quoted_printable("a b ") == "a b=20"
    assert encode_quoted_printable("é") == "=C3=A9"


# ── Caret encoding ─────────────────────────────────────────────────────────────

def test_caret_roundtrip():
    raw = 'a^b"c\nd'
    encoded = encode_caret(raw)
    assert encoded == "a^^b^'c^nd"
    assert decode_caret(encoded) == raw


def test_caret_unknown_sequence_kept():
    assert decode_caret("^x") == "^x"
