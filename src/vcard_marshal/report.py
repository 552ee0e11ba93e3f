from __future__ import annotations

from collections import Counter
from pathlib import Path

from rich.columns import Columns
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .model import Card

console = Console()

# ── Palette ────────────────────────────────────────────────────────────────────
_ACCENT  = "#4d9fff"
_GREEN   = "#3ecf8e"
_AMBER   = "#f0a500"
_RED     = "#f05c5c"
_TEXT    = "#c9d1e0"
_MID     = "#8896af"
_DIM     = "#546075"
_BORDER  = "#2a3347"

Result = tuple[Card, str, list[str]]


def _card_label(card: Card) -> str:
    return (card.formatted_name or "Unnamed")[:40]


def _stat_panel(value: str, label: str, colour: str) -> Panel:
    body = Text()
    body.append(f"{value}\n", style=f"bold {colour}")
    body.append(label, style=f"dim {_DIM}")
    return Panel(body, border_style=_BORDER, padding=(0, 2), expand=True)


def build_source_counts(results: list[Result]) -> dict[str, int]:
    return dict(Counter(label for _, label, _ in results))


def print_summary(results: list[Result], *, out_path: Path | None = None, written: int | None = None) -> None:
    warned = sum(1 for _, _, w in results if w)
    total_warnings = sum(len(w) for _, _, w in results)
    source_counts = build_source_counts(results)

    console.print()
    console.print(Text("  SUMMARY", style=f"dim {_DIM}"))
    console.print()
    console.print(Columns([
        _stat_panel(str(len(results)), "cards read", _ACCENT),
        _stat_panel(str(warned), "cards with warnings", _AMBER if warned else _GREEN),
        _stat_panel(str(total_warnings), "warnings", _AMBER if total_warnings else _GREEN),
    ], equal=True, expand=True))
    console.print()

    if len(source_counts) > 1:
        parts = Text()
        for i, (src, count) in enumerate(sorted(source_counts.items())):
            if i:
                parts.append("   ")
            parts.append(src, style=_MID)
            parts.append(f"  {count}", style=f"bold {_TEXT}")
        console.print(Panel(
            parts,
            title=Text("SOURCES READ", style=f"dim {_DIM}"),
            title_align="left",
            border_style=_BORDER,
            padding=(0, 1),
        ))
        console.print()

    if out_path is not None:
        body = Text()
        body.append(f"✓  Wrote {written if written is not None else len(results)} card(s)\n", style=f"bold {_GREEN}")
        body.append(str(out_path), style=f"dim {_MID}")
        console.print(Panel(body, border_style=_GREEN, padding=(0, 2)))


def print_warnings(results: list[Result]) -> None:
    warned = [(c, label, w) for c, label, w in results if w]
    if not warned:
        console.print(Text("  No warnings.", style=f"dim {_GREEN}"))
        return

    table = Table(show_header=True, header_style=f"bold {_TEXT}", box=None, padding=(0, 2))
    table.add_column("Source", style=_MID)
    table.add_column("Card", style=_TEXT)
    table.add_column("Warning", style=_AMBER)
    for card, label, warnings in warned:
        for i, w in enumerate(warnings):
            table.add_row(label if i == 0 else "", _card_label(card) if i == 0 else "", w)
    console.print(Panel(
        table,
        title=Text(f"WARNINGS  {len(warned)} card(s)", style=f"bold {_RED}"),
        title_align="left",
        border_style=_BORDER,
    ))


def write_warnings_file(results: list[Result], path: Path) -> None:
    warned = [(c, label, w) for c, label, w in results if w]
    lines: list[str] = [
        "vcard-marshal warnings",
        "=" * 40,
        f"Cards with warnings: {len(warned)}",
        "",
    ]
    for card, label, warnings in warned:
        lines.append(f"{_card_label(card)}:  (source: {label})")
        for w in warnings:
            lines.append(f"  - {w}")
        lines.append("")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines), encoding="utf-8")
