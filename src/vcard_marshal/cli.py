from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import load_settings
from .io import FORMATS, collect_sources, format_for, read_cards_from_files, to_vobject, write_string
from .report import print_summary, print_warnings, write_warnings_file
from .versions import VCardVersion

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="vcard-marshal: read, check and convert vCards between text, xCard, jCard and hCard.",
)
console = Console()


def _expand(inputs: list[Path]) -> list[Path]:
    files: list[Path] = []
    for p in inputs:
        if p.is_dir():
            files.extend(collect_sources(p))
        elif p.is_file():
            files.append(p)
        else:
            console.print(f"[yellow]Skipping missing path {p}[/yellow]")
    return files


def _read(inputs: list[Path]):
    files = _expand(inputs)
    if not files:
        console.print("[bold red]No vCard files found.[/bold red]")
        raise typer.Exit(code=2)
    try:
        return read_cards_from_files(files)
    except (ValueError, ET.ParseError) as e:
        # malformed XML or JSON
        console.print(f"[bold red]Could not read input: {e}[/bold red]")
        raise typer.Exit(code=2) from e


# ── `convert` command ──────────────────────────────────────────────────────────

@app.command()
def convert(
    inputs: list[Path] = typer.Argument(..., help="Input files or folders (.vcf, .xml, .json, .html)"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output path; prints to stdout if omitted"),
    fmt: str | None = typer.Option(
        None, "--format", "-f",
        help="Output syntax: text, xml, json or html. Defaults to the output suffix, else text.",
    ),
    target: str | None = typer.Option(
        None, "--vcard-version", "-V",
        help="Target version for text output (2.1, 3.0 or 4.0). Falls back to the config file.",
    ),
    config: Path | None = typer.Option(None, "--config", "-c", help="TOML config file"),
    warnings_file: Path | None = typer.Option(None, "--warnings-file", help="Write warnings to this file"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print warnings or the summary"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging"),
) -> None:
    """Convert vCards from any supported syntax into another."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    settings = load_settings(config)

    fmt = fmt or (format_for(output) if output is not None else "text")
    if fmt not in FORMATS:
        console.print(f"[bold red]Unknown format {fmt!r}; expected one of {', '.join(FORMATS)}.[/bold red]")
        raise typer.Exit(code=2)

    version = VCardVersion.find(target or settings.version)
    if version is None:
        console.print(f"[bold red]Unknown vCard version {target!r}.[/bold red]")
        raise typer.Exit(code=2)

    results = _read(inputs)
    cards = [card for card, _, _ in results]
    text = write_string(cards, fmt, version, **settings.writer_options(fmt))

    if output is None:
        typer.echo(text, nl=False)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8", newline="")

    if warnings_file is not None:
        write_warnings_file(results, warnings_file)

    if not quiet and output is not None:
        print_warnings(results)
        print_summary(results, out_path=output, written=len(cards))


# ── `check` command ────────────────────────────────────────────────────────────

@app.command()
def check(
    inputs: list[Path] = typer.Argument(..., help="Input files or folders (.vcf, .xml, .json, .html)"),
    strict: bool = typer.Option(False, "--strict", help="Exit with code 1 if any card has warnings"),
    cross_check: bool = typer.Option(
        False, "--vobject",
        help="Also hand every card to vobject as 3.0 text and report cards it rejects",
    ),
) -> None:
    """Read vCards and report what could not be read cleanly."""
    results = _read(inputs)

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
    table.add_column("Source file")
    table.add_column("Cards")
    table.add_column("Warnings")
    per_source: dict[str, list[int]] = {}
    for _, label, warnings in results:
        counts = per_source.setdefault(label, [0, 0])
        counts[0] += 1
        counts[1] += len(warnings)
    for label, (n, w) in sorted(per_source.items()):
        table.add_row(label, str(n), f"[yellow]{w}[/yellow]" if w else "0")
    console.print(Panel(table, title="vcard-marshal check", border_style="cyan"))

    print_warnings(results)

    rejected = 0
    if cross_check:
        for card, label, _ in results:
            try:
                to_vobject(card)
            except Exception as e:  # vobject raises several unrelated types
                rejected += 1
                console.print(f"  [red]vobject rejected[/red] {card.formatted_name or 'Unnamed'} ({label}): {e}")
        if not rejected:
            console.print("  [green]vobject read every card.[/green]")

    if rejected or (strict and any(w for _, _, w in results)):
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
