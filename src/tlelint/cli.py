#!/usr/bin/env python3
"""tlelint command-line interface.

Usage::

    tlelint validate catalog.tle --profile permissive
    tlelint parse catalog.tle --filter starlink --output elements.csv
    tlelint scan corrupted.tle --max-recovery 5
    tlelint report catalog.tle
    cat iss.tle | tlelint validate -
"""
from __future__ import annotations

import sys
import logging
from dataclasses import replace

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box
from rich.markup import escape

from .batch import (
    RecordFilter,
    elements_frame,
    issues_frame,
    parse_batch,
    results_frame,
    scan_batch,
    split_tles,
)
from .issues import Issue, TLEError
from .state_machine import ParseResult, StateMachineOptions
from .tle_parser import PROFILES, ParseMode, ParseOptions, ValidationResult, validate_tle

console = Console()

_SEVERITY_STYLE = {"warning": "yellow", "error": "red", "critical": "bold red"}


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """tlelint: validate and diagnose NORAD Two-Line Element sets."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s: %(message)s")


@main.command()
@click.argument("filepath", type=click.Path(exists=True, allow_dash=True))
@click.option("--profile", "-p", default="strict", type=click.Choice(PROFILES),
              help="Parser profile")
@click.option("--mode", "-m", type=click.Choice([m.value for m in ParseMode]),
              help="Override the profile's parse mode")
@click.option("--lenient-checksums", is_flag=True, help="Report checksum problems as warnings")
@click.option("--no-ranges", is_flag=True, help="Skip numeric range checks")
def validate(
    filepath: str,
    profile: str,
    mode: str | None,
    lenient_checksums: bool,
    no_ranges: bool,
):
    """Check every TLE in a file and list all problems found."""
    options = _build_options(profile, mode, lenient_checksums, no_ranges)
    blocks = _read_blocks(filepath)
    if not blocks:
        console.print("[yellow]No TLEs found.[/yellow]")
        return

    results = [validate_tle(block, options) for block in blocks]
    _display_validation(results)

    failed = sum(not r.is_valid for r in results)
    if failed:
        console.print(f"\n[red]{failed} of {len(results)} TLE(s) failed validation[/red]")
        sys.exit(1)
    console.print(f"\n[green]All {len(results)} TLE(s) valid[/green]")


@main.command()
@click.argument("filepath", type=click.Path(exists=True, allow_dash=True))
@click.option("--profile", "-p", default="strict", type=click.Choice(PROFILES),
              help="Parser profile")
@click.option("--filter", "-f", "name_filter", help="Regex matched against satellite names")
@click.option("--output", "-o", type=click.Path(), help="Save orbital elements to CSV")
def parse(filepath: str, profile: str, name_filter: str | None, output: str | None):
    """Parse a TLE file into orbital elements."""
    text = _read_text(filepath)
    record_filter = RecordFilter(name_pattern=name_filter) if name_filter else None

    try:
        records = parse_batch(text, ParseOptions.for_profile(profile), record_filter=record_filter)
    except TLEError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        sys.exit(1)

    if not records:
        console.print("[yellow]No TLEs found.[/yellow]")
        return

    df = elements_frame(records)
    console.print(f"Parsed {len(records)} TLE(s) from {filepath}")
    if not df.empty:
        _display_elements_table(df)

    if output:
        df.to_csv(output, index=False)
        console.print(f"\nResults saved to {output}")


@main.command()
@click.argument("filepath", type=click.Path(exists=True, allow_dash=True))
@click.option("--strict", is_flag=True, help="Fail on the first error-severity issue")
@click.option("--no-recovery", is_flag=True, help="Disable error recovery")
@click.option("--max-recovery", default=10, show_default=True, type=click.IntRange(min=0),
              help="Recovery actions allowed per TLE")
def scan(filepath: str, strict: bool, no_recovery: bool, max_recovery: int):
    """Parse with error recovery and show what could be salvaged."""
    options = StateMachineOptions(
        attempt_recovery=not no_recovery,
        max_recovery_attempts=max_recovery,
        strict_mode=strict,
    )
    results = scan_batch(_read_text(filepath), options)
    if not results:
        console.print("[yellow]No TLEs found.[/yellow]")
        return

    _display_scan(results)

    failed = sum(not r.success for r in results)
    if failed:
        sys.exit(1)


@main.command()
@click.argument("filepath", type=click.Path(exists=True, allow_dash=True))
@click.option("--strict", is_flag=True, help="Count TLEs with error-severity issues as failed")
def report(filepath: str, strict: bool):
    """Summarize issue counts across a whole TLE file."""
    results = scan_batch(_read_text(filepath), StateMachineOptions(strict_mode=strict))
    if not results:
        console.print("[yellow]No TLEs found.[/yellow]")
        return

    summary = results_frame(results)
    issues = issues_frame(results)
    n_ok = int(summary["success"].sum())

    console.print(
        Panel(
            f"TLEs scanned: {len(summary)}\n"
            f"Completed: [bold green]{n_ok}[/bold green]\n"
            f"Failed: [bold red]{len(summary) - n_ok}[/bold red]\n"
            f"Errors: {int(summary['errors'].sum())}\n"
            f"Warnings: {int(summary['warnings'].sum())}\n"
            f"Recovery actions: {int(summary['recovery_actions'].sum())}",
            title="TLE Report",
            box=box.ROUNDED,
        )
    )

    if not issues.empty:
        counts = issues.groupby(["severity", "code"]).size().reset_index(name="count")
        counts = counts.sort_values("count", ascending=False)

        table = Table(title="Issues by Code", box=box.SIMPLE_HEAVY)
        table.add_column("Severity")
        table.add_column("Code", style="bold")
        table.add_column("Count", justify="right")
        for _, row in counts.iterrows():
            style = _SEVERITY_STYLE.get(row["severity"], "")
            table.add_row(f"[{style}]{row['severity']}[/{style}]", row["code"], str(row["count"]))
        console.print(table)

    if n_ok < len(summary):
        sys.exit(1)


def _build_options(
    profile: str,
    mode: str | None,
    lenient_checksums: bool,
    no_ranges: bool,
) -> ParseOptions:
    options = ParseOptions.for_profile(profile)
    overrides: dict = {}
    if mode:
        overrides["mode"] = mode
    if lenient_checksums:
        overrides["strict_checksums"] = False
    if no_ranges:
        overrides["validate_ranges"] = False
    return replace(options, **overrides) if overrides else options


def _read_text(filepath: str) -> str:
    with click.open_file(filepath) as fh:
        return fh.read()


def _read_blocks(filepath: str) -> list[str]:
    return split_tles(_read_text(filepath))


def _display_validation(results: list[ValidationResult]):
    """Display validation outcomes, then every problem per failing TLE."""
    table = Table(title="Validation Results", box=box.SIMPLE_HEAVY)
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("NORAD", justify="right")
    table.add_column("Status", style="bold")
    table.add_column("Errors", justify="right")
    table.add_column("Warnings", justify="right")

    for i, result in enumerate(results, start=1):
        record = result.record or {}
        status = "[green]OK[/green]" if result.is_valid else "[red]FAIL[/red]"
        table.add_row(
            str(i),
            escape(record.get("satellite_name") or ""),
            escape(record.get("satellite_number1") or "?"),
            status,
            str(len(result.errors)),
            str(len(result.warnings)),
        )
    console.print(table)

    for i, result in enumerate(results, start=1):
        if not result.is_valid:
            console.print(f"\n[bold]TLE {i}[/bold]")
            _print_issues(result.issues)


def _display_scan(results: list[ParseResult]):
    """Display state-machine outcomes with recovery counts."""
    table = Table(title="Scan Results", box=box.SIMPLE_HEAVY, show_lines=True)
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("NORAD", justify="right")
    table.add_column("State", style="bold")
    table.add_column("Errors", justify="right")
    table.add_column("Warnings", justify="right")
    table.add_column("Recoveries", justify="right")

    for i, result in enumerate(results, start=1):
        data = result.data or {}
        color = "green" if result.success else "red"
        table.add_row(
            str(i),
            escape(data.get("satellite_name") or ""),
            escape(data.get("satellite_number1") or "?"),
            f"[{color}]{result.final_state.value}[/{color}]",
            str(len(result.errors)),
            str(len(result.warnings)),
            str(len(result.recovery_actions)),
        )
    console.print(table)

    for i, result in enumerate(results, start=1):
        if result.errors:
            console.print(f"\n[bold]TLE {i}[/bold] ({result.final_state.value})")
            _print_issues(result.errors)
            for action in result.recovery_actions:
                console.print(f"  [cyan]↳ {action.kind.value}[/cyan] {escape(action.description)}")


def _display_elements_table(df):
    """Display a DataFrame of orbital elements as a rich table."""
    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("NORAD", justify="right")
    table.add_column("Name")
    table.add_column("Epoch", style="cyan")
    table.add_column("Alt (km)", justify="right")
    table.add_column("Inc (°)", justify="right")
    table.add_column("Ecc", justify="right")
    table.add_column("Period (min)", justify="right")

    for _, row in df.head(50).iterrows():
        table.add_row(
            str(row["norad_id"]),
            escape(str(row["name"] or "")),
            f"{row['epoch']:%Y-%m-%d %H:%M}",
            f"{row['altitude_km']:.1f}",
            f"{row['inclination_deg']:.4f}",
            f"{row['eccentricity']:.7f}",
            f"{row['period_s'] / 60:.2f}",
        )

    if len(df) > 50:
        console.print(f"(showing 50 of {len(df)} TLEs)")
    console.print(table)


def _print_issues(issues: tuple[Issue, ...]):
    for issue in issues:
        style = _SEVERITY_STYLE.get(issue.severity.value, "")
        console.print(f"  [{style}]{issue.severity.value:<8}[/{style}] {issue.code.value}: {escape(issue.message)}")


if __name__ == "__main__":
    main()
