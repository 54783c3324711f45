"""CLI module for anonymised database exports.

Usage:
    db-anonymiser export --config dump.yaml --output dump.sql
    db-anonymiser export --config dump.yaml --dry-run
    db-anonymiser export --config dump.yaml --seed 42 > dump.sql
    db-anonymiser sync --config dump.yaml --truncate
    db-anonymiser version

Commands:
    export  - Write an anonymised dump to a file or stdout
    sync    - Add database tables missing from the config file
    version - Print the package version
"""

import argparse
import asyncio
import logging
import sys
import warnings
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from db_anonymiser import __version__
from db_anonymiser.config.loader import load_dump_config, save_dump_config
from db_anonymiser.dump.writer import DEFAULT_BATCH_SIZE
from db_anonymiser.errors import DumpError, ValidationWarning
from db_anonymiser.pipeline import plan_export, run_export, sync_config_tables

# stdout may carry the dump itself, so every message goes to stderr
console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_export(args: argparse.Namespace) -> int:
    """Async implementation for export command.

    Args:
        args: Parsed arguments with config, output, batch_size, seed, dry_run.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = load_dump_config(args.config)
    except DumpError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if args.dry_run:
        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", ValidationWarning)
                plans = await plan_export(config)
        except DumpError as e:
            console.print(f"[red]Error: {e}[/red]")
            return 1

        table = Table(title="Export Plan (dry run)")
        table.add_column("Table", style="cyan")
        table.add_column("Rows", justify="right")
        table.add_column("Action")
        table.add_column("Anonymised columns", style="dim")
        table.add_column("FK integrity", justify="center")
        for plan in plans:
            table.add_row(
                plan.name,
                str(plan.row_count),
                plan.action,
                ", ".join(plan.anonymised_columns) or "-",
                "yes" if plan.enforce_fk_integrity else "no",
            )
        console.print(table)

        problems = [p for plan in plans for p in plan.rule_problems]
        if problems:
            console.print("[bold yellow]Rule warnings[/bold yellow] (values exported unchanged):")
            for message in problems:
                console.print(f"  ! {message}", markup=False)
        console.print("[bold yellow]DRY RUN[/bold yellow] - No data exported.")
        return 0

    output_path = Path(args.output) if args.output else None
    try:
        # Validation warnings are already logged by the anonymiser
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ValidationWarning)
            if output_path is None:
                stats = await run_export(
                    config, sys.stdout, batch_size=args.batch_size, seed=args.seed
                )
            else:
                with open(output_path, "w", encoding="utf-8") as out:
                    stats = await run_export(
                        config, out, batch_size=args.batch_size, seed=args.seed
                    )
    except DumpError as e:
        console.print(f"[bold red]x[/bold red] Export failed: {e}")
        if output_path is not None:
            console.print(f"[yellow]{output_path} is incomplete and must not be loaded.[/yellow]")
        return 1
    except OSError as e:
        console.print(f"[red]Error: cannot open output file: {e}[/red]")
        return 1

    summary = Table(title="Export Statistics", show_header=False)
    summary.add_column("Metric", style="cyan")
    summary.add_column("Value", justify="right")
    summary.add_row("Tables exported", str(stats.tables_exported))
    summary.add_row("Tables truncated", str(stats.tables_truncated))
    summary.add_row("Rows exported", str(stats.rows_exported))
    if stats.rows_skipped:
        summary.add_row("Rows skipped (FK integrity)", str(stats.rows_skipped))
    summary.add_row("Duration", f"{stats.duration_seconds:.2f}s")
    console.print(summary)
    if output_path is not None:
        console.print(f"[bold green]v[/bold green] Dump written to {output_path}")
    return 0


async def _async_sync(args: argparse.Namespace) -> int:
    """Async implementation for sync command.

    Args:
        args: Parsed arguments with config, truncate, dry_run.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = load_dump_config(args.config)
        added = await sync_config_tables(config, truncate=args.truncate)
    except DumpError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if not added:
        console.print("[bold green]v[/bold green] Config already lists every table.")
        return 0

    mode = "truncate" if args.truncate else "full export"
    console.print(f"New tables ({mode}):")
    for name in added:
        console.print(f"  + [cyan]{name}[/cyan]")

    if args.dry_run:
        console.print()
        console.print("[bold yellow]DRY RUN[/bold yellow] - Config file not modified.")
        return 0

    try:
        save_dump_config(config, args.config)
    except DumpError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print(f"[bold green]v[/bold green] Added {len(added)} tables to {args.config}")
    return 0


# ============================================================================
# Sync command wrappers
# ============================================================================


def cmd_export(args: argparse.Namespace) -> int:
    """Export the configured database.

    Wraps the async implementation with ``asyncio.run()``.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    return asyncio.run(_async_export(args))


def cmd_sync(args: argparse.Namespace) -> int:
    """Add missing tables to the config file.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_sync(args))


def cmd_version(args: argparse.Namespace) -> int:
    print(f"db-anonymiser {__version__}")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-anonymiser",
        description="Export anonymised, minimised database dumps",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # export command
    p_export = subparsers.add_parser(
        "export",
        help="Write an anonymised dump",
    )
    p_export.add_argument(
        "--config",
        "-c",
        required=True,
        help="Path to YAML, JSON or TOML config file",
    )
    p_export.add_argument(
        "--output",
        "-o",
        help="Dump file to write (default: stdout)",
    )
    p_export.add_argument(
        "--batch-size",
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help=f"Rows per INSERT statement (default: {DEFAULT_BATCH_SIZE})",
    )
    p_export.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed fake value generation for reproducible dumps",
    )
    p_export.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be exported without reading any rows",
    )
    p_export.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log progress to stderr",
    )
    p_export.set_defaults(func=cmd_export)

    # sync command
    p_sync = subparsers.add_parser(
        "sync",
        help="Add database tables missing from the config file",
    )
    p_sync.add_argument(
        "--config",
        "-c",
        required=True,
        help="Path to YAML or JSON config file",
    )
    p_sync.add_argument(
        "--truncate",
        action="store_true",
        help="Mark new tables as truncate (structure only)",
    )
    p_sync.add_argument(
        "--dry-run",
        action="store_true",
        help="List new tables without modifying the config file",
    )
    p_sync.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log progress to stderr",
    )
    p_sync.set_defaults(func=cmd_sync)

    # version command
    p_version = subparsers.add_parser(
        "version",
        help="Print the package version",
    )
    p_version.set_defaults(func=cmd_version)

    args = parser.parse_args(argv)
    _configure_logging(getattr(args, "verbose", False))
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
