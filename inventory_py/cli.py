"""
Command-line interface for app-inventory.

This module provides the ``app-inventory`` entry point: scanning the host,
diffing saved snapshots and listing the known sources, presets and package
managers.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from inventory_py import __version__
from inventory_py.collectors.distro import detect_package_managers
from inventory_py.config import ConfigurationError, InventoryConfig
from inventory_py.diff import diff_snapshots, load_snapshot
from inventory_py.output import print_report, print_summary, write_report
from inventory_py.pipeline import InventoryPipeline
from inventory_py.registry import PRESETS, default_registry
from inventory_py.serializer import render

# Report goes to stdout; logs and the summary go to stderr
console = Console()
err_console = Console(stderr=True)
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(console=err_console, rich_tracebacks=True)],
)
logger = logging.getLogger("inventory")

app = typer.Typer(
    help="Inventory installed software across package managers, stores and toolchains.",
    add_completion=False,
)


def log_error(message: str) -> None:
    """Log an error message to both logger and stderr console."""
    logger.error(message)
    err_console.print(f"[red]{message}[/red]")


def split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def resolve_format(
    fmt: Optional[str], json_output: bool, csv_output: bool
) -> Optional[str]:
    """Combine ``--format`` with the ``--json``/``--csv`` shorthands."""
    if json_output and csv_output:
        raise ConfigurationError("Use only one of --json and --csv")
    if json_output:
        return "json"
    if csv_output:
        return "csv"
    return fmt.lower() if fmt else None


@app.callback(invoke_without_command=True)
def callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Only show warnings and errors."
    ),
    log_json: bool = typer.Option(
        False, "--log-json", help="Output logs in JSON format."
    ),
    version: bool = typer.Option(
        False, "--version", help="Show the application version and exit."
    ),
) -> None:
    """
    app-inventory: one normalized list of everything installed on this machine.
    """
    if version:
        console.print(f"app-inventory version: {__version__}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit()

    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logger.setLevel(level)
    logger.debug("Verbose logging enabled")

    if log_json:
        for handler in list(logging.root.handlers):
            logging.root.removeHandler(handler)
        logging.basicConfig(
            level=level,
            format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", '
            '"logger": "%(name)s", "message": "%(message)s"}',
            datefmt="%Y-%m-%dT%H:%M:%S",
            stream=sys.stderr,
        )
        logger.debug("JSON logging enabled")


@app.command()
def scan(
    fmt: Optional[str] = typer.Option(
        None, "--format", "-f", help="Output format: tsv, csv or json."
    ),
    json_output: bool = typer.Option(False, "--json", help="Same as --format json."),
    csv_output: bool = typer.Option(False, "--csv", help="Same as --format csv."),
    outfile: Optional[str] = typer.Option(
        None,
        "--outfile",
        "-o",
        help="Save the report here. CSV/JSON default to ~/installed-apps.<ext>.",
    ),
    search: Optional[str] = typer.Option(
        None, "--search", "-s", help="Only keep names containing this text."
    ),
    sources: Optional[str] = typer.Option(
        None, "--sources", help="Comma-separated sources to scan (only these)."
    ),
    preset: Optional[str] = typer.Option(
        None, "--preset", "-p", help="Preset name or number (see 'presets')."
    ),
    managers: Optional[str] = typer.Option(
        None,
        "--managers",
        help="Comma-separated package managers for the repo source, or 'all'.",
    ),
    orphans_only: bool = typer.Option(
        False, "--orphans-only", help="Only list orphaned packages."
    ),
    all_packages: Optional[bool] = typer.Option(
        None,
        "--all-packages/--apps-only",
        help="Include libraries and runtimes, not just explicitly installed apps.",
    ),
    run_binaries: bool = typer.Option(
        False,
        "--run-binaries",
        help="Run discovered binaries with --version to read their versions.",
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", help="Per-source timeout in seconds."
    ),
    diff: Optional[str] = typer.Option(
        None, "--diff", help="Compare the result against a saved TSV snapshot."
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to a YAML config file."
    ),
) -> None:
    """
    Scan the enabled sources and print the inventory report.
    """
    registry = default_registry()
    try:
        config = InventoryConfig.load(Path(config_path) if config_path else None)
        config = config.merge(
            output_format=resolve_format(fmt, json_output, csv_output),
            output_path=outfile,
            search=search,
            preset=preset,
            managers=split_list(managers) or None,
            orphans_only=orphans_only or None,
            include_all_packages=all_packages,
            run_binaries=run_binaries or None,
            timeout=timeout,
        )
        if sources:
            config = config.merge(sources=registry.only(split_list(sources)))

        # Reject a bad diff input before any collector runs
        old_snapshot = load_snapshot(Path(diff).expanduser()) if diff else None
        result = InventoryPipeline(registry, config).run()
    except ConfigurationError as e:
        log_error(str(e))
        raise typer.Exit(1) from e

    out_format = config.output.format
    data = render(result.records, out_format)
    print_report(result.records, out_format, data, console)

    saved_to = None
    target = config.output.resolved_path()
    if target is not None:
        try:
            saved_to = write_report(data, target, out_format)
        except OSError as e:
            log_error(f"Failed to save report: {e}")
            raise typer.Exit(1) from e

    print_summary(
        result.summary,
        err_console,
        include_all_packages=config.include_all_packages,
        orphans_only=config.orphans_only,
        duration=result.duration,
        skipped=result.selection.skipped,
        failed=[failure.source for failure in result.failures],
        saved_to=saved_to,
    )

    if old_snapshot is not None:
        changes = diff_snapshots(old_snapshot, result.snapshot())
        err_console.print()
        for line in changes.lines():
            typer.echo(line, err=True)


@app.command(name="diff")
def diff_command(
    old: str = typer.Argument(..., help="Older TSV snapshot."),
    new: str = typer.Argument(..., help="Newer TSV snapshot."),
) -> None:
    """
    Compare two saved TSV snapshots by package name.
    """
    try:
        old_snapshot = load_snapshot(Path(old).expanduser())
        new_snapshot = load_snapshot(Path(new).expanduser())
    except ConfigurationError as e:
        log_error(str(e))
        raise typer.Exit(1) from e

    changes = diff_snapshots(old_snapshot, new_snapshot)
    for line in changes.lines():
        typer.echo(line)
    if changes.unchanged:
        logger.info("No packages added or removed")


@app.command(name="sources")
def list_sources() -> None:
    """
    List every known source, whether it is available here and on by default.
    """
    registry = default_registry()
    table = Table(title="Sources")
    table.add_column("Source")
    table.add_column("Aliases")
    table.add_column("Types")
    table.add_column("Available")
    table.add_column("Default")

    for collector in registry.collectors():
        table.add_row(
            collector.source_id,
            ", ".join(collector.aliases),
            ", ".join(collector.record_types),
            "yes" if collector.is_available() else "[dim]no[/dim]",
            "on" if collector.default_enabled else "off",
        )
    console.print(table)


@app.command(name="presets")
def list_presets() -> None:
    """
    List the presets with the sources each one enables on this host.
    """
    registry = default_registry()
    table = Table(title="Presets")
    table.add_column("#")
    table.add_column("Name")
    table.add_column("Description")
    table.add_column("Sources on this host")

    for preset in PRESETS:
        selection = registry.preset_selection(preset.name)
        table.add_row(
            str(preset.number),
            preset.name,
            preset.label,
            ", ".join(selection.enabled) or "[dim](none)[/dim]",
        )
    console.print(table)


@app.command(name="managers")
def list_managers() -> None:
    """
    List the distro package managers found on this host.
    """
    found = detect_package_managers(with_versions=True)
    if not found:
        logger.info("No supported package managers found")
        return

    table = Table(title="Package managers")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Version")
    for manager in found:
        table.add_row(manager.id, manager.label, manager.version)
    console.print(table)


@app.command()
def version() -> None:
    """Show the application version and exit."""
    console.print(f"app-inventory version: {__version__}")


if __name__ == "__main__":
    app()
