"""goog2esm CLI - Resolve Closure namespace dependencies for ES module conversion."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from goog2esm.config import ConversionConfig
from goog2esm.errors import ConversionError

console = Console()


def _configure_logging(verbose: bool, quiet: bool) -> None:
    from rich.logging import RichHandler

    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _report_failure(error: ConversionError) -> None:
    """Print every collected diagnostic, then exit non-zero."""
    diagnostics = error.diagnostics()
    console.print(f"[bold red]Conversion failed:[/bold red] {escape(str(error))}")
    for line in diagnostics:
        console.print(f"  [red]-[/red] {escape(line)}")
    sys.exit(1)


@click.group()
def cli() -> None:
    """goog2esm - Untangle goog.provide/goog.require graphs for ES modules."""
    pass


def _run_with_progress(config: ConversionConfig):
    """Run the pipeline with Rich progress display."""
    from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
    from rich.table import Table

    from goog2esm.pipeline import run_pipeline

    with Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Initialising...", total=None)

        def on_phase(name, label):
            progress.update(task, description=label)

        result = run_pipeline(config, progress_callback=on_phase)

    stats = result.stats
    timings = result.metadata.get("phase_timings", {})

    table = Table(title=f"goog2esm: {Path(config.repo_path).name}", show_edge=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Files", str(stats.get("files", 0)))
    table.add_row("Namespaces", str(stats.get("namespaces", 0)))
    table.add_row("Selected", str(stats.get("selected", 0)))
    table.add_row("Demoted edges", str(stats.get("demotions", 0)))
    table.add_row("Forward declarations", str(stats.get("forward_declarations", 0)))
    table.add_row("Warnings", str(stats.get("warnings", 0)))

    duration = result.metadata.get("analysis_duration_ms", 0)
    table.add_row("Duration", f"{duration:.1f}ms")

    console.print(table)

    if config.verbose and timings:
        timing_table = Table(title="Phase Timings", show_edge=False)
        timing_table.add_column("Phase", style="bold")
        timing_table.add_column("Time (ms)", justify="right")
        for phase, secs in timings.items():
            timing_table.add_row(phase, f"{secs * 1000:.1f}")
        console.print(timing_table)

    return result


@cli.command("analyze")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("-o", "--output", "output_path", default=None, help="Output JSON file path")
@click.option("-r", "--root", "roots", multiple=True, help="Entry point file or namespace (repeatable)")
@click.option("--include-tests", is_flag=True, help="Also select the _test.js files of selected files")
@click.option("--exclude-file", "excluded", multiple=True, help="File that must never be selected")
@click.option("--exclude", multiple=True, help="Additional glob patterns to skip during discovery")
@click.option("--no-break-cycles", is_flag=True, help="Report cycles without demoting edges")
@click.option("--verbose", is_flag=True, help="Show debug logging and per-phase timings")
@click.option("--quiet", is_flag=True, help="Suppress all output except errors")
def analyze_cmd(
    path: str,
    output_path: str | None,
    roots: tuple[str, ...],
    include_tests: bool,
    excluded: tuple[str, ...],
    exclude: tuple[str, ...],
    no_break_cycles: bool,
    verbose: bool,
    quiet: bool,
) -> None:
    """Resolve, select and de-cycle the namespace graph of a source tree."""
    from goog2esm.output import write_output
    from goog2esm.pipeline import run_pipeline

    _configure_logging(verbose, quiet)
    repo_path = Path(path).resolve()

    if output_path is None:
        output_path = f"{repo_path.name}.goog2esm.json"

    config = ConversionConfig(
        repo_path=str(repo_path),
        output_path=output_path,
        roots=list(roots),
        include_tests=include_tests,
        excluded=list(excluded),
        exclude_patterns=list(exclude),
        break_cycles=not no_break_cycles,
        verbose=verbose,
        quiet=quiet,
    )

    try:
        if quiet:
            result = run_pipeline(config)
        else:
            result = _run_with_progress(config)
    except ConversionError as e:
        _report_failure(e)

    write_output(result, output_path)

    if not quiet:
        console.print(f"[green]Output written to:[/green] {output_path}")


@cli.command("check")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--exclude", multiple=True, help="Additional glob patterns to skip during discovery")
@click.option("--verbose", is_flag=True, help="Show debug logging")
def check_cmd(path: str, exclude: tuple[str, ...], verbose: bool) -> None:
    """Validate that every declared namespace has exactly one provider."""
    from goog2esm.phases.discovery import discover_sources
    from goog2esm.phases.scanning import run_scanning_phase
    from goog2esm.phases.validation import validate_graph

    _configure_logging(verbose, False)
    config = ConversionConfig(repo_path=str(Path(path).resolve()), exclude_patterns=list(exclude))

    try:
        graph, warnings = run_scanning_phase(discover_sources(config))
        validate_graph(graph)
    except ConversionError as e:
        _report_failure(e)

    for warning in warnings:
        console.print(f"[yellow]warning:[/yellow] {escape(str(warning))}")
    console.print(
        f"[green]OK[/green] {len(graph.all_files())} files, "
        f"{len(graph.provider_of)} namespaces, {len(warnings)} warning(s)"
    )


@cli.command("cycles")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--exclude", multiple=True, help="Additional glob patterns to skip during discovery")
@click.option("--verbose", is_flag=True, help="Show debug logging")
def cycles_cmd(path: str, exclude: tuple[str, ...], verbose: bool) -> None:
    """List HARD dependency cycles and the edges that would be demoted."""
    from rich.table import Table

    from goog2esm.phases.cycles import break_cycles, cyclic_components
    from goog2esm.phases.discovery import discover_sources
    from goog2esm.phases.scanning import run_scanning_phase
    from goog2esm.phases.validation import validate_graph

    _configure_logging(verbose, False)
    config = ConversionConfig(repo_path=str(Path(path).resolve()), exclude_patterns=list(exclude))

    try:
        graph, _ = run_scanning_phase(discover_sources(config))
        validate_graph(graph)
        components = cyclic_components(graph)
        demotions = break_cycles(graph)
    except ConversionError as e:
        _report_failure(e)

    if not components:
        console.print("[green]No dependency cycles[/green]")
        return

    for component in components:
        console.print(f"[bold]Cycle group[/bold] ({len(component)} files): {', '.join(component)}")

    table = Table(title="Demotions", show_edge=False)
    table.add_column("From", style="bold")
    table.add_column("To")
    table.add_column("Namespaces")
    for d in demotions:
        table.add_row(d.source, d.target, ", ".join(d.namespaces))
    console.print(table)


if __name__ == "__main__":
    cli()
