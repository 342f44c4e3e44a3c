"""Sequential phase orchestrator with timing."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field

from goog2esm.config import ConversionConfig, ConversionResult, Demotion, ScanWarning
from goog2esm.graph.namespace_graph import NamespaceGraph
from goog2esm.output import build_result
from goog2esm.phases.cycles import break_cycles, cyclic_components, hard_load_order
from goog2esm.phases.discovery import discover_sources
from goog2esm.phases.scanning import run_scanning_phase
from goog2esm.phases.selection import Selection, select_files
from goog2esm.phases.validation import validate_graph

logger = logging.getLogger(__name__)

_PHASE_LABELS = {
    "discovery": "Finding source files",
    "scanning": "Scanning namespace declarations",
    "validation": "Validating dependencies",
    "selection": "Selecting required files",
    "cycles": "Breaking dependency cycles",
}


@dataclass
class PipelineState:
    """Intermediate products shared between phases."""
    sources: list[tuple[str, str]] = field(default_factory=list)
    graph: NamespaceGraph | None = None
    warnings: list[ScanWarning] = field(default_factory=list)
    selection: Selection | None = None
    demotions: list[Demotion] = field(default_factory=list)
    load_order: list[str] = field(default_factory=list)


def run_pipeline(
    config: ConversionConfig,
    sources: Iterable[tuple[str, str]] | None = None,
    progress_callback=None,
) -> ConversionResult:
    """Execute the conversion pipeline and return the result.

    Args:
        config: Conversion configuration.
        sources: Optional (path, text) pairs. When omitted, sources are
            discovered under ``config.repo_path``.
        progress_callback: Optional callable(phase_name, label) invoked
            when each phase starts. Used by the CLI for Rich progress.

    Raises:
        ConversionError: any fatal diagnostic. Nothing is written.
    """
    state = PipelineState()
    timings: dict[str, float] = {}
    total_start = time.monotonic()

    def _discover() -> None:
        state.sources = list(sources) if sources is not None else discover_sources(config)

    def _scan() -> None:
        state.graph, state.warnings = run_scanning_phase(state.sources)

    def _select() -> None:
        state.selection = select_files(
            state.graph,
            roots=config.roots,
            include_tests=config.include_tests,
            excluded=config.excluded,
        )

    def _break() -> None:
        files = state.selection.files
        if config.break_cycles:
            state.demotions = break_cycles(state.graph, restrict_to=files)
        elif cyclic_components(state.graph, files):
            logger.warning("Cycle breaking disabled and HARD cycles remain; no load order computed")
            return
        state.load_order = hard_load_order(state.graph, files)

    phases = [
        ("discovery", _discover),
        ("scanning", _scan),
        ("validation", lambda: validate_graph(state.graph)),
        ("selection", _select),
        ("cycles", _break),
    ]

    for name, phase_fn in phases:
        if progress_callback:
            progress_callback(name, _PHASE_LABELS.get(name, name))
        start = time.monotonic()
        phase_fn()
        timings[name] = time.monotonic() - start

    total_ms = (time.monotonic() - total_start) * 1000

    return build_result(
        config,
        state.graph,
        state.selection,
        state.demotions,
        state.load_order,
        state.warnings,
        timings,
        total_ms,
    )
