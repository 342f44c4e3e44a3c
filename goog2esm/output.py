"""JSON serialisation of the conversion result."""

from __future__ import annotations

import json
import subprocess
from datetime import datetime, timezone
from pathlib import Path

from goog2esm import __version__
from goog2esm.config import ConversionConfig, ConversionResult, Demotion, ScanWarning
from goog2esm.graph.namespace_graph import NamespaceGraph
from goog2esm.phases.selection import Selection, is_test_file


def _get_commit_hash(repo_path: str) -> str | None:
    """Try to get the current git commit hash."""
    if not repo_path:
        return None
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=repo_path,
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()[:12]
    except (subprocess.TimeoutExpired, FileNotFoundError, NotADirectoryError):
        pass
    return None


def _file_entry(graph: NamespaceGraph, path: str) -> dict:
    record = graph.record(path)
    return {
        "path": path,
        "provides": list(record.provides),
        "module": record.is_module,
        "test": is_test_file(graph, path),
        "dependencies": [
            {
                "namespace": dep.namespace,
                "kind": dep.kind.value,
                "file": graph.provider_of.get(dep.namespace),
                "line": dep.line,
            }
            for dep in graph.dependencies_of(path)
        ],
    }


def build_result(
    config: ConversionConfig,
    graph: NamespaceGraph,
    selection: Selection,
    demotions: list[Demotion],
    load_order: list[str],
    warnings: list[ScanWarning],
    timings: dict[str, float],
    total_ms: float,
) -> ConversionResult:
    """Build the ConversionResult from the final graph state."""
    repo_path = str(Path(config.repo_path).resolve()) if config.repo_path else ""
    selected = selection.sorted()
    forward_count = sum(
        1 for path in selected for dep in graph.dependencies_of(path) if not dep.is_hard
    )

    return ConversionResult(
        version="1.0",
        metadata={
            "repo_path": repo_path,
            "converted_at": datetime.now(timezone.utc).isoformat(),
            "goog2esm_version": __version__,
            "commit_hash": _get_commit_hash(repo_path),
            "analysis_duration_ms": round(total_ms, 1),
            "phase_timings": timings,
            "roots": list(selection.roots),
            "test_roots": list(selection.test_roots),
            "skipped_tests": list(selection.skipped_tests),
        },
        stats={
            "files": len(graph.all_files()),
            "namespaces": len(graph.provider_of),
            "selected": len(selected),
            "demotions": len(demotions),
            "forward_declarations": forward_count,
            "warnings": len(warnings),
        },
        selected=selected,
        files=[_file_entry(graph, path) for path in selected],
        demotions=[
            {
                "from": d.source,
                "to": d.target,
                "namespaces": list(d.namespaces),
                "cycle": list(d.cycle),
            }
            for d in demotions
        ],
        load_order=list(load_order),
        warnings=[str(w) for w in warnings],
    )


def write_output(result: ConversionResult, output_path: str) -> None:
    """Write the conversion result to a JSON file."""
    from dataclasses import asdict

    data = asdict(result)
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)
