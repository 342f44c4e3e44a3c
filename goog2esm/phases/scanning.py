"""Phase 2: Declaration scanning and graph construction."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from goog2esm.config import ScanRecord, ScanWarning
from goog2esm.graph.namespace_graph import NamespaceGraph, build_graph
from goog2esm.scanner import scan_source

logger = logging.getLogger(__name__)


def scan_sources(sources: Iterable[tuple[str, str | bytes]]) -> list[ScanRecord]:
    """Scan every (path, text) pair; records come back sorted by path."""
    records = []
    for path, text in sources:
        records.append(scan_source(path, text))
    records.sort(key=lambda r: r.path)
    logger.info(f"Scanned {len(records)} files")
    return records


def run_scanning_phase(
    sources: Iterable[tuple[str, str | bytes]],
) -> tuple[NamespaceGraph, list[ScanWarning]]:
    """Scan sources and build the namespace graph from the records."""
    records = scan_sources(sources)
    warnings = [w for record in records for w in record.warnings]
    if warnings:
        logger.info(f"{len(warnings)} malformed or duplicate declarations skipped")
    return build_graph(records), warnings
