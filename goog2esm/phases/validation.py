"""Phase 3: Dependency consistency validation."""

from __future__ import annotations

import logging
from collections import defaultdict

from goog2esm.errors import EmptyCorpusError, GraphConsistencyError, UnmatchedDependency
from goog2esm.graph.namespace_graph import NamespaceGraph

logger = logging.getLogger(__name__)


def find_unmatched(graph: NamespaceGraph) -> list[UnmatchedDependency]:
    """Every declared namespace without a provider, sorted, with its requirers."""
    missing: dict[str, set[str]] = defaultdict(set)
    for path in sorted(graph.all_files()):
        for dep in graph.dependencies_of(path):
            if not graph.has_namespace(dep.namespace):
                missing[dep.namespace].add(path)

    return [
        UnmatchedDependency(namespace, tuple(sorted(files)))
        for namespace, files in sorted(missing.items())
    ]


def validate_graph(graph: NamespaceGraph) -> None:
    """Raise if the corpus is empty, a namespace has several providers, or
    any declaration fails to resolve. Both kinds of defect are reported in
    one ``GraphConsistencyError``.
    """
    if not graph.namespaces():
        raise EmptyCorpusError("No provided namespaces found")

    unmatched = find_unmatched(graph)
    for entry in unmatched:
        logger.error(str(entry))
    if graph.ambiguous or unmatched:
        raise GraphConsistencyError(ambiguous=graph.ambiguous, unmatched=unmatched)
    if not any(graph.dependencies_of(path) for path in graph.all_files()):
        raise EmptyCorpusError("No goog.require declarations found in input files")

    logger.info(f"All declarations in {len(graph.all_files())} files resolve")
