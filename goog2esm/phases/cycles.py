"""Phase 5: Cycle detection and breaking on the HARD file graph.

Each cycle found by depth-first search loses exactly one HARD file edge,
which is demoted to a forward declaration. An edge is only demoted when the
dependent file does not use any of the edge's namespaces while it loads;
otherwise the rewritten module would read an uninitialised binding.

Candidate order within one cycle:
    1. fewest other outgoing HARD edges on the source file
    2. lexicographic (source, target)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import networkx as nx

from goog2esm.config import Demotion, DependencyKind
from goog2esm.errors import UnbreakableCycle
from goog2esm.graph.namespace_graph import NamespaceGraph

logger = logging.getLogger(__name__)


def _cycle_path(cycle_edges: list[tuple[str, str]]) -> list[str]:
    return [source for source, _ in cycle_edges] + [cycle_edges[-1][1]]


def is_safe_to_demote(graph: NamespaceGraph, source: str, namespaces: Iterable[str]) -> bool:
    """True when none of the namespaces is referenced while ``source`` loads."""
    record = graph.record(source)
    return not any(record.is_eager(ns) for ns in namespaces)


def _choose_edge(
    graph: NamespaceGraph, hard: nx.DiGraph, cycle_edges: list[tuple[str, str]],
) -> tuple[str, str] | None:
    candidates = []
    for source, target in cycle_edges:
        namespaces = hard.edges[source, target]["namespaces"]
        if not is_safe_to_demote(graph, source, namespaces):
            continue
        other_out = hard.out_degree(source) - 1
        candidates.append((other_out, source, target))
    if not candidates:
        return None
    _, source, target = min(candidates)
    return source, target


def break_cycles(
    graph: NamespaceGraph, restrict_to: Iterable[str] | None = None,
) -> list[Demotion]:
    """Demote HARD edges until the HARD file graph is acyclic.

    Args:
        graph: Validated namespace graph. Mutated in place.
        restrict_to: Optional file set (e.g. a selection) to limit the pass to.

    Returns:
        The demotions performed, in order. Empty for an acyclic graph.

    Raises:
        UnbreakableCycle: a cycle has no edge that is safe to demote.
    """
    hard = graph.file_graph(DependencyKind.HARD, files=restrict_to)
    demotions: list[Demotion] = []

    while True:
        try:
            cycle_edges = [(u, v) for u, v, *_ in nx.find_cycle(hard)]
        except nx.NetworkXNoCycle:
            break

        path = _cycle_path(cycle_edges)
        chosen = _choose_edge(graph, hard, cycle_edges)
        if chosen is None:
            logger.error(f"Unbreakable cycle: {' -> '.join(path)}")
            raise UnbreakableCycle(path)

        source, target = chosen
        namespaces = list(hard.edges[source, target]["namespaces"])
        for namespace in namespaces:
            graph.demote(source, namespace)
        hard.remove_edge(source, target)

        demotion = Demotion(source=source, target=target, namespaces=namespaces, cycle=path)
        demotions.append(demotion)
        logger.info(
            f"Broke cycle {' -> '.join(path)} by demoting {source} -> {target} "
            f"({', '.join(namespaces)})"
        )

    if demotions:
        logger.info(f"Demoted {len(demotions)} edge(s) to forward declarations")
    return demotions


def cyclic_components(
    graph: NamespaceGraph, files: Iterable[str] | None = None,
) -> list[list[str]]:
    """Groups of files that sit on at least one HARD cycle, sorted."""
    hard = graph.file_graph(DependencyKind.HARD, files=files)
    groups = []
    for component in nx.strongly_connected_components(hard):
        if len(component) > 1:
            groups.append(sorted(component))
        else:
            node = next(iter(component))
            if hard.has_edge(node, node):
                groups.append([node])
    return sorted(groups)


def hard_load_order(graph: NamespaceGraph, files: Iterable[str] | None = None) -> list[str]:
    """Deterministic order in which files can load, dependencies first."""
    hard = graph.file_graph(DependencyKind.HARD, files=files)
    try:
        return list(nx.lexicographical_topological_sort(hard.reverse(copy=False)))
    except nx.NetworkXUnfeasible:
        cycle_edges = [(u, v) for u, v, *_ in nx.find_cycle(hard)]
        raise UnbreakableCycle(_cycle_path(cycle_edges)) from None
