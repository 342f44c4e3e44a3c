"""Namespace-to-file index and file dependency graph."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import networkx as nx

from goog2esm.config import Dependency, DependencyKind, ScanRecord
from goog2esm.errors import (
    AmbiguousProvider,
    UnknownFile,
    UnknownNamespace,
)

logger = logging.getLogger(__name__)


class NamespaceGraph:
    """Maps namespaces to their providing file and files to their declarations.

    provider_of: namespace -> file path (injective)
    dependencies: file path -> ordered declarations

    The only mutation after building is ``demote``, used by the cycle breaker.
    """

    def __init__(self) -> None:
        self.provider_of: dict[str, str] = {}
        self.records: dict[str, ScanRecord] = {}
        self.dependencies: dict[str, list[Dependency]] = {}
        self.ambiguous: list[AmbiguousProvider] = []

    def add(self, record: ScanRecord) -> list[AmbiguousProvider]:
        """Insert one scan record. Returns the ambiguous provides it hit."""
        ambiguous: list[AmbiguousProvider] = []
        self.records[record.path] = record
        self.dependencies[record.path] = list(record.dependencies)

        for namespace in record.provides:
            existing = self.provider_of.get(namespace)
            if existing is not None and existing != record.path:
                ambiguous.append(AmbiguousProvider(namespace, existing, record.path))
                continue
            self.provider_of[namespace] = record.path
        self.ambiguous.extend(ambiguous)
        return ambiguous

    # --- Queries ---

    def resolve(self, namespace: str) -> str:
        try:
            return self.provider_of[namespace]
        except KeyError:
            raise UnknownNamespace(namespace) from None

    def has_namespace(self, namespace: str) -> bool:
        return namespace in self.provider_of

    def namespaces(self) -> list[str]:
        return sorted(self.provider_of)

    def has_file(self, path: str) -> bool:
        return path in self.records

    def record(self, path: str) -> ScanRecord:
        try:
            return self.records[path]
        except KeyError:
            raise UnknownFile(path) from None

    def dependencies_of(self, path: str) -> list[Dependency]:
        try:
            return list(self.dependencies[path])
        except KeyError:
            raise UnknownFile(path) from None

    def provided_by(self, path: str) -> list[str]:
        return list(self.record(path).provides)

    def all_files(self) -> set[str]:
        return set(self.records)

    def hard_targets(self, path: str) -> set[str]:
        """Files this file depends on through resolvable HARD declarations."""
        targets = set()
        for dep in self.dependencies_of(path):
            if dep.is_hard and dep.namespace in self.provider_of:
                targets.add(self.provider_of[dep.namespace])
        return targets

    def file_graph(
        self,
        kind: DependencyKind | None = DependencyKind.HARD,
        files: Iterable[str] | None = None,
    ) -> nx.DiGraph:
        """Project declarations through provider_of onto a file graph.

        Nodes and edges are inserted in sorted order so traversals over the
        returned graph are deterministic. ``kind=None`` keeps every edge.
        Each edge carries the namespaces that induce it.
        """
        members = set(self.records) if files is None else set(files)
        graph = nx.DiGraph()
        graph.add_nodes_from(sorted(members))
        edges: dict[tuple[str, str], list[str]] = {}
        for path in sorted(members):
            for dep in self.dependencies[path]:
                if kind is not None and dep.kind is not kind:
                    continue
                target = self.provider_of.get(dep.namespace)
                if target is None or target not in members:
                    continue
                edges.setdefault((path, target), []).append(dep.namespace)
        for (source, target) in sorted(edges):
            graph.add_edge(source, target, namespaces=edges[(source, target)])
        return graph

    # --- Mutation ---

    def demote(self, path: str, namespace: str) -> bool:
        """HARD -> FORWARD for one declaration. Returns False if already FORWARD."""
        deps = self.dependencies.get(path)
        if deps is None:
            raise UnknownFile(path)
        for i, dep in enumerate(deps):
            if dep.namespace != namespace:
                continue
            if not dep.is_hard:
                return False
            deps[i] = dep.demoted()
            logger.debug(f"Demoted {path} -> {namespace} to forward declaration")
            return True
        raise UnknownNamespace(namespace)


def build_graph(records: Iterable[ScanRecord]) -> NamespaceGraph:
    """Insert records sequentially, recording every ambiguous provider.

    Ambiguities are kept on ``graph.ambiguous`` so validation can report them
    together with unmatched dependencies.
    """
    graph = NamespaceGraph()
    for record in records:
        if record.path in graph.records:
            logger.warning(f"File {record.path} scanned twice; keeping the first record")
            continue
        for entry in graph.add(record):
            logger.error(str(entry))

    logger.info(
        f"Namespace graph: {len(graph.records)} files, {len(graph.provider_of)} namespaces"
    )
    return graph
