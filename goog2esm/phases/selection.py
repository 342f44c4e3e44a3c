"""Phase 4: Closure selection over HARD dependencies."""

from __future__ import annotations

import logging
import posixpath
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from goog2esm.errors import SelectionError, UnknownRootError
from goog2esm.graph.namespace_graph import NamespaceGraph

logger = logging.getLogger(__name__)

TEST_SUFFIX = "_test"


@dataclass(frozen=True)
class Selection:
    """Closed file set plus how it was reached. Membership is the contract."""
    files: frozenset[str]
    roots: tuple[str, ...] = ()
    test_roots: tuple[str, ...] = ()
    skipped_tests: tuple[str, ...] = field(default_factory=tuple)

    def sorted(self) -> list[str]:
        return sorted(self.files)

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __len__(self) -> int:
        return len(self.files)


def is_test_file(graph: NamespaceGraph, path: str) -> bool:
    stem = posixpath.splitext(posixpath.basename(path))[0]
    return stem.endswith(TEST_SUFFIX) or graph.record(path).test_only


def tests_for(graph: NamespaceGraph, path: str) -> list[str]:
    """Test files associated with a source file: ``foo.js`` -> ``foo_test.js``."""
    base, ext = posixpath.splitext(path)
    if base.endswith(TEST_SUFFIX):
        return []
    candidate = f"{base}{TEST_SUFFIX}{ext}"
    return [candidate] if graph.has_file(candidate) else []


def resolve_roots(graph: NamespaceGraph, roots: Iterable[str]) -> list[str]:
    """Map each root (file path or namespace) to a file path.

    Unknown roots are collected and raised together.
    """
    resolved: list[str] = []
    unknown: list[str] = []
    for root in roots:
        if graph.has_file(root):
            path = root
        elif graph.has_namespace(root):
            path = graph.resolve(root)
        else:
            unknown.append(root)
            continue
        if path not in resolved:
            resolved.append(path)
    if unknown:
        raise UnknownRootError(unknown)
    return sorted(resolved)


def closure(graph: NamespaceGraph, roots: Iterable[str]) -> set[str]:
    """BFS over HARD edges; the result contains every HARD target of its members."""
    visited: set[str] = set()
    queue = deque(sorted(set(roots)))
    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        for target in sorted(graph.hard_targets(current)):
            if target not in visited:
                queue.append(target)
    return visited


def select_files(
    graph: NamespaceGraph,
    roots: Iterable[str] = (),
    include_tests: bool = False,
    excluded: Iterable[str] = (),
) -> Selection:
    """Compute the smallest HARD-closed file set containing the roots.

    Args:
        graph: Validated namespace graph.
        roots: File paths or namespaces. Empty means every non-test file.
        include_tests: Add the tests of every selected file as extra roots.
        excluded: Files that must never enter the selection.
    """
    excluded_set = set(excluded)
    root_list = list(roots)
    if root_list:
        root_files = resolve_roots(graph, root_list)
    else:
        root_files = sorted(
            p for p in graph.all_files()
            if p not in excluded_set and not is_test_file(graph, p)
        )

    selected = closure(graph, root_files)
    reached_excluded = selected & excluded_set
    if reached_excluded:
        raise SelectionError(sorted(reached_excluded))

    test_roots: list[str] = []
    skipped: list[str] = []
    if include_tests:
        candidates = sorted({t for path in selected for t in tests_for(graph, path)})
        for test in candidates:
            if test in excluded_set:
                skipped.append(test)
                continue
            test_closure = closure(graph, [test])
            blocked = test_closure & excluded_set
            if blocked:
                logger.warning(
                    f"Skipping {test}: requires excluded file(s) {', '.join(sorted(blocked))}"
                )
                skipped.append(test)
                continue
            test_roots.append(test)
            selected |= test_closure

    logger.info(
        f"Selected {len(selected)} of {len(graph.all_files())} files "
        f"from {len(root_files)} root(s) and {len(test_roots)} test root(s)"
    )
    return Selection(
        files=frozenset(selected),
        roots=tuple(root_files),
        test_roots=tuple(test_roots),
        skipped_tests=tuple(skipped),
    )
