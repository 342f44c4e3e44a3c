"""Error taxonomy for the conversion pipeline.

Fatal conditions are raised as ``ConversionError`` subclasses. Consistency
problems are collected over a full sweep of the corpus and raised once, so
``diagnostics()`` always lists every defect found in the run.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AmbiguousProvider:
    namespace: str
    first_file: str
    second_file: str

    def __str__(self) -> str:
        return (
            f"Namespace '{self.namespace}' is provided by both "
            f"{self.first_file} and {self.second_file}"
        )


@dataclass(frozen=True)
class UnmatchedDependency:
    namespace: str
    requiring_files: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"No provider for '{self.namespace}' (required by {', '.join(self.requiring_files)})"


class ConversionError(Exception):
    """Base class for fatal pipeline errors."""

    def diagnostics(self) -> list[str]:
        return [str(self)]


class UnknownNamespace(ConversionError, KeyError):
    def __init__(self, namespace: str) -> None:
        super().__init__(namespace)
        self.namespace = namespace

    def __str__(self) -> str:
        return f"Unknown namespace '{self.namespace}'"


class UnknownFile(ConversionError, KeyError):
    def __init__(self, path: str) -> None:
        super().__init__(path)
        self.path = path

    def __str__(self) -> str:
        return f"Unknown file '{self.path}'"


class EmptyCorpusError(ConversionError):
    pass


class GraphConsistencyError(ConversionError):
    """Ambiguous providers and unmatched dependencies found in one sweep."""

    def __init__(
        self,
        ambiguous: list[AmbiguousProvider] | None = None,
        unmatched: list[UnmatchedDependency] | None = None,
    ) -> None:
        self.ambiguous = list(ambiguous or [])
        self.unmatched = list(unmatched or [])
        super().__init__(
            f"{len(self.ambiguous)} ambiguous provider(s), "
            f"{len(self.unmatched)} unmatched dependenc(ies)"
        )

    def diagnostics(self) -> list[str]:
        return [str(a) for a in self.ambiguous] + [str(u) for u in self.unmatched]


class SelectionError(ConversionError):
    """Roots whose closure reaches files excluded by policy."""

    def __init__(self, excluded_reached: list[str]) -> None:
        self.excluded_reached = sorted(excluded_reached)
        super().__init__(
            "Selection requires excluded file(s): " + ", ".join(self.excluded_reached)
        )

    def diagnostics(self) -> list[str]:
        return [f"Excluded file required by selection: {p}" for p in self.excluded_reached]


class UnbreakableCycle(ConversionError):
    def __init__(self, path: list[str]) -> None:
        self.path = list(path)
        super().__init__("Unbreakable dependency cycle: " + " -> ".join(self.path))


class UnknownRootError(ConversionError):
    """Roots that name neither a scanned file nor a provided namespace."""

    def __init__(self, roots: list[str]) -> None:
        self.roots = sorted(roots)
        super().__init__("Unknown root(s): " + ", ".join(self.roots))

    def diagnostics(self) -> list[str]:
        return [f"Root is neither a file nor a provided namespace: {r}" for r in self.roots]
