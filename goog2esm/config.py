"""Core data types and configuration for goog2esm."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class DependencyKind(str, Enum):
    HARD = "hard"
    FORWARD = "forward"


class DeclarationCall(str, Enum):
    PROVIDE = "goog.provide"
    MODULE = "goog.module"
    REQUIRE = "goog.require"
    REQUIRE_TYPE = "goog.requireType"
    FORWARD_DECLARE = "goog.forwardDeclare"
    SET_TEST_ONLY = "goog.setTestOnly"


DEPENDENCY_CALLS: dict[str, DependencyKind] = {
    DeclarationCall.REQUIRE.value: DependencyKind.HARD,
    DeclarationCall.REQUIRE_TYPE.value: DependencyKind.FORWARD,
    DeclarationCall.FORWARD_DECLARE.value: DependencyKind.FORWARD,
}


@dataclass(frozen=True)
class Dependency:
    """One require-style declaration in a file."""
    namespace: str
    kind: DependencyKind
    line: int = 0
    alias: str | None = None

    @property
    def is_hard(self) -> bool:
        return self.kind is DependencyKind.HARD

    def demoted(self) -> Dependency:
        return Dependency(self.namespace, DependencyKind.FORWARD, self.line, self.alias)


@dataclass(frozen=True)
class ScanWarning:
    file: str
    line: int
    message: str

    def __str__(self) -> str:
        return f"{self.file}:{self.line}: {self.message}"


@dataclass
class ScanRecord:
    """Everything the scanner learned about one source file."""
    path: str
    provides: list[str] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    is_module: bool = False
    test_only: bool = False
    eager_references: set[str] = field(default_factory=set)
    warnings: list[ScanWarning] = field(default_factory=list)

    def is_eager(self, namespace: str) -> bool:
        """Whether the namespace is used by code that runs while the file loads."""
        return namespace in self.eager_references


@dataclass
class Demotion:
    """A HARD file edge rewritten to FORWARD to break a cycle."""
    source: str
    target: str
    namespaces: list[str]
    cycle: list[str] = field(default_factory=list)


@dataclass
class ConversionConfig:
    repo_path: str = ""
    output_path: str | None = None
    roots: list[str] = field(default_factory=list)
    include_tests: bool = False
    excluded: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)
    max_file_size: int = 2_000_000  # 2MB
    break_cycles: bool = True
    verbose: bool = False
    quiet: bool = False


@dataclass
class ConversionResult:
    version: str = "1.0"
    metadata: dict[str, Any] = field(default_factory=dict)
    stats: dict[str, Any] = field(default_factory=dict)
    selected: list[str] = field(default_factory=list)
    files: list[dict] = field(default_factory=list)
    demotions: list[dict] = field(default_factory=list)
    load_order: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
