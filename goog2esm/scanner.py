"""Closure declaration scanner built on tree-sitter.

Extracts ``goog.provide``/``goog.module`` namespaces and
``goog.require``/``goog.requireType``/``goog.forwardDeclare`` dependencies
from a JavaScript file, in source order, and records which required
namespaces are referenced by code that runs while the file loads.
"""

from __future__ import annotations

import logging
import re

import tree_sitter
import tree_sitter_javascript as ts_javascript

from goog2esm.config import (
    DEPENDENCY_CALLS,
    DeclarationCall,
    Dependency,
    DependencyKind,
    ScanRecord,
    ScanWarning,
)

logger = logging.getLogger(__name__)

_DOTTED_RE = re.compile(r"^[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*$")

_PROVIDE_CALLS = {DeclarationCall.PROVIDE.value, DeclarationCall.MODULE.value}

# Bodies of these nodes run later, not while the file is evaluated.
_DEFERRED_TYPES = {
    "function_declaration",
    "function_expression",
    "function",
    "arrow_function",
    "method_definition",
    "generator_function_declaration",
    "generator_function",
}

_FUNCTION_VALUE_TYPES = {"function_expression", "function", "arrow_function"}

_parser: tree_sitter.Parser | None = None


def _get_parser() -> tree_sitter.Parser:
    global _parser
    if _parser is None:
        _parser = tree_sitter.Parser(tree_sitter.Language(ts_javascript.language()))
    return _parser


def _text(node) -> str:
    return node.text.decode("utf-8", errors="replace")


def _line(node) -> int:
    return node.start_point[0] + 1


def _unwrap(node):
    while node is not None and node.type == "parenthesized_expression":
        inner = [c for c in node.named_children if c.type != "comment"]
        node = inner[0] if inner else None
    return node


class ClosureScanner:
    """Scans one file. Instances are single use and hold no shared state."""

    def __init__(self, path: str, source: bytes) -> None:
        self.path = path
        self.source = source
        self.record = ScanRecord(path=path)
        self._aliases: dict[str, str] = {}
        self._dep_index: dict[str, int] = {}
        self._declaration_ids: set[int] = set()

    def scan(self) -> ScanRecord:
        tree = _get_parser().parse(self.source)
        root = tree.root_node
        if root.has_error:
            self._warn(root, "syntax errors present; declarations scanned with error recovery")

        for statement in root.children:
            if self._scan_statement(statement):
                self._declaration_ids.add(statement.id)

        if self.record.dependencies:
            for statement in root.children:
                self._collect_eager(statement)

        return self.record

    # --- Declarations ---

    def _scan_statement(self, statement) -> bool:
        """Handle a top-level statement; True when it is a declaration."""
        if statement.type == "expression_statement":
            call = _unwrap(statement.named_children[0]) if statement.named_children else None
            return self._scan_call(call, binding=None)

        if statement.type in ("lexical_declaration", "variable_declaration"):
            declarators = [c for c in statement.named_children if c.type == "variable_declarator"]
            found = False
            for declarator in declarators:
                value = _unwrap(declarator.child_by_field_name("value"))
                if self._scan_call(value, binding=declarator.child_by_field_name("name")):
                    self._declaration_ids.add(declarator.id)
                    found = True
            return found and all(d.id in self._declaration_ids for d in declarators)

        return False

    def _scan_call(self, call, binding) -> bool:
        if call is None or call.type != "call_expression":
            return False
        function = call.child_by_field_name("function")
        if function is None or function.type != "member_expression":
            return False
        name = _text(function)

        if name == DeclarationCall.SET_TEST_ONLY.value:
            self.record.test_only = True
            return True
        if name not in _PROVIDE_CALLS and name not in DEPENDENCY_CALLS:
            return False

        namespace = self._namespace_argument(call, name)
        if namespace is None:
            return True

        if name in _PROVIDE_CALLS:
            if name == DeclarationCall.MODULE.value:
                self.record.is_module = True
            if namespace in self.record.provides:
                self._warn(call, f"duplicate {name}('{namespace}') ignored")
            else:
                self.record.provides.append(namespace)
            return True

        alias = self._bind_aliases(binding, namespace)
        self._add_dependency(
            Dependency(namespace, DEPENDENCY_CALLS[name], _line(call), alias), call,
        )
        return True

    def _namespace_argument(self, call, name: str) -> str | None:
        arguments = call.child_by_field_name("arguments")
        args = [c for c in arguments.named_children if c.type != "comment"] if arguments else []
        if len(args) != 1:
            self._warn(call, f"{name} expects exactly one argument, got {len(args)}")
            return None
        arg = args[0]
        if arg.type != "string":
            self._warn(call, f"{name} argument is not a string literal: {_text(arg)}")
            return None
        fragments = [c for c in arg.named_children if c.type == "string_fragment"]
        namespace = "".join(_text(f) for f in fragments).strip()
        if not namespace or not _DOTTED_RE.match(namespace):
            self._warn(call, f"{name} has an invalid namespace {_text(arg)}")
            return None
        return namespace

    def _bind_aliases(self, binding, namespace: str) -> str | None:
        if binding is None:
            return None
        if binding.type == "identifier":
            alias = _text(binding)
            self._aliases[alias] = namespace
            return alias
        if binding.type == "object_pattern":
            for child in binding.named_children:
                if child.type == "shorthand_property_identifier_pattern":
                    self._aliases[_text(child)] = namespace
                elif child.type == "pair_pattern":
                    value = child.child_by_field_name("value")
                    if value is not None and value.type == "identifier":
                        self._aliases[_text(value)] = namespace
        return None

    def _add_dependency(self, dep: Dependency, node) -> None:
        existing_idx = self._dep_index.get(dep.namespace)
        if existing_idx is None:
            self._dep_index[dep.namespace] = len(self.record.dependencies)
            self.record.dependencies.append(dep)
            return

        existing = self.record.dependencies[existing_idx]
        self._warn(node, f"'{dep.namespace}' declared more than once")
        if existing.kind is DependencyKind.FORWARD and dep.is_hard:
            self.record.dependencies[existing_idx] = Dependency(
                dep.namespace, DependencyKind.HARD, existing.line, existing.alias or dep.alias,
            )

    # --- Load-time references ---

    def _collect_eager(self, node) -> None:
        node_type = node.type
        if node_type == "comment" or node.id in self._declaration_ids:
            return

        if node_type == "variable_declarator":
            value = node.child_by_field_name("value")
            if value is not None:
                self._collect_eager(value)
            return

        if node_type in ("assignment_expression", "augmented_assignment_expression"):
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            if left is not None and not self._defines_own_namespace(left):
                self._collect_eager(left)
            if right is not None:
                self._collect_eager(right)
            return

        if node_type == "call_expression":
            function = _unwrap(node.child_by_field_name("function"))
            arguments = node.child_by_field_name("arguments")
            if function is not None and function.type in _FUNCTION_VALUE_TYPES:
                # Immediately invoked: the body runs at load time.
                self._collect_body(function)
                if arguments is not None:
                    self._collect_eager(arguments)
                return
            if function is not None and _text(function) == "goog.scope" and arguments is not None:
                for arg in arguments.named_children:
                    if arg.type in _FUNCTION_VALUE_TYPES:
                        self._collect_body(arg)
                return

        if node_type in _DEFERRED_TYPES:
            return

        if node_type == "field_definition":
            if not any(c.type == "static" for c in node.children):
                return

        if node_type == "member_expression":
            self._mark_reference(_text(node))
        elif node_type in ("identifier", "shorthand_property_identifier"):
            namespace = self._aliases.get(_text(node))
            if namespace is not None:
                self.record.eager_references.add(namespace)
            else:
                self._mark_reference(_text(node))

        for child in node.children:
            self._collect_eager(child)

    def _collect_body(self, function) -> None:
        body = function.child_by_field_name("body")
        if body is not None:
            self._collect_eager(body)

    def _defines_own_namespace(self, target) -> bool:
        """True when an assignment target lives under a namespace this file provides.

        ``x.Sub = ...`` in the file providing ``x.Sub`` defines the symbol
        rather than reading the required parent ``x``. A required namespace
        nested deeper than the provided one still counts as a reference.
        """
        if target.type != "member_expression":
            return False
        reference = _text(target)
        if not _DOTTED_RE.match(reference):
            return False
        provided = _longest_prefix(reference, self.record.provides)
        required = _longest_prefix(reference, (d.namespace for d in self.record.dependencies))
        return provided > 0 and provided >= required

    def _mark_reference(self, reference: str) -> None:
        if not _DOTTED_RE.match(reference):
            return
        for dep in self.record.dependencies:
            ns = dep.namespace
            if reference == ns or reference.startswith(ns + "."):
                self.record.eager_references.add(ns)

    def _warn(self, node, message: str) -> None:
        warning = ScanWarning(self.path, _line(node), message)
        logger.warning(str(warning))
        self.record.warnings.append(warning)


def _longest_prefix(reference: str, namespaces) -> int:
    """Length of the longest namespace that is ``reference`` or a dotted prefix of it."""
    best = 0
    for ns in namespaces:
        if (reference == ns or reference.startswith(ns + ".")) and len(ns) > best:
            best = len(ns)
    return best


def scan_source(path: str, source: str | bytes) -> ScanRecord:
    """Scan one file's text into a ScanRecord."""
    if isinstance(source, str):
        source = source.encode("utf-8")
    return ClosureScanner(path, source).scan()
