"""Tests for NamespaceGraph."""

from __future__ import annotations

import pytest

from goog2esm.config import Dependency, DependencyKind, ScanRecord
from goog2esm.errors import GraphConsistencyError, UnknownFile, UnknownNamespace
from goog2esm.graph.namespace_graph import NamespaceGraph, build_graph


def _record(path, provides=(), hard=(), forward=(), eager=()):
    deps = [Dependency(ns, DependencyKind.HARD) for ns in hard]
    deps += [Dependency(ns, DependencyKind.FORWARD) for ns in forward]
    return ScanRecord(
        path=path, provides=list(provides), dependencies=deps, eager_references=set(eager),
    )


class TestNamespaceGraph:
    def test_register_and_resolve(self):
        graph = NamespaceGraph()
        graph.add(_record("dialog.js", provides=["app.ui.Dialog"]))
        assert graph.resolve("app.ui.Dialog") == "dialog.js"

    def test_resolve_unknown(self):
        graph = NamespaceGraph()
        with pytest.raises(UnknownNamespace) as exc:
            graph.resolve("app.Missing")
        assert exc.value.namespace == "app.Missing"

    def test_multiple_namespaces_per_file(self):
        graph = NamespaceGraph()
        graph.add(_record("event.js", provides=["ev.Event", "ev.Event.Type"]))
        assert graph.resolve("ev.Event") == "event.js"
        assert graph.resolve("ev.Event.Type") == "event.js"
        assert graph.provided_by("event.js") == ["ev.Event", "ev.Event.Type"]

    def test_dependencies_keep_declaration_order(self):
        graph = NamespaceGraph()
        graph.add(_record("a.js", provides=["a"], hard=["z", "b", "m"], forward=["c"]))
        assert [d.namespace for d in graph.dependencies_of("a.js")] == ["z", "b", "m", "c"]

    def test_dependencies_of_unknown_file(self):
        with pytest.raises(UnknownFile):
            NamespaceGraph().dependencies_of("nope.js")

    def test_all_files_includes_entry_scripts(self):
        graph = NamespaceGraph()
        graph.add(_record("main.js", hard=["a"]))
        graph.add(_record("a.js", provides=["a"]))
        assert graph.all_files() == {"main.js", "a.js"}

    def test_ambiguous_provider_reported_with_both_files(self):
        graph = NamespaceGraph()
        graph.add(_record("one.js", provides=["x"]))
        ambiguous = graph.add(_record("two.js", provides=["x"]))
        assert len(ambiguous) == 1
        assert ambiguous[0].namespace == "x"
        assert ambiguous[0].first_file == "one.js"
        assert ambiguous[0].second_file == "two.js"
        assert graph.resolve("x") == "one.js"

    def test_hard_targets_ignore_forward_and_unresolved(self):
        graph = NamespaceGraph()
        graph.add(_record("a.js", provides=["a"], hard=["b", "missing"], forward=["c"]))
        graph.add(_record("b.js", provides=["b"]))
        graph.add(_record("c.js", provides=["c"]))
        assert graph.hard_targets("a.js") == {"b.js"}

    def test_file_graph_merges_namespaces_per_edge(self):
        graph = NamespaceGraph()
        graph.add(_record("a.js", provides=["a"], hard=["b.One", "b.Two"], forward=["c"]))
        graph.add(_record("b.js", provides=["b.One", "b.Two"]))
        graph.add(_record("c.js", provides=["c"]))

        hard = graph.file_graph()
        assert set(hard.edges()) == {("a.js", "b.js")}
        assert hard.edges["a.js", "b.js"]["namespaces"] == ["b.One", "b.Two"]

        everything = graph.file_graph(kind=None)
        assert set(everything.edges()) == {("a.js", "b.js"), ("a.js", "c.js")}

    def test_file_graph_restricted_to_files(self):
        graph = NamespaceGraph()
        graph.add(_record("a.js", provides=["a"], hard=["b"]))
        graph.add(_record("b.js", provides=["b"], hard=["c"]))
        graph.add(_record("c.js", provides=["c"]))
        sub = graph.file_graph(files={"a.js", "b.js"})
        assert set(sub.nodes()) == {"a.js", "b.js"}
        assert set(sub.edges()) == {("a.js", "b.js")}

    def test_demote_is_one_way(self):
        graph = NamespaceGraph()
        graph.add(_record("a.js", provides=["a"], hard=["b"]))
        assert graph.demote("a.js", "b") is True
        assert graph.dependencies_of("a.js")[0].kind is DependencyKind.FORWARD
        assert graph.demote("a.js", "b") is False

    def test_demote_does_not_touch_scan_record(self):
        graph = NamespaceGraph()
        record = _record("a.js", provides=["a"], hard=["b"])
        graph.add(record)
        graph.demote("a.js", "b")
        assert record.dependencies[0].kind is DependencyKind.HARD

    def test_demote_unknown_namespace(self):
        graph = NamespaceGraph()
        graph.add(_record("a.js", provides=["a"], hard=["b"]))
        with pytest.raises(UnknownNamespace):
            graph.demote("a.js", "zzz")


class TestBuildGraph:
    def test_build_collects_every_ambiguity(self):
        records = [
            _record("a1.js", provides=["a"]),
            _record("a2.js", provides=["a"]),
            _record("b1.js", provides=["b"]),
            _record("b2.js", provides=["b"]),
        ]
        graph = build_graph(records)
        assert [a.namespace for a in graph.ambiguous] == ["a", "b"]
        assert graph.resolve("a") == "a1.js"
        assert graph.resolve("b") == "b1.js"

        error = GraphConsistencyError(ambiguous=graph.ambiguous)
        assert len(error.diagnostics()) == 2
        assert "a1.js" in error.diagnostics()[0]
        assert "a2.js" in error.diagnostics()[0]

    def test_build_ok(self):
        graph = build_graph([
            _record("a.js", provides=["a"], hard=["b"]),
            _record("b.js", provides=["b"]),
        ])
        assert graph.namespaces() == ["a", "b"]

    def test_duplicate_path_keeps_first_record(self):
        graph = build_graph([
            _record("a.js", provides=["a"]),
            _record("a.js", provides=["other"]),
        ])
        assert graph.namespaces() == ["a"]
