"""End-to-end tests: discovery, pipeline, output and CLI."""

from __future__ import annotations

import json
import os

import pytest
from click.testing import CliRunner

from goog2esm.cli import cli
from goog2esm.config import ConversionConfig, ConversionResult
from goog2esm.errors import GraphConsistencyError, UnbreakableCycle
from goog2esm.output import write_output
from goog2esm.phases.discovery import discover_sources
from goog2esm.pipeline import run_pipeline

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")
SIMPLE = os.path.join(FIXTURES_DIR, "closure_simple")


def _write_corpus(root, files: dict[str, str]) -> str:
    for rel_path, text in files.items():
        full = root / rel_path
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_text(text)
    return str(root)


class TestDiscovery:
    def test_finds_js_files_sorted(self):
        sources = discover_sources(ConversionConfig(repo_path=SIMPLE))
        paths = [p for p, _ in sources]
        assert paths == sorted(paths)
        assert "app/main.js" in paths
        assert "app/ui/dialog.js" in paths
        assert len(paths) == 7

    def test_exclude_patterns(self):
        config = ConversionConfig(repo_path=SIMPLE, exclude_patterns=["testing", "*_test.js"])
        paths = {p for p, _ in discover_sources(config)}
        assert "app/testing/asserts.js" not in paths
        assert "app/ui/dialog_test.js" not in paths
        assert "app/main.js" in paths

    def test_skips_ignored_directories(self, tmp_path):
        root = _write_corpus(tmp_path, {
            "src/a.js": "goog.provide('a');",
            "node_modules/lib/b.js": "goog.provide('b');",
            "src/readme.md": "# not js",
        })
        paths = [p for p, _ in discover_sources(ConversionConfig(repo_path=root))]
        assert paths == ["src/a.js"]

    def test_skips_oversized_files(self, tmp_path):
        root = _write_corpus(tmp_path, {"big.js": "x" * 100, "small.js": "y"})
        config = ConversionConfig(repo_path=root, max_file_size=50)
        assert [p for p, _ in discover_sources(config)] == ["small.js"]

    def test_missing_root(self):
        assert discover_sources(ConversionConfig(repo_path="/nonexistent/path")) == []


class TestPipeline:
    def test_root_selection_and_cycle_breaking(self):
        result = run_pipeline(ConversionConfig(repo_path=SIMPLE, roots=["app.main"]))

        assert isinstance(result, ConversionResult)
        assert result.selected == [
            "app/main.js", "app/ui/component.js", "app/ui/dialog.js", "app/util.js",
        ]
        assert result.demotions == [{
            "from": "app/ui/component.js",
            "to": "app/ui/dialog.js",
            "namespaces": ["app.ui.Dialog"],
            "cycle": result.demotions[0]["cycle"],
        }]
        assert result.stats["demotions"] == 1
        assert result.stats["files"] == 7

    def test_final_declarations_reflect_demotion(self):
        result = run_pipeline(ConversionConfig(repo_path=SIMPLE, roots=["app.main"]))
        files = {f["path"]: f for f in result.files}
        component_deps = files["app/ui/component.js"]["dependencies"]
        assert component_deps == [{
            "namespace": "app.ui.Dialog",
            "kind": "forward",
            "file": "app/ui/dialog.js",
            "line": 3,
        }]
        dialog_kinds = {d["namespace"]: d["kind"] for d in files["app/ui/dialog.js"]["dependencies"]}
        assert dialog_kinds == {
            "app.ui.Component": "hard",
            "app.util": "hard",
            "app.main": "forward",
        }

    def test_load_order_dependencies_first(self):
        result = run_pipeline(ConversionConfig(repo_path=SIMPLE, roots=["app.main"]))
        order = result.load_order
        assert sorted(order) == result.selected
        assert order.index("app/ui/component.js") < order.index("app/ui/dialog.js")
        assert order.index("app/util.js") < order.index("app/ui/dialog.js")
        assert order[-1] == "app/main.js"

    def test_include_tests(self):
        result = run_pipeline(
            ConversionConfig(repo_path=SIMPLE, roots=["app.main"], include_tests=True)
        )
        assert "app/ui/dialog_test.js" in result.selected
        assert "app/testing/asserts.js" in result.selected
        assert "app/orphan.js" not in result.selected
        assert result.metadata["test_roots"] == ["app/ui/dialog_test.js"]

    def test_no_roots_selects_every_non_test_file(self):
        result = run_pipeline(ConversionConfig(repo_path=SIMPLE))
        assert "app/orphan.js" in result.selected
        assert "app/ui/dialog_test.js" not in result.selected
        assert len(result.selected) == 5

    def test_explicit_sources(self):
        sources = [
            ("a.js", "goog.provide('a');\ngoog.require('b');\n"),
            ("b.js", "goog.provide('b');\n"),
        ]
        result = run_pipeline(ConversionConfig(), sources=sources)
        assert result.selected == ["a.js", "b.js"]
        assert result.load_order == ["b.js", "a.js"]

    def test_progress_callback(self):
        phases = []
        run_pipeline(
            ConversionConfig(repo_path=SIMPLE),
            progress_callback=lambda name, label: phases.append(name),
        )
        assert phases == ["discovery", "scanning", "validation", "selection", "cycles"]

    def test_deterministic(self):
        config = ConversionConfig(repo_path=SIMPLE, include_tests=True)
        first = run_pipeline(config)
        second = run_pipeline(config)
        assert first.selected == second.selected
        assert first.demotions == second.demotions
        assert first.load_order == second.load_order

    def test_scan_warnings_collected(self):
        sources = [
            ("a.js", "goog.provide('a');\ngoog.require(b);\ngoog.require('b');\n"),
            ("b.js", "goog.provide('b');\n"),
        ]
        result = run_pipeline(ConversionConfig(), sources=sources)
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("a.js:2:")

    def test_unmatched_and_ambiguous_fail(self):
        sources = [
            ("a.js", "goog.provide('a');\ngoog.require('missing');\n"),
        ]
        with pytest.raises(GraphConsistencyError) as exc:
            run_pipeline(ConversionConfig(), sources=sources)
        assert exc.value.unmatched[0].namespace == "missing"

        sources = [
            ("x1.js", "goog.provide('x');\n"),
            ("x2.js", "goog.provide('x');\ngoog.require('x');\n"),
        ]
        with pytest.raises(GraphConsistencyError) as exc:
            run_pipeline(ConversionConfig(), sources=sources)
        assert exc.value.ambiguous[0].namespace == "x"

    def test_ambiguity_and_unmatched_reported_in_one_error(self):
        sources = [
            ("x1.js", "goog.provide('x');\n"),
            ("x2.js", "goog.provide('x');\ngoog.require('missing');\n"),
        ]
        with pytest.raises(GraphConsistencyError) as exc:
            run_pipeline(ConversionConfig(), sources=sources)
        assert [a.namespace for a in exc.value.ambiguous] == ["x"]
        assert [u.namespace for u in exc.value.unmatched] == ["missing"]

    def test_parent_and_child_namespace_cycle_is_broken(self):
        sources = [
            ("sub.js", "goog.provide('x.Sub');\ngoog.require('x');\n"
                       "x.Sub = function() { this.h = x.helper; };\n"),
            ("x.js", "goog.provide('x');\ngoog.require('x.Sub');\n"
                     "x.DEFAULT = new x.Sub();\n"),
        ]
        result = run_pipeline(ConversionConfig(), sources=sources)
        assert len(result.demotions) == 1
        assert result.demotions[0]["from"] == "sub.js"
        assert result.demotions[0]["to"] == "x.js"
        assert result.demotions[0]["namespaces"] == ["x"]

    def test_unbreakable_cycle_fails(self):
        sources = [
            ("a.js", "goog.provide('a');\ngoog.require('b');\na.x = b.y;\n"),
            ("b.js", "goog.provide('b');\ngoog.require('a');\nb.y = a.z;\n"),
        ]
        with pytest.raises(UnbreakableCycle):
            run_pipeline(ConversionConfig(), sources=sources)

    def test_no_break_cycles_leaves_graph_untouched(self):
        sources = [
            ("a.js", "goog.provide('a');\ngoog.require('b');\n"),
            ("b.js", "goog.provide('b');\ngoog.require('a');\n"),
        ]
        result = run_pipeline(ConversionConfig(break_cycles=False), sources=sources)
        assert result.demotions == []
        assert result.load_order == []
        assert result.stats["forward_declarations"] == 0


class TestOutput:
    def test_write_output(self, tmp_path):
        result = run_pipeline(ConversionConfig(repo_path=SIMPLE, roots=["app.main"]))
        output = tmp_path / "out" / "result.json"
        write_output(result, str(output))

        data = json.loads(output.read_text())
        assert data["version"] == "1.0"
        assert data["selected"] == result.selected
        assert data["stats"]["selected"] == 4
        assert data["metadata"]["roots"] == ["app/main.js"]


class TestCli:
    def test_analyze(self, tmp_path):
        output = tmp_path / "out.json"
        runner = CliRunner()
        result = runner.invoke(cli, [
            "analyze", SIMPLE, "--root", "app.main", "-o", str(output), "--quiet",
        ])
        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text())
        assert len(data["selected"]) == 4
        assert len(data["demotions"]) == 1

    def test_analyze_with_progress(self, tmp_path):
        output = tmp_path / "out.json"
        runner = CliRunner()
        result = runner.invoke(cli, ["analyze", SIMPLE, "-o", str(output)])
        assert result.exit_code == 0, result.output
        assert "Output written to" in result.output
        assert output.exists()

    def test_analyze_reports_every_unmatched_dependency(self, tmp_path):
        root = _write_corpus(tmp_path / "src", {
            "a.js": "goog.provide('a');\ngoog.require('ghost.one');\n",
            "b.js": "goog.provide('b');\ngoog.require('ghost.two');\n",
        })
        output = tmp_path / "out.json"
        runner = CliRunner()
        result = runner.invoke(cli, ["analyze", root, "-o", str(output)])
        assert result.exit_code == 1
        assert "ghost.one" in result.output
        assert "ghost.two" in result.output
        assert not output.exists()

    def test_check_ok(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["check", SIMPLE])
        assert result.exit_code == 0, result.output
        assert "OK" in result.output

    def test_check_ambiguous(self, tmp_path):
        root = _write_corpus(tmp_path, {
            "one.js": "goog.provide('dup');\n",
            "two.js": "goog.provide('dup');\ngoog.require('dup');\n",
        })
        runner = CliRunner()
        result = runner.invoke(cli, ["check", root])
        assert result.exit_code == 1
        assert "dup" in result.output

    def test_check_reports_ambiguity_and_unmatched(self, tmp_path):
        root = _write_corpus(tmp_path, {
            "x1.js": "goog.provide('x');\n",
            "x2.js": "goog.provide('x');\ngoog.require('missing');\n",
        })
        runner = CliRunner()
        result = runner.invoke(cli, ["check", root])
        assert result.exit_code == 1
        assert "x1.js" in result.output
        assert "missing" in result.output

    def test_cycles(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["cycles", SIMPLE])
        assert result.exit_code == 0, result.output
        assert "Cycle group" in result.output
        assert "component.js" in result.output
