"""
Tests for the ``vba_flow.cli`` entry point.
"""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from vba_flow.cli import main

PROJECT_DIR = Path(__file__).parent / "fixtures" / "project"
MODULE1 = str(PROJECT_DIR / "Module1.bas")


def _run(capsys, *argv):
    code = main(list(argv))
    out, err = capsys.readouterr()
    return code, out, err


class TestFormats:
    def test_json_default(self, capsys):
        code, out, err = _run(capsys, MODULE1)
        assert code == 0
        data = json.loads(out)
        assert data["moduleName"] == "Module1"
        assert [p["name"] for p in data["procedures"]] == ["Main", "Compute"]

    def test_unresolved_summary_on_stderr(self, capsys):
        _, _, err = _run(capsys, MODULE1)
        assert "WARNING: 1 unresolved call:" in err
        assert "[UNRESOLVED] Foo" in err

    def test_markdown(self, capsys):
        code, out, _ = _run(capsys, MODULE1, "--format", "markdown")
        assert code == 0
        assert out.startswith("# Module1")
        assert out.count("```mermaid") == 3

    def test_mermaid_single_procedure(self, capsys):
        code, out, _ = _run(capsys, MODULE1, "-f", "mermaid", "--procedure", "compute")
        assert code == 0
        assert 'title: "Module1.Compute"' in out
        assert "flowchart TD" in out
        assert "Main" not in out

    def test_mermaid_all(self, capsys):
        code, out, _ = _run(capsys, MODULE1, "-f", "mermaid")
        assert code == 0
        assert out.count("flowchart TD") == 3

    def test_callgraph_dot(self, capsys):
        code, out, _ = _run(capsys, MODULE1, "-f", "callgraph-dot", "-p", str(PROJECT_DIR))
        assert code == 0
        assert out.startswith('digraph "Module1_calls"')
        assert '"Module1.Main" -> "Helpers.Increment"' in out

    def test_output_file(self, capsys, tmp_path):
        target = tmp_path / "Module1.json"
        code, out, err = _run(capsys, MODULE1, "-o", str(target))
        assert code == 0
        assert out == ""
        assert "Output written to" in err
        assert json.loads(target.read_text(encoding="utf-8"))["moduleName"] == "Module1"


class TestFailures:
    def test_missing_module(self, capsys, tmp_path):
        code, out, err = _run(capsys, str(tmp_path / "Missing.bas"))
        assert code == 1
        assert out == ""
        assert err.startswith("error: Module file not found")

    def test_missing_project_dir(self, capsys, tmp_path):
        code, _, err = _run(capsys, MODULE1, "-p", str(tmp_path / "nowhere"))
        assert code == 1
        assert "Project directory not found" in err

    def test_unknown_procedure(self, capsys):
        code, _, err = _run(capsys, MODULE1, "-f", "mermaid", "--procedure", "Nope")
        assert code == 1
        assert "no procedure named 'Nope'" in err

    def test_bad_format_rejected_by_argparse(self):
        with pytest.raises(SystemExit):
            main([MODULE1, "--format", "svg"])
