"""Test the command line interface."""

import json

import pytest
from typer.testing import CliRunner

from relayflow.cli import app

runner = CliRunner()


def write_graph(tmp_path, nodes, edges=None, name="CLI"):
    path = tmp_path / "graph.json"
    path.write_text(json.dumps({"name": name, "nodes": nodes, "edges": edges or []}))
    return path


@pytest.mark.unit
class TestCli:

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "RelayFlow" in result.stdout

    def test_validate_valid_graph(self, tmp_path):
        path = write_graph(tmp_path, [{"id": "t", "type": "trigger"}])

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 0
        assert "is valid" in result.stdout

    def test_validate_reports_cycle(self, tmp_path):
        path = write_graph(
            tmp_path,
            [{"id": "a", "type": "trigger"}, {"id": "b", "type": "trigger"}],
            [{"source": "a", "target": "b"}, {"source": "b", "target": "a"}],
        )

        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Circular dependency" in result.stdout

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["order", str(tmp_path / "nope.json")])

        assert result.exit_code == 1

    def test_order(self, tmp_path):
        path = write_graph(
            tmp_path,
            [{"id": "b", "type": "http"}, {"id": "a", "type": "trigger"}],
            [{"source": "a", "target": "b"}],
        )

        result = runner.invoke(app, ["order", str(path)])

        assert result.exit_code == 0
        assert result.stdout.index("1. a") < result.stdout.index("2. b")

    def test_run(self, tmp_path):
        path = write_graph(
            tmp_path,
            [
                {"id": "t", "type": "trigger"},
                {"id": "v", "type": "variable", "config": {"key": "who", "value": "{{trigger.name}}"}},
            ],
            [{"source": "t", "target": "v"}],
        )

        result = runner.invoke(app, ["run", str(path), "--trigger", '{"name": "Ada"}'])

        assert result.exit_code == 0
        assert "success" in result.stdout

    def test_run_failure_exits_nonzero(self, tmp_path):
        path = write_graph(tmp_path, [{"id": "c", "type": "condition", "config": {}}])

        result = runner.invoke(app, ["run", str(path)])

        assert result.exit_code == 1
        assert "failed" in result.stdout

    def test_run_rejects_bad_trigger(self, tmp_path):
        path = write_graph(tmp_path, [{"id": "t", "type": "trigger"}])

        result = runner.invoke(app, ["run", str(path), "--trigger", "{not json"])

        assert result.exit_code == 1
