"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from podplacer.cli import main


@pytest.fixture
def runner():
    """Click test runner."""
    return CliRunner()


@pytest.fixture
def catalog_dir(tmp_path):
    """A one-level catalog on disk."""
    (tmp_path / "01-tiny.yaml").write_text(
        """
apiVersion: podplacer.io/v1
kind: Level
metadata:
  name: Tiny
  analysis: Both pods placed.
spec:
  nodes:
    - {id: node-1, name: worker-1, capacity: 1, resources: {vCPU: 2, memory: 4}}
    - {id: node-2, name: worker-2, capacity: 1, resources: {vCPU: 2, memory: 4}}
  pods:
    - {id: pod-1, name: web-0, resources: {vCPURequest: 1, memoryRequest: 1}}
    - {id: pod-2, name: web-1, resources: {vCPURequest: 1, memoryRequest: 1}}
  objectives:
    - description: Schedule both pods
      kind: full-coverage
  solution:
    pod-1: node-1
    pod-2: node-2
"""
    )
    return tmp_path


class TestLevelsCommand:
    """Tests for the levels command."""

    def test_lists_builtin_levels(self, runner, monkeypatch):
        """Test listing the shipped catalog."""
        monkeypatch.delenv("PODPLACER_CATALOG", raising=False)
        result = runner.invoke(main, ["levels"])
        assert result.exit_code == 0
        assert "1. Pod Scheduling 101" in result.output

    def test_catalog_option(self, runner, catalog_dir):
        """Test --catalog selects another catalog."""
        result = runner.invoke(main, ["--catalog", str(catalog_dir), "levels", "--json"])
        assert result.exit_code == 0
        summaries = json.loads(result.output)
        assert [s["name"] for s in summaries] == ["Tiny"]

    def test_catalog_env_var(self, runner, catalog_dir):
        """Test PODPLACER_CATALOG selects another catalog."""
        result = runner.invoke(main, ["levels"], env={"PODPLACER_CATALOG": str(catalog_dir)})
        assert result.exit_code == 0
        assert "Tiny (2 nodes, 2 pods)" in result.output

    def test_missing_catalog(self, runner, tmp_path):
        """Test a missing catalog exits with an error."""
        result = runner.invoke(main, ["--catalog", str(tmp_path / "nope"), "levels"])
        assert result.exit_code == 1
        assert "Error loading catalog" in result.output


class TestShowCommand:
    """Tests for the show command."""

    def test_show_level(self, runner, catalog_dir):
        """Test showing a level briefing."""
        result = runner.invoke(main, ["-c", str(catalog_dir), "show", "1"])
        assert result.exit_code == 0
        assert "Level 1: Tiny" in result.output
        assert "Schedule both pods" in result.output

    def test_show_out_of_range(self, runner, catalog_dir):
        """Test showing a level that does not exist."""
        result = runner.invoke(main, ["-c", str(catalog_dir), "show", "3"])
        assert result.exit_code == 1
        assert "level 3 does not exist" in result.output


class TestValidateCommand:
    """Tests for the validate command."""

    def test_valid_catalog(self, runner, catalog_dir):
        """Test validating a good catalog."""
        result = runner.invoke(main, ["validate", str(catalog_dir)])
        assert result.exit_code == 0
        assert "1 level(s) OK" in result.output

    def test_invalid_catalog(self, runner, catalog_dir):
        """Test validation errors are listed and exit non-zero."""
        path = catalog_dir / "01-tiny.yaml"
        path.write_text(path.read_text().replace("pod-2: node-2", "pod-2: node-7"))
        result = runner.invoke(main, ["validate", str(catalog_dir)])
        assert result.exit_code == 1
        assert "Solution references unknown node 'node-7'" in result.output


class TestSimulateCommand:
    """Tests for the simulate command."""

    def test_moves_complete_level(self, runner, catalog_dir):
        """Test replaying a winning sequence of moves."""
        result = runner.invoke(
            main, ["-c", str(catalog_dir), "simulate", "1", "pod-1=node-1", "pod-2=node-2"]
        )
        assert result.exit_code == 0
        assert "pod-1 -> node-1: ok" in result.output
        assert "[levelComplete] score=100" in result.output

    def test_rejected_move_reported(self, runner, catalog_dir):
        """Test rejected moves are reported with their reason."""
        result = runner.invoke(
            main, ["-c", str(catalog_dir), "simulate", "1", "pod-1=node-1", "pod-2=node-1"]
        )
        assert result.exit_code == 0
        assert "pod-2 -> node-1: CapacityExceeded" in result.output

    def test_json_report(self, runner, catalog_dir):
        """Test the JSON report after a reveal."""
        result = runner.invoke(
            main, ["-c", str(catalog_dir), "simulate", "1", "--reveal", "--json"]
        )
        assert result.exit_code == 0
        report = json.loads(result.output)
        assert report["phase"] == "playing"
        assert report["solutionRevealed"] is True
        assert report["revealsRemaining"] == 1
        assert report["summary"]["complete"] is True

    def test_output_file(self, runner, catalog_dir, tmp_path):
        """Test writing the report to a file."""
        out = tmp_path / "report.json"
        result = runner.invoke(
            main, ["-c", str(catalog_dir), "simulate", "1", "pod-1=node-1", "-o", str(out)]
        )
        assert result.exit_code == 0
        assert json.loads(out.read_text())["summary"]["podsScheduled"] == 1

    def test_bad_move_syntax(self, runner, catalog_dir):
        """Test malformed moves are a usage error."""
        result = runner.invoke(main, ["-c", str(catalog_dir), "simulate", "1", "pod-1"])
        assert result.exit_code == 2
        assert "expected POD=NODE" in result.output


class TestPlayCommand:
    """Tests for the interactive play loop."""

    def test_play_through_level(self, runner, catalog_dir):
        """Test playing a level to the end of the game."""
        commands = "\n".join(
            ["help", "begin", "move pod-1 node-1", "move pod-2 node-1", "move pod-2 node-2", "next"]
        )
        result = runner.invoke(main, ["-c", str(catalog_dir), "play"], input=commands + "\n")

        assert result.exit_code == 0
        assert "Rejected (CapacityExceeded)" in result.output
        assert "Level complete! Score: 100" in result.output
        assert "Both pods placed." in result.output
        assert "All levels complete! Final score: 100" in result.output

    def test_reveal_and_quit(self, runner, catalog_dir):
        """Test reveals until the quota runs out."""
        commands = "begin\nreveal\nreveal\nreveal\nquit\n"
        result = runner.invoke(main, ["-c", str(catalog_dir), "play"], input=commands)

        assert result.exit_code == 0
        assert "1 reveal(s) remaining" in result.output
        assert "0 reveal(s) remaining" in result.output
        assert "RevealQuotaExhausted" in result.output

    def test_end_of_input_exits(self, runner, catalog_dir):
        """Test end of input ends the loop cleanly."""
        result = runner.invoke(main, ["-c", str(catalog_dir), "play"], input="status\n")
        assert result.exit_code == 0
        assert "[briefing]" in result.output

    def test_unknown_command(self, runner, catalog_dir):
        """Test unknown commands point at help."""
        result = runner.invoke(main, ["-c", str(catalog_dir), "play"], input="dance\nquit\n")
        assert "Unknown command 'dance'" in result.output
