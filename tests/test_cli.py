"""Integration tests for tasktree.cli module."""
from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from tasktree.cli import cli

from tests.conftest import record


@pytest.fixture
def tasks_file(records_file_factory):
    """Root(1) -> 2 -> 3 with 3 working, and 4 depending on 1."""
    return records_file_factory([
        record(1, "Ship the release", children=[2]),
        record(2, "Write the changelog " + "x" * 60, parent=1, children=[3]),
        record(3, "Collect merged PRs", parent=2, working=True),
        record(4, "Announce", dependencies=[1]),
    ])


class TestAliasedGroup:
    """Tests for command aliasing."""

    def test_check_alias(self, runner: CliRunner):
        result = runner.invoke(cli, ["c", "--help"])
        assert result.exit_code == 0
        assert "Validate tree" in result.output

    def test_tree_alias(self, runner: CliRunner):
        result = runner.invoke(cli, ["ls", "--help"])
        assert result.exit_code == 0
        assert "Render the task forest" in result.output


class TestCliRoot:
    """Tests for root CLI command."""

    def test_help(self, runner: CliRunner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Quick start" in result.output

    def test_version(self, runner: CliRunner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "1.0.0" in result.output

    def test_no_command_shows_help(self, runner: CliRunner):
        result = runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "task-tree" in result.output


class TestCheckCommand:
    """Tests for check command."""

    def test_valid_file(self, runner: CliRunner, tasks_file):
        result = runner.invoke(cli, ["check", str(tasks_file)])
        assert result.exit_code == 0
        assert "4 tasks" in result.output

    def test_invariant_violation(self, runner: CliRunner, records_file_factory):
        path = records_file_factory([record(1, working=True), record(2, working=True)])
        result = runner.invoke(cli, ["check", str(path)])
        assert result.exit_code == 1
        assert "多个工作中任务" in result.output

    def test_invalid_record(self, runner: CliRunner, records_file_factory):
        path = records_file_factory([{"title": "no id"}])
        result = runner.invoke(cli, ["check", str(path)])
        assert result.exit_code == 2
        assert "Invalid task records" in result.output

    def test_scalar_records_file(self, runner: CliRunner, records_file_factory):
        path = records_file_factory(5)
        result = runner.invoke(cli, ["check", str(path)])
        assert result.exit_code == 2
        assert "Invalid task records" in result.output

    @pytest.mark.parametrize("content", [
        "{not json",
        "[1, 2]",
        json.dumps({"text_length_threshold": 1000}),
    ])
    def test_malformed_rc(self, runner: CliRunner, tasks_file, temp_dir, content):
        (temp_dir / ".tasktreerc").write_text(content)
        result = runner.invoke(cli, ["--repo", str(temp_dir), "check", str(tasks_file)])
        assert result.exit_code == 2
        assert "Invalid .tasktreerc" in result.output

    def test_json_output(self, runner: CliRunner, tasks_file):
        result = runner.invoke(cli, ["--json", "check", str(tasks_file)])
        assert result.exit_code == 0
        assert json.loads(result.output) == {"ok": True, "tasks": 4}


class TestPathCommand:
    """Tests for path command."""

    def test_json_path(self, runner: CliRunner, tasks_file):
        result = runner.invoke(cli, ["--json", "path", str(tasks_file)])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["workingTaskId"] == 3
        assert data["ancestorPath"] == [1, 2, 3]
        assert data["directChildren"] == []

    def test_rich_path(self, runner: CliRunner, records_file_factory):
        path = records_file_factory([
            record(1, "Release", children=[2]),
            record(2, "Changelog", parent=1, working=True, children=[3]),
            record(3, "Draft [notes]", parent=2, status="done"),
        ])
        result = runner.invoke(cli, ["path", str(path)])
        assert result.exit_code == 0
        assert "Release → Changelog" in result.output
        assert "Draft [notes]" in result.output

    def test_no_working_task(self, runner: CliRunner, records_file_factory):
        path = records_file_factory([record(1)])
        result = runner.invoke(cli, ["path", str(path)])
        assert result.exit_code == 0
        assert "No task is currently being worked on" in result.output


class TestTreeCommand:
    """Tests for tree command."""

    def test_truncation(self, runner: CliRunner, tasks_file):
        result = runner.invoke(cli, ["--json", "tree", str(tasks_file), "--threshold", "20"])
        assert result.exit_code == 0
        rows = {row["id"]: row for row in json.loads(result.output)}
        assert rows[2]["truncated"] is True
        assert rows[2]["title"].endswith("...")
        assert rows[3]["truncated"] is False
        assert rows[1]["golden"] is True
        assert rows[4]["golden"] is False

    def test_threshold_from_rc(self, runner: CliRunner, tasks_file, temp_dir):
        (temp_dir / ".tasktreerc").write_text(json.dumps({"text_length_threshold": 200}))
        result = runner.invoke(cli, ["--repo", str(temp_dir), "--json", "tree", str(tasks_file)])
        assert result.exit_code == 0
        assert not any(row["truncated"] for row in json.loads(result.output))

    def test_rich_tree(self, runner: CliRunner, tasks_file):
        result = runner.invoke(cli, ["tree", str(tasks_file)])
        assert result.exit_code == 0
        assert "Ship the release" in result.output
        assert "Announce" in result.output


class TestCycleCommand:
    """Tests for cycle command."""

    def test_cycle_detected(self, runner: CliRunner, tasks_file):
        result = runner.invoke(cli, ["--json", "cycle", str(tasks_file), "1", "4"])
        assert result.exit_code == 1
        assert json.loads(result.output)["wouldCreateCycle"] is True

    def test_safe_edge(self, runner: CliRunner, tasks_file):
        result = runner.invoke(cli, ["cycle", str(tasks_file), "4", "3"])
        assert result.exit_code == 0
        assert "is safe" in result.output
