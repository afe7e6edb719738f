# tests/test_cli.py
"""
Tests for the cogcycle command-line interface.

Tests cover:
    - Parser structure and defaults
    - config: effective configuration with persistence forced on
    - goal: add/list/progress/complete/abandon against a persisted store
    - cycle and status: one cycle journalled and reported
    - run: bounded wake loop via --cycles
    - Error exits for bad config paths, collaborator factories and input
"""

import json
import logging

import pytest

from cogcycle.cli import OutputFormatter, create_parser, main
from cogcycle.logging_config import UnifiedLoggingManager


@pytest.fixture(autouse=True)
def reset_logging():
    """main() configures logging once per process; undo it after each test."""
    yield
    UnifiedLoggingManager._instance = None
    UnifiedLoggingManager._configured = False
    UnifiedLoggingManager._log_file_path = None
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


@pytest.fixture
def cli_config(tmp_path):
    """Config file keeping goals, journal and logs inside tmp_path."""
    path = tmp_path / "config.toml"
    path.write_text(
        "[cogcycle.persistence]\n"
        f'goals_path = "{(tmp_path / "goals.json").as_posix()}"\n'
        f'journal_path = "{(tmp_path / "cycles.jsonl").as_posix()}"\n'
        "\n"
        "[cogcycle.logging]\n"
        "file_enabled = false\n"
        "\n"
        "[cogcycle.executor]\n"
        "maintenance_tasks = []\n"
    )
    return str(path)


def _run(capsys, *args):
    code = main(list(args))
    return code, capsys.readouterr().out


# =============================================================================
# Parser
# =============================================================================


class TestParser:
    """Tests for create_parser."""

    def test_goal_add_defaults(self):
        parsed = create_parser().parse_args(["goal", "add", "Learn Rust"])
        assert parsed.command == "goal"
        assert parsed.goal_command == "add"
        assert parsed.source == "user"
        assert parsed.priority == "medium"
        assert parsed.criterion == []

    def test_global_options(self):
        parsed = create_parser().parse_args(["-c", "x.toml", "--json", "run", "--cycles", "2"])
        assert parsed.config == "x.toml"
        assert parsed.json is True
        assert parsed.cycles == 2
        assert parsed.interval is None

    def test_invalid_priority_rejected(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["goal", "add", "x", "--priority", "urgent"])

    def test_formatter_plain_without_tty(self):
        formatter = OutputFormatter(use_color=True)
        assert formatter.success("done") == "✓ done"


# =============================================================================
# Commands
# =============================================================================


class TestCommands:
    """End-to-end command tests against files in tmp_path."""

    def test_no_command_prints_help(self, capsys, cli_config):
        code, out = _run(capsys, "--config", cli_config)
        assert code == 0
        assert "usage" in out.lower()

    def test_config(self, capsys, cli_config):
        code, out = _run(capsys, "--config", cli_config, "config")
        data = json.loads(out)
        assert code == 0
        assert data["persistence"]["enabled"] is True
        assert data["executor"]["maintenance_tasks"] == []

    def test_goal_lifecycle(self, capsys, cli_config):
        code, out = _run(
            capsys, "--config", cli_config, "--json",
            "goal", "add", "Learn Rust", "-d", "systems programming",
            "--priority", "high", "--criterion", "finish the book",
        )
        assert code == 0
        goal = json.loads(out)
        assert goal["source"] == "user"
        assert goal["success_criteria"] == ["finish the book"]

        code, out = _run(capsys, "--config", cli_config, "goal", "progress", goal["id"], "0.4")
        assert code == 0

        code, out = _run(capsys, "--config", cli_config, "--json", "goal", "list")
        [listed] = json.loads(out)
        assert listed["id"] == goal["id"]
        assert listed["progress"] == 0.4

        assert _run(capsys, "--config", cli_config, "goal", "complete", goal["id"])[0] == 0
        code, out = _run(capsys, "--config", cli_config, "goal", "abandon", goal["id"])
        assert code == 1
        assert "Cannot abandon" in out

        code, out = _run(capsys, "--config", cli_config, "--json", "goal", "list",
                         "--status", "completed")
        assert [g["id"] for g in json.loads(out)] == [goal["id"]]

    def test_goal_list_empty(self, capsys, cli_config):
        code, out = _run(capsys, "--config", cli_config, "goal", "list")
        assert code == 0
        assert "No goals" in out

    def test_unknown_goal(self, capsys, cli_config):
        code, _ = _run(capsys, "--config", cli_config, "goal", "pause", "goal-missing")
        assert code == 1

    def test_cycle_then_status(self, capsys, cli_config):
        _run(capsys, "--config", cli_config, "goal", "add", "Ship it", "--priority", "critical",
             "--source", "agent")

        code, out = _run(capsys, "--config", cli_config, "--json", "cycle")
        assert code == 0
        cycle = json.loads(out)
        assert cycle["goals_evaluated"] == 1
        assert cycle["tasks_executed"] == 1

        code, out = _run(capsys, "--config", cli_config, "--json", "status")
        status = json.loads(out)
        assert code == 0
        assert status["last_cycle"]["cycle_id"] == cycle["cycle_id"]
        assert status["goals"]["total_goals"] == 1

    def test_status_text_without_cycles(self, capsys, cli_config):
        code, out = _run(capsys, "--config", cli_config, "status")
        assert code == 0
        assert "Last cycle: none" in out

    def test_run_bounded(self, capsys, cli_config):
        code, out = _run(capsys, "--config", cli_config, "--json", "run", "--cycles", "2",
                         "--interval", "0.01")
        status = json.loads(out)
        assert code == 0
        assert status["total_cycles"] == 2
        assert status["running"] is False

    def test_run_with_wake_disabled(self, capsys, cli_config, tmp_path):
        """wake.enabled = false runs a single cycle instead of the loop."""
        with open(cli_config, "a") as f:
            f.write("\n[cogcycle.wake]\nenabled = false\n")

        code = main(["--config", cli_config, "--json", "run", "--cycles", "3"])
        captured = capsys.readouterr()

        assert code == 0
        assert "Wake timer disabled" in captured.err
        cycle = json.loads(captured.out)
        assert cycle["cycle_id"].startswith("cycle-")
        assert len((tmp_path / "cycles.jsonl").read_text().splitlines()) == 1


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    """Tests for error exit codes."""

    def test_missing_config_file(self, capsys, tmp_path):
        code, out = _run(capsys, "--config", str(tmp_path / "absent.toml"), "config")
        assert code == 1
        assert "not found" in out

    @pytest.mark.parametrize("target", ["no_colon", "json:no_such_factory", "builtins:dict"])
    def test_bad_collaborators(self, capsys, cli_config, target):
        code, out = _run(capsys, "--config", cli_config, "cycle", "--collaborators", target)
        assert code == 1
        assert "ollaborators" in out

    def test_bad_deadline(self, capsys, cli_config):
        code, _ = _run(capsys, "--config", cli_config, "goal", "add", "x", "--deadline", "soon")
        assert code == 1

    def test_bad_interval(self, capsys, cli_config):
        code, _ = _run(capsys, "--config", cli_config, "run", "--interval", "0")
        assert code == 1
