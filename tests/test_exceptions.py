# tests/test_exceptions.py
"""
Tests for the cogcycle.exceptions module.

Tests all exception classes, their inheritance, attributes and
message formatting.
"""

import pytest

from cogcycle.exceptions import (
    CogCycleError,
    CollaboratorUnavailableError,
    ConfigError,
    CycleInProgressError,
    PersistenceError,
    TaskExecutionError,
    UnknownTaskTypeError,
)


class TestCogCycleError:
    """Tests for the base CogCycleError exception."""

    def test_default_message(self):
        assert "unspecified error" in str(CogCycleError()).lower()

    def test_custom_message(self):
        assert str(CogCycleError("Custom error message")) == "Custom error message"

    def test_is_exception(self):
        assert isinstance(CogCycleError(), Exception)


class TestHierarchy:
    """Every error can be caught as CogCycleError."""

    @pytest.mark.parametrize(
        "error",
        [
            ConfigError(),
            PersistenceError(),
            TaskExecutionError(),
            CollaboratorUnavailableError(),
            UnknownTaskTypeError(),
            CycleInProgressError(),
        ],
    )
    def test_base_class(self, error):
        assert isinstance(error, CogCycleError)

    def test_task_errors_share_a_parent(self):
        """Handler failures can be caught together."""
        assert issubclass(CollaboratorUnavailableError, TaskExecutionError)
        assert issubclass(UnknownTaskTypeError, TaskExecutionError)


class TestMessages:
    """Tests for attributes and formatted messages."""

    def test_config_error(self):
        assert str(ConfigError()) == "Configuration error."
        assert str(ConfigError("bad value")) == "bad value"

    def test_persistence_error(self):
        error = PersistenceError("/tmp/goals.json", "Disk full.")
        assert error.path == "/tmp/goals.json"
        assert str(error) == "Disk full. Path: '/tmp/goals.json'"

    def test_task_execution_error(self):
        error = TaskExecutionError("goal_research", "Goal vanished.")
        assert error.task_type == "goal_research"
        assert str(error) == "Error in task 'goal_research': Goal vanished."

    def test_collaborator_unavailable(self):
        error = CollaboratorUnavailableError("kb_maintenance", "knowledge_base")
        assert error.collaborator == "knowledge_base"
        assert error.task_type == "kb_maintenance"
        assert "Collaborator 'knowledge_base' is not available." in str(error)

    def test_unknown_task_type(self):
        error = UnknownTaskTypeError("dream")
        assert error.task_type == "dream"
        assert "'dream'" in str(error)

    def test_cycle_in_progress(self):
        error = CycleInProgressError("cycle-abc")
        assert error.cycle_id == "cycle-abc"
        assert str(error) == "A cycle is already in progress. Cycle ID: 'cycle-abc'"

    def test_can_be_raised_and_caught(self):
        with pytest.raises(CogCycleError, match="Path"):
            raise PersistenceError("x")
