# src/cogcycle/exceptions.py
"""
Custom exceptions for the cogcycle package.

This module defines a hierarchy of custom exception classes so callers can
tell configuration problems, persistence failures and task failures apart.
Most scheduler operations report failure through return values; these
exceptions are raised at the edges (config loading, storage I/O) and inside
task handlers, where the executor converts them into failed results.
"""

class CogCycleError(Exception):
    """Base class for all cogcycle specific errors."""
    def __init__(self, message: str = "An unspecified error occurred in cogcycle."):
        super().__init__(message)

class ConfigError(CogCycleError):
    """Raised for errors related to configuration loading or validation."""
    def __init__(self, message: str = "Configuration error."):
        super().__init__(message)

class PersistenceError(CogCycleError):
    """Raised when goal snapshots or the cycle journal cannot be read or written."""
    def __init__(self, path: str = "Unknown", message: str = "Persistence error."):
        self.path = path
        super().__init__(f"{message} Path: '{path}'")

class TaskExecutionError(CogCycleError):
    """Raised inside a task handler when its work cannot be completed."""
    def __init__(self, task_type: str = "Unknown", message: str = "Task execution failed."):
        self.task_type = task_type
        super().__init__(f"Error in task '{task_type}': {message}")

class CollaboratorUnavailableError(TaskExecutionError):
    """
    Raised when a handler needs an external collaborator (memory tier,
    knowledge base, entity extractor, user model) that was not configured.
    """
    def __init__(self, task_type: str = "Unknown", collaborator: str = "Unknown"):
        self.collaborator = collaborator
        super().__init__(task_type, f"Collaborator '{collaborator}' is not available.")

class UnknownTaskTypeError(TaskExecutionError):
    """Raised when a task type string does not name a known handler."""
    def __init__(self, task_type: str = "Unknown"):
        super().__init__(task_type, "No handler registered for this task type.")

class CycleInProgressError(CogCycleError):
    """Raised when a second cognitive cycle is requested while one is running."""
    def __init__(self, cycle_id: str = "Unknown", message: str = "A cycle is already in progress."):
        self.cycle_id = cycle_id
        super().__init__(f"{message} Cycle ID: '{cycle_id}'")
