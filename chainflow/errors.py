"""Error taxonomy for chainflow runs."""

from __future__ import annotations

from typing import Optional


class WorkflowError(Exception):
    """Base class for errors that fail a run without failing the job."""

    def __init__(self, message: str, node_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.node_id = node_id


class StructuralError(WorkflowError):
    """The node/edge graph does not describe a single linear chain."""


class UnsupportedNodeError(WorkflowError):
    """A node carries a missing or unknown ``type`` tag."""


class InitializationError(WorkflowError):
    """A step could not be prepared for execution."""


class ExecutionError(WorkflowError):
    """A step raised while executing."""


class RunNotFoundError(LookupError):
    """No run log exists for the requested run id."""


class WorkflowNotFoundError(LookupError):
    """No workflow exists for the requested id."""
