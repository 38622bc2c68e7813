"""chainflow: queue-driven execution of linear node workflows."""

from .contracts import JobResult, ProgressEnvelope, ProgressEvent, RunStatus, WorkflowJobData
from .dispatch import RunHandle, WorkflowDispatcher
from .engine import ExecutionContext, RunCoordinator
from .errors import (
    ExecutionError,
    InitializationError,
    StructuralError,
    UnsupportedNodeError,
    WorkflowError,
)
from .jobs import Job, JobQueue
from .persistence import get_repository
from .progress import ProgressPublisher, open_run_progress, watch_run
from .resolver import ChainResolver, WorkflowChain
from .steps import STEP_REGISTRY, Step, StepType, register_step
from .transports import get_transport

__version__ = "0.1.0"
__all__ = [
    "ChainResolver",
    "ExecutionContext",
    "ExecutionError",
    "InitializationError",
    "Job",
    "JobQueue",
    "JobResult",
    "ProgressEnvelope",
    "ProgressEvent",
    "ProgressPublisher",
    "RunCoordinator",
    "RunHandle",
    "RunStatus",
    "STEP_REGISTRY",
    "Step",
    "StepType",
    "StructuralError",
    "UnsupportedNodeError",
    "WorkflowChain",
    "WorkflowDispatcher",
    "WorkflowError",
    "WorkflowJobData",
    "get_repository",
    "get_transport",
    "open_run_progress",
    "register_step",
    "watch_run",
]
