"""Shared defaults for chainflow."""

DEFAULT_QUEUE_NAME = "workflow-execution"
DEFAULT_JOB_RETRIES = 3
DEFAULT_BACKOFF_MS = 8000
PROGRESS_TYPE = "workflow_progress"
