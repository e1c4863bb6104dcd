"""task-tree - graph integrity and derived state for a tree of tasks."""
from .tasks import (
    Task,
    TaskStatus,
    TaskStore,
    ChangeEvent,
    TaskTreeError,
    CycleError,
    NotFound,
    InvariantViolation,
    WorkingTaskPath,
    ChildStatus,
    would_create_cycle,
    get_working_task_path,
    is_expanded,
    is_truncated,
    toggle_lock,
    expand,
)
from .models import TaskRecord, TaskTreeConfig, load_config
from .logging import get_logger, configure_logging, TaskTreeLogger

__version__ = "1.0.0"
__all__ = [
    "Task",
    "TaskStatus",
    "TaskStore",
    "ChangeEvent",
    "TaskTreeError",
    "CycleError",
    "NotFound",
    "InvariantViolation",
    "WorkingTaskPath",
    "ChildStatus",
    "would_create_cycle",
    "get_working_task_path",
    "is_expanded",
    "is_truncated",
    "toggle_lock",
    "expand",
    "TaskRecord",
    "TaskTreeConfig",
    "load_config",
    "get_logger",
    "configure_logging",
    "TaskTreeLogger",
]
