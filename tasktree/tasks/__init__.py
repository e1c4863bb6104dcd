"""
task-tree 任务核心

提供任务存储、依赖环检测、黄金路径推导和标题可见性策略。
"""

from .store import (
    Task,
    TaskStatus,
    TaskStore,
    ChangeEvent,
    TaskTreeError,
    CycleError,
    NotFound,
    InvariantViolation,
)
from .cycles import would_create_cycle
from .golden_path import ChildStatus, WorkingTaskPath, EMPTY_PATH, get_working_task_path
from .visibility import (
    DEFAULT_TEXT_LENGTH_THRESHOLD,
    is_expanded,
    is_truncated,
    display_title,
    toggle_lock,
    expand,
    collapse,
)

__all__ = [
    "Task",
    "TaskStatus",
    "TaskStore",
    "ChangeEvent",
    "TaskTreeError",
    "CycleError",
    "NotFound",
    "InvariantViolation",
    "would_create_cycle",
    "ChildStatus",
    "WorkingTaskPath",
    "EMPTY_PATH",
    "get_working_task_path",
    "DEFAULT_TEXT_LENGTH_THRESHOLD",
    "is_expanded",
    "is_truncated",
    "display_title",
    "toggle_lock",
    "expand",
    "collapse",
]
