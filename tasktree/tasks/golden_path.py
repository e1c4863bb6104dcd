"""
黄金路径 (golden path)

当前工作任务到树根的祖先链，以及它的直接子任务和完成情况。
每次渲染调用一次，是当前状态的纯函数。
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Set, Tuple

from ..logging import get_logger
from .store import InvariantViolation


logger = get_logger()


@dataclass(frozen=True)
class ChildStatus:
    """直接子任务"""
    id: int
    is_done: bool


@dataclass(frozen=True)
class WorkingTaskPath:
    """黄金路径结果"""
    working_task_id: Optional[int] = None
    ancestor_path: FrozenSet[int] = field(default_factory=frozenset)
    direct_children: Tuple[ChildStatus, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.working_task_id is None

    def contains(self, task_id: int) -> bool:
        """任务是否在祖先链上（含工作任务自身）"""
        return task_id in self.ancestor_path

    def is_direct_child(self, task_id: int) -> bool:
        return any(child.id == task_id for child in self.direct_children)


EMPTY_PATH = WorkingTaskPath()


def get_working_task_path(store) -> WorkingTaskPath:
    """
    计算黄金路径

    没有工作任务时返回 EMPTY_PATH。遇到不变量被破坏（多个工作任务、
    父子链成环）时记录错误并同样返回 EMPTY_PATH，不会无限循环。

    Args:
        store: 任务存储

    Returns:
        WorkingTaskPath
    """
    working = [task for task in store.all_tasks() if task.currently_working]
    if not working:
        return EMPTY_PATH

    try:
        if len(working) > 1:
            raise InvariantViolation(f"存在多个工作中任务: {[t.id for t in working]}")
        return _resolve(store, working[0])
    except InvariantViolation as e:
        logger.error(f"黄金路径降级为空: {e}", operation="golden_path")
        return EMPTY_PATH


def _resolve(store, working_task) -> WorkingTaskPath:
    ancestors: Set[int] = {working_task.id}
    current = working_task.main_parent
    while current is not None:
        if current in ancestors:
            raise InvariantViolation(f"父子链在任务 {current} 处成环")
        ancestors.add(current)
        parent = store.find_task(current)
        current = parent.main_parent if parent is not None else None

    children = []
    for child_id in working_task.children:
        child = store.find_task(child_id)
        children.append(ChildStatus(id=child_id, is_done=child.is_done if child is not None else False))

    return WorkingTaskPath(
        working_task_id=working_task.id,
        ancestor_path=frozenset(ancestors),
        direct_children=tuple(children),
    )
