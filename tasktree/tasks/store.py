"""
任务存储 (TaskStore)

持有全部任务、父子树边和依赖边，提供经过校验的变更操作与只读查询。
每次成功的变更都会同步通知订阅者（渲染层、持久化层）。
"""

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from ..logging import get_logger
from .cycles import would_create_cycle
from .visibility import toggle_lock


logger = get_logger()


class TaskStatus(str, Enum):
    """任务状态"""
    TODO = "todo"
    DONE = "done"


class TaskTreeError(Exception):
    """task-tree 错误基类"""
    pass


class CycleError(TaskTreeError):
    """变更会形成环（依赖环或父子环）"""
    pass


class NotFound(TaskTreeError, KeyError):
    """按 ID 查找任务失败"""

    def __init__(self, task_id: int):
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"任务 {self.task_id} 不存在"


class InvariantViolation(TaskTreeError):
    """内部不变量被破坏（多个工作中任务、树中有环等）"""
    pass


@dataclass
class Task:
    """任务节点"""
    id: int                                              # 任务 ID
    title: str = ""                                      # 标题
    status: TaskStatus = TaskStatus.TODO                 # 状态
    main_parent: Optional[int] = None                    # 父任务 ID
    children: List[int] = field(default_factory=list)    # 子任务 ID（有序）
    dependencies: List[int] = field(default_factory=list)  # 依赖的任务 ID
    currently_working: bool = False                      # 是否为当前工作任务
    text_expanded: bool = False                          # 临时展开（取消选中时清除）
    text_locked: bool = False                            # 锁定展开（持久化）

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    @property
    def is_root(self) -> bool:
        return self.main_parent is None


@dataclass(frozen=True)
class ChangeEvent:
    """变更通知"""
    kind: str                      # 操作名，如 "add_dependency"
    task_ids: Tuple[int, ...] = ()  # 受影响的任务


Listener = Callable[[ChangeEvent], None]


class TaskStore:
    """
    任务存储

    支持功能:
    - 创建/删除任务（删除时级联清理子树与引用）
    - 依赖边增删（由环检测把关）
    - 重新挂接父任务（拒绝自身或后代）
    - 工作任务的原子切换
    - 不变量校验与修复
    - 变更订阅
    """

    def __init__(self):
        self._tasks: Dict[int, Task] = {}
        self._next_id: int = 0
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # 订阅
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        订阅变更通知

        Args:
            listener: 回调，接收 ChangeEvent

        Returns:
            取消订阅的函数
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: str, *task_ids: int) -> None:
        event = ChangeEvent(kind=kind, task_ids=tuple(task_ids))
        for listener in list(self._listeners):
            listener(event)

    # ------------------------------------------------------------------
    # 读取
    # ------------------------------------------------------------------

    @property
    def next_id(self) -> int:
        return self._next_id

    def get_task(self, task_id: int) -> Task:
        """获取任务，不存在时抛出 NotFound"""
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFound(task_id)
        return task

    def find_task(self, task_id: Optional[int]) -> Optional[Task]:
        """获取任务，不存在时返回 None"""
        if task_id is None:
            return None
        return self._tasks.get(task_id)

    def all_tasks(self) -> Tuple[Task, ...]:
        """全部任务（只读视图）"""
        return tuple(self._tasks.values())

    def working_task(self) -> Optional[Task]:
        """当前工作任务"""
        for task in self._tasks.values():
            if task.currently_working:
                return task
        return None

    def get_descendants(self, task_id: int) -> List[int]:
        """获取全部后代 ID（广度优先）"""
        task = self.find_task(task_id)
        if task is None:
            return []

        descendants: List[int] = []
        seen: Set[int] = {task_id}
        queue = deque(task.children)

        while queue:
            child_id = queue.popleft()
            if child_id in seen:
                continue
            seen.add(child_id)
            descendants.append(child_id)

            child = self._tasks.get(child_id)
            if child is not None:
                queue.extend(child.children)

        return descendants

    def get_ancestors(self, task_id: int) -> List[int]:
        """获取祖先 ID（父任务在前，根在后）"""
        ancestors: List[int] = []
        task = self.find_task(task_id)
        seen: Set[int] = {task_id}

        while task is not None and task.main_parent is not None:
            parent_id = task.main_parent
            if parent_id in seen:
                break
            seen.add(parent_id)
            ancestors.append(parent_id)
            task = self._tasks.get(parent_id)

        return ancestors

    def get_root(self, task_id: int) -> Optional[Task]:
        """获取任务所在树的根"""
        task = self.find_task(task_id)
        if task is None:
            return None
        ancestors = self.get_ancestors(task_id)
        if not ancestors:
            return task
        return self._tasks.get(ancestors[-1])

    def path_to_root(self, task_id: int) -> List[str]:
        """从根到任务的标题路径"""
        if task_id not in self._tasks:
            return []
        ids = [task_id] + self.get_ancestors(task_id)
        return [self._tasks[tid].title for tid in reversed(ids) if tid in self._tasks]

    def subtree_size(self, task_id: int) -> int:
        """子树节点数（含自身）"""
        if task_id not in self._tasks:
            return 0
        return 1 + sum(1 for tid in self.get_descendants(task_id) if tid in self._tasks)

    def count_children_by_status(self, task_id: int) -> Dict[str, int]:
        """按状态统计直接子任务"""
        counts = {"total": 0, "done": 0, "todo": 0, "working": 0}
        for child_id in self.get_task(task_id).children:
            child = self._tasks.get(child_id)
            if child is None:
                continue
            counts["total"] += 1
            if child.currently_working:
                counts["working"] += 1
            elif child.is_done:
                counts["done"] += 1
            else:
                counts["todo"] += 1
        return counts

    # ------------------------------------------------------------------
    # 创建 / 删除
    # ------------------------------------------------------------------

    def create_task(self, title: str = "", parent_id: Optional[int] = None) -> Task:
        """
        创建任务

        Args:
            title: 标题
            parent_id: 父任务 ID（None 表示根任务）

        Returns:
            新建的任务

        Raises:
            NotFound: 父任务不存在
        """
        parent = self.get_task(parent_id) if parent_id is not None else None

        task = Task(id=self._next_id, title=title, main_parent=parent_id)
        self._next_id += 1
        self._tasks[task.id] = task
        if parent is not None:
            parent.children.append(task.id)

        logger.task_log("创建任务", task_id=task.id, operation="create_task")
        self._notify("create_task", task.id)
        return task

    def delete_task(self, task_id: int) -> List[int]:
        """
        删除任务及其全部后代

        同时从其余任务的 children 与 dependencies 中移除被删 ID。
        任务不存在时为空操作。

        Returns:
            实际删除的任务 ID 列表
        """
        return self.delete_tasks([task_id])

    def delete_tasks(self, task_ids: Iterable[int]) -> List[int]:
        """批量删除任务（各自连同后代）"""
        to_delete: List[int] = []
        doomed: Set[int] = set()
        for task_id in task_ids:
            if task_id not in self._tasks or task_id in doomed:
                continue
            for tid in [task_id] + self.get_descendants(task_id):
                if tid in self._tasks and tid not in doomed:
                    doomed.add(tid)
                    to_delete.append(tid)

        if not to_delete:
            return []

        self._remove_ids(doomed)
        logger.task_log(f"删除 {len(to_delete)} 个任务", task_id=to_delete[0], operation="delete_task")
        self._notify("delete_task", *to_delete)
        return to_delete

    def clear_completed(self) -> List[int]:
        """移除全部已完成任务"""
        removed = [task.id for task in self._tasks.values() if task.is_done]
        if not removed:
            return []

        self._remove_ids(set(removed))
        # 父任务被移除的子任务成为根
        for task in self._tasks.values():
            if task.main_parent is not None and task.main_parent not in self._tasks:
                task.main_parent = None

        self._notify("clear_completed", *removed)
        return removed

    def _remove_ids(self, doomed: Set[int]) -> None:
        for task_id in doomed:
            self._tasks.pop(task_id, None)
        for task in self._tasks.values():
            task.children = [cid for cid in task.children if cid not in doomed]
            task.dependencies = [did for did in task.dependencies if did not in doomed]

    # ------------------------------------------------------------------
    # 依赖边
    # ------------------------------------------------------------------

    def add_dependency_edge(self, from_id: int, to_id: int) -> None:
        """
        添加依赖边 from_id -> to_id（from 依赖 to）

        Raises:
            NotFound: 任一任务不存在
            CycleError: 添加后会形成环
        """
        task = self.get_task(from_id)
        self.get_task(to_id)

        if would_create_cycle(self, from_id, to_id):
            logger.info(f"拒绝依赖 {from_id} -> {to_id}: 会形成环", task_id=from_id, operation="add_dependency")
            raise CycleError(f"添加依赖 {from_id} -> {to_id} 会形成环")

        if to_id in task.dependencies:
            return

        task.dependencies.append(to_id)
        logger.debug(f"添加依赖 {from_id} -> {to_id}", task_id=from_id, operation="add_dependency")
        self._notify("add_dependency", from_id, to_id)

    def remove_dependency_edge(self, from_id: int, to_id: int) -> None:
        """移除依赖边，不存在时为空操作"""
        task = self._tasks.get(from_id)
        if task is None or to_id not in task.dependencies:
            return

        task.dependencies.remove(to_id)
        logger.debug(f"移除依赖 {from_id} -> {to_id}", task_id=from_id, operation="remove_dependency")
        self._notify("remove_dependency", from_id, to_id)

    def toggle_dependency(self, from_id: int, to_id: int) -> bool:
        """
        切换依赖边：存在则移除，否则添加

        Returns:
            操作后依赖边是否存在
        """
        task = self.get_task(from_id)
        if to_id in task.dependencies:
            self.remove_dependency_edge(from_id, to_id)
            return False
        self.add_dependency_edge(from_id, to_id)
        return True

    # ------------------------------------------------------------------
    # 父子树边
    # ------------------------------------------------------------------

    def set_parent(self, task_id: int, new_parent_id: int) -> None:
        """
        重新挂接父任务

        新父任务与本任务之间的冗余依赖（双向）会一并清除。

        Raises:
            NotFound: 任一任务不存在
            CycleError: 新父任务是自身或自身的后代
        """
        task = self.get_task(task_id)
        new_parent = self.get_task(new_parent_id)

        if new_parent_id == task_id or new_parent_id in self.get_descendants(task_id):
            logger.info(f"拒绝将 {task_id} 挂到 {new_parent_id} 下: 会形成环", task_id=task_id, operation="set_parent")
            raise CycleError(f"不能将任务 {task_id} 挂到自身或其后代 {new_parent_id} 之下")

        if task.main_parent == new_parent_id:
            return

        self._detach(task)
        task.main_parent = new_parent_id
        new_parent.children.append(task_id)

        if new_parent_id in task.dependencies:
            task.dependencies.remove(new_parent_id)
        if task_id in new_parent.dependencies:
            new_parent.dependencies.remove(task_id)

        logger.debug(f"任务 {task_id} 挂到 {new_parent_id} 下", task_id=task_id, operation="set_parent")
        self._notify("set_parent", task_id, new_parent_id)

    def detach_parent(self, task_id: int) -> None:
        """移除父子边，任务成为根"""
        task = self.get_task(task_id)
        if task.main_parent is None:
            return
        old_parent_id = task.main_parent
        self._detach(task)
        self._notify("detach_parent", task_id, old_parent_id)

    def _detach(self, task: Task) -> None:
        if task.main_parent is None:
            return
        old_parent = self._tasks.get(task.main_parent)
        if old_parent is not None:
            old_parent.children = [cid for cid in old_parent.children if cid != task.id]
        task.main_parent = None

    # ------------------------------------------------------------------
    # 工作任务与状态
    # ------------------------------------------------------------------

    def set_working(self, task_id: int) -> None:
        """
        设置当前工作任务

        先清除之前的工作任务（未锁定的同时收起临时展开），再设置新任务，
        调用方看来是一步完成的。
        """
        task = self.get_task(task_id)
        if task.currently_working:
            return

        previous = [t for t in self._tasks.values() if t.currently_working]
        for prev in previous:
            self._stop_working(prev)
        task.currently_working = True

        logger.task_log("开始工作", task_id=task_id, operation="set_working")
        self._notify("set_working", task_id, *(p.id for p in previous))

    def clear_working(self, task_id: Optional[int] = None) -> None:
        """停止工作；task_id 为 None 时清除任意工作任务"""
        if task_id is not None:
            targets = [self.get_task(task_id)]
        else:
            targets = list(self._tasks.values())

        cleared = [t.id for t in targets if t.currently_working]
        if not cleared:
            return
        for tid in cleared:
            self._stop_working(self._tasks[tid])
        self._notify("clear_working", *cleared)

    def _stop_working(self, task: Task) -> None:
        task.currently_working = False
        if not task.text_locked:
            task.text_expanded = False

    def set_status(self, task_id: int, status: TaskStatus) -> None:
        """设置状态；工作中的任务被标记完成时停止工作"""
        task = self.get_task(task_id)
        status = TaskStatus(status)
        if task.status == status:
            return
        task.status = status
        if status == TaskStatus.DONE and task.currently_working:
            self._stop_working(task)
        self._notify("set_status", task_id)

    def cycle_status(self, task_id: int) -> TaskStatus:
        """
        循环切换状态: todo -> 工作中 -> done -> todo

        工作中的任务完成后，若父任务未完成，父任务自动成为工作任务。

        Returns:
            切换后的状态
        """
        task = self.get_task(task_id)

        if task.currently_working:
            self._complete_and_flow(task)
        elif task.is_done:
            task.status = TaskStatus.TODO
            self._notify("cycle_status", task_id)
        else:
            self.set_working(task_id)

        return task.status

    def toggle_done(self, task_id: int) -> TaskStatus:
        """done 与 todo 互换；工作中的任务完成后工作流转给父任务"""
        task = self.get_task(task_id)

        if task.is_done:
            task.status = TaskStatus.TODO
            self._notify("toggle_done", task_id)
        elif task.currently_working:
            self._complete_and_flow(task)
        else:
            task.status = TaskStatus.DONE
            self._notify("toggle_done", task_id)

        return task.status

    def _complete_and_flow(self, task: Task) -> None:
        self._stop_working(task)
        task.status = TaskStatus.DONE
        affected = [task.id]

        parent = self.find_task(task.main_parent)
        if parent is not None and not parent.is_done:
            for other in self._tasks.values():
                if other.currently_working:
                    self._stop_working(other)
                    affected.append(other.id)
            parent.currently_working = True
            affected.append(parent.id)
            logger.task_log("工作流转到父任务", task_id=parent.id, operation="flow_to_parent")

        self._notify("complete", *affected)

    # ------------------------------------------------------------------
    # 文本展开
    # ------------------------------------------------------------------

    def toggle_text_lock(self, task_id: int, is_selected: bool = True) -> bool:
        """
        切换文本锁定

        工作中的任务被拒绝（不发通知）。

        Returns:
            操作后的锁定状态
        """
        task = self.get_task(task_id)
        before = task.text_locked
        after = toggle_lock(task, is_selected=is_selected)
        if after != before:
            self._notify("toggle_text_lock", task_id)
        return after

    def expand_text(self, task_id: int) -> None:
        """临时展开标题"""
        task = self.get_task(task_id)
        if task.text_expanded:
            return
        task.text_expanded = True
        self._notify("expand_text", task_id)

    def deselect(self, task_ids: Iterable[int]) -> None:
        """任务被取消选中时清除临时展开"""
        collapsed = []
        for task_id in task_ids:
            task = self._tasks.get(task_id)
            if task is not None and task.text_expanded:
                task.text_expanded = False
                collapsed.append(task_id)
        if collapsed:
            self._notify("deselect", *collapsed)

    # ------------------------------------------------------------------
    # 记录导入导出与不变量
    # ------------------------------------------------------------------

    @classmethod
    def from_records(cls, records: Iterable[Any]) -> "TaskStore":
        """
        从任务记录构建存储

        Args:
            records: TaskRecord 或可被其校验的字典

        Raises:
            pydantic.ValidationError: 记录字段不合法
            InvariantViolation: 记录违反树/依赖/工作任务不变量
        """
        from ..models import TaskRecord

        store = cls()
        for raw in records:
            record = raw if isinstance(raw, TaskRecord) else TaskRecord.model_validate(raw)
            if record.id in store._tasks:
                raise InvariantViolation(f"任务 ID 重复: {record.id}")
            store._tasks[record.id] = Task(
                id=record.id,
                title=record.title,
                status=record.status,
                main_parent=record.main_parent,
                children=list(record.children),
                dependencies=list(dict.fromkeys(record.dependencies)),
                currently_working=record.currently_working,
                text_expanded=record.text_expanded,
                text_locked=record.text_locked,
            )

        if store._tasks:
            store._next_id = max(store._tasks) + 1
        store.validate()
        return store

    def to_records(self) -> List[Dict[str, Any]]:
        """导出任务记录（供外部持久化层使用）"""
        from ..models import TaskRecord

        return [
            TaskRecord(
                id=t.id,
                title=t.title,
                status=t.status,
                main_parent=t.main_parent,
                children=list(t.children),
                dependencies=list(t.dependencies),
                currently_working=t.currently_working,
                # 展开状态只属于当前会话，不导出
                text_expanded=False,
                text_locked=t.text_locked,
            ).model_dump(mode="json", by_alias=True)
            for t in self._tasks.values()
        ]

    def validate(self) -> None:
        """
        校验全部不变量

        Raises:
            InvariantViolation: 首个被发现的问题
        """
        working = [t.id for t in self._tasks.values() if t.currently_working]
        if len(working) > 1:
            raise InvariantViolation(f"存在多个工作中任务: {working}")

        for task in self._tasks.values():
            if len(set(task.children)) != len(task.children):
                raise InvariantViolation(f"任务 {task.id} 的 children 有重复")
            for child_id in task.children:
                child = self._tasks.get(child_id)
                if child is None or child.main_parent != task.id:
                    raise InvariantViolation(f"任务 {task.id} 的子任务 {child_id} 缺少对应的父指针")
            if task.main_parent is not None:
                parent = self._tasks.get(task.main_parent)
                if parent is None or task.id not in parent.children:
                    raise InvariantViolation(f"任务 {task.id} 的父任务 {task.main_parent} 未将其列为子任务")

        self._check_tree_acyclic()
        self._check_dependencies_acyclic()

    def _check_tree_acyclic(self) -> None:
        for task in self._tasks.values():
            seen = {task.id}
            parent_id = task.main_parent
            while parent_id is not None:
                if parent_id in seen:
                    raise InvariantViolation(f"父子树中存在环（经过任务 {parent_id}）")
                seen.add(parent_id)
                parent = self._tasks.get(parent_id)
                parent_id = parent.main_parent if parent is not None else None

    def _check_dependencies_acyclic(self) -> None:
        # Kahn 算法: 无法全部出队即有环
        indegree: Dict[int, int] = {tid: 0 for tid in self._tasks}
        for task in self._tasks.values():
            for dep_id in task.dependencies:
                if dep_id in indegree:
                    indegree[dep_id] += 1

        queue = deque(tid for tid, degree in indegree.items() if degree == 0)
        visited = 0
        while queue:
            tid = queue.popleft()
            visited += 1
            for dep_id in self._tasks[tid].dependencies:
                if dep_id in indegree:
                    indegree[dep_id] -= 1
                    if indegree[dep_id] == 0:
                        queue.append(dep_id)

        if visited != len(self._tasks):
            raise InvariantViolation("依赖图中存在环")

    def repair_working(self) -> int:
        """
        修复多个工作中任务：保留第一个，清除其余

        Returns:
            被清除的任务数
        """
        working = [t for t in self._tasks.values() if t.currently_working]
        if len(working) <= 1:
            return 0

        for task in working[1:]:
            self._stop_working(task)
        logger.warning(f"修复了 {len(working) - 1} 个多余的工作中任务", task_id=working[0].id, operation="repair_working")
        self._notify("repair_working", *(t.id for t in working[1:]))
        return len(working) - 1

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self):
        return iter(self._tasks.values())

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks
