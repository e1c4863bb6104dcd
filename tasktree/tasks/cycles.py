"""
依赖环检测

在添加依赖边之前调用，判断新边是否会形成环。纯查询，不修改任何状态。
"""

from collections import deque
from typing import Set


def would_create_cycle(store, from_id: int, to_id: int) -> bool:
    """
    检查添加依赖 from_id -> to_id 是否会形成环

    从 to_id 出发沿依赖边广度优先搜索，能到达 from_id 即成环；
    from_id == to_id（自环）同样返回 True。指向已删除任务的 ID 视为死路。

    Args:
        store: 提供 find_task() 的任务存储
        from_id: 将要依赖 to_id 的任务
        to_id: 被依赖的任务

    Returns:
        是否会形成环
    """
    visited: Set[int] = set()
    queue = deque([to_id])

    while queue:
        current = queue.popleft()
        if current == from_id:
            return True
        if current in visited:
            continue
        visited.add(current)

        task = store.find_task(current)
        if task is not None:
            queue.extend(dep_id for dep_id in task.dependencies if dep_id not in visited)

    return False
