"""
标题可见性策略

标题显示为截断、临时展开还是锁定展开，每次都由四个标志重新推导:
currently_working、text_locked、text_expanded 以及外部传入的 is_selected。
不保存任何"显示模式"。
"""

from ..logging import get_logger


logger = get_logger()

DEFAULT_TEXT_LENGTH_THRESHOLD = 60
# 超出阈值不超过该字符数时不截断
TRUNCATION_TOLERANCE = 5
ELLIPSIS = "..."


def is_expanded(task, is_selected: bool) -> bool:
    """工作中、已锁定，或已临时展开且被选中"""
    return bool(
        task.currently_working
        or task.text_locked
        or (task.text_expanded and is_selected)
    )


def is_truncated(task, threshold: int = DEFAULT_TEXT_LENGTH_THRESHOLD, is_selected: bool = False) -> bool:
    """未展开且标题超出阈值超过 TRUNCATION_TOLERANCE 个字符"""
    if is_expanded(task, is_selected):
        return False
    return len(task.title) - threshold > TRUNCATION_TOLERANCE


def display_title(task, threshold: int = DEFAULT_TEXT_LENGTH_THRESHOLD, is_selected: bool = False) -> str:
    """渲染用标题，截断时保留前 threshold 个字符并追加省略号"""
    if is_truncated(task, threshold, is_selected):
        return task.title[:threshold] + ELLIPSIS
    return task.title


def toggle_lock(task, is_selected: bool = True) -> bool:
    """
    切换文本锁定

    工作中的任务总是展开，锁定无意义，此时拒绝并保持原状态。
    解锁一个未被选中的任务时，同时收起其临时展开。

    Args:
        task: 任务
        is_selected: 任务当前是否被选中

    Returns:
        操作后的锁定状态
    """
    if task.currently_working:
        logger.info("工作中的任务不能切换锁定", task_id=task.id, operation="toggle_lock")
        return task.text_locked

    task.text_locked = not task.text_locked
    if not task.text_locked and not is_selected:
        task.text_expanded = False
    return task.text_locked


def expand(task) -> None:
    """临时展开；取消选中时由调用方负责 collapse()"""
    task.text_expanded = True


def collapse(task) -> None:
    task.text_expanded = False
