"""
task-tree 测试共享 fixtures

为所有测试提供统一的 fixtures 和测试工具。
"""

import json
import pytest
import tempfile
import shutil
from pathlib import Path
from typing import List, Optional

from click.testing import CliRunner

from tasktree.logging import configure_logging
from tasktree.tasks import TaskStore


# =============================================================================
# 日志
# =============================================================================

@pytest.fixture(autouse=True)
def quiet_logging():
    """关闭控制台输出，避免处理器绑定到 CliRunner 已关闭的流"""
    configure_logging(level="debug", console=False)
    yield
    configure_logging(level="debug", console=False)


# =============================================================================
# CLI Fixtures
# =============================================================================

@pytest.fixture
def runner():
    """Click CLI 测试运行器"""
    return CliRunner()


@pytest.fixture
def temp_dir():
    """临时目录 fixture"""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


# =============================================================================
# Factory Fixtures
# =============================================================================

def record(
    task_id: int,
    title: str = "",
    parent: Optional[int] = None,
    children: Optional[List[int]] = None,
    dependencies: Optional[List[int]] = None,
    status: str = "todo",
    working: bool = False,
    expanded: bool = False,
    locked: bool = False,
) -> dict:
    """构造一条前端格式（camelCase）的任务记录"""
    return {
        "id": task_id,
        "title": title or f"Task {task_id}",
        "status": status,
        "mainParent": parent,
        "children": children or [],
        "dependencies": dependencies or [],
        "currentlyWorking": working,
        "textExpanded": expanded,
        "textLocked": locked,
    }


@pytest.fixture
def store():
    """空的任务存储"""
    return TaskStore()


@pytest.fixture
def chain_store():
    """根(1) -> 子(2) -> 孙(3)，任务 3 工作中"""
    return TaskStore.from_records([
        record(1, "Root", children=[2]),
        record(2, "Middle", parent=1, children=[3]),
        record(3, "Leaf", parent=2, working=True),
    ])


@pytest.fixture
def records_file_factory(temp_dir):
    """任务记录文件工厂"""
    def _factory(records: list, name: str = "tasks.json") -> Path:
        path = temp_dir / name
        path.write_text(json.dumps(records, indent=2, ensure_ascii=False))
        return path

    return _factory
