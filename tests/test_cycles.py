"""
依赖环检测测试
"""

import pytest

from tasktree.tasks import TaskStore, would_create_cycle

from tests.conftest import record


@pytest.fixture
def dep_store():
    """依赖: 2 -> 1"""
    return TaskStore.from_records([
        record(1),
        record(2, dependencies=[1]),
        record(3),
    ])


class TestWouldCreateCycle:
    """would_create_cycle 测试"""

    def test_reverse_edge_is_cycle(self, dep_store):
        """2 能到达 1，添加 1 -> 2 成环"""
        assert would_create_cycle(dep_store, 1, 2) is True

    def test_target_without_dependencies(self, dep_store):
        """1 没有出边，添加 3 -> 1 安全"""
        assert would_create_cycle(dep_store, 3, 1) is False

    def test_self_loop(self, dep_store):
        """自环"""
        assert would_create_cycle(dep_store, 3, 3) is True

    def test_transitive_cycle(self):
        """传递成环: 1 -> 2 -> 3，再加 3 -> 1"""
        store = TaskStore.from_records([
            record(1, dependencies=[2]),
            record(2, dependencies=[3]),
            record(3),
        ])
        assert would_create_cycle(store, 3, 1) is True
        assert would_create_cycle(store, 1, 3) is False

    def test_diamond_is_not_cycle(self):
        """菱形依赖不是环"""
        store = TaskStore.from_records([
            record(1, dependencies=[2, 3]),
            record(2, dependencies=[4]),
            record(3, dependencies=[4]),
            record(4),
        ])
        assert would_create_cycle(store, 2, 3) is False
        assert would_create_cycle(store, 4, 1) is True

    def test_dangling_id_is_dead_end(self):
        """指向已删除任务的依赖视为死路"""
        store = TaskStore()
        a = store.create_task("a")
        b = store.create_task("b")
        b.dependencies.append(99)
        assert would_create_cycle(store, a.id, b.id) is False
        assert would_create_cycle(store, a.id, 99) is False

    def test_pure_query(self, dep_store):
        """重复调用结果一致且不修改状态"""
        before = dep_store.to_records()
        results = {would_create_cycle(dep_store, 1, 2) for _ in range(5)}
        assert results == {True}
        assert dep_store.to_records() == before

    def test_long_chain(self):
        """长链上的检测"""
        store = TaskStore()
        ids = [store.create_task(f"t{i}").id for i in range(500)]
        for a, b in zip(ids, ids[1:]):
            store.add_dependency_edge(a, b)
        assert would_create_cycle(store, ids[-1], ids[0]) is True
        assert would_create_cycle(store, ids[0], ids[-1]) is False
