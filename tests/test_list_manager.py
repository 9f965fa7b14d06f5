"""Tests for the optimistic list manager."""

import asyncio
from typing import Optional

import pytest
from pydantic import BaseModel

from rebound.models import UpdateStatus
from rebound.optimistic import OptimisticListManager, create_optimistic_list_manager


FAST = {"retry_delay": 0.0, "timeout": None, "auto_retry": False}


class Todo(BaseModel):
    id: str
    title: str
    done: bool = False


async def returns(value):
    return value


async def fails(error):
    raise error


async def gated(gate: asyncio.Event, outcome):
    await gate.wait()
    return outcome


def todos():
    return [{"id": "a", "title": "A"}, {"id": "b", "title": "B"}, {"id": "c", "title": "C"}]


def ids(items):
    return [item["id"] if isinstance(item, dict) else item.id for item in items]


def test_add_item_confirmed_by_server():
    manager = OptimisticListManager(todos(), FAST)
    server_list = todos() + [{"id": "d", "title": "D", "created": True}]

    result = asyncio.run(manager.add_item({"id": "d", "title": "D"}, returns, server_list))

    assert result.status == UpdateStatus.CONFIRMED
    assert manager.get_items() == server_list


def test_remove_item_rolls_back_on_failure():
    manager = OptimisticListManager(todos(), FAST)
    seen = []
    manager.subscribe(lambda update: seen.append(ids(manager.get_items())))

    with pytest.raises(ConnectionError):
        asyncio.run(manager.remove_item("b", fails, ConnectionError("offline")))

    assert seen[0] == ["a", "c"]
    assert ids(manager.get_items()) == ["a", "b", "c"]


def test_update_item_does_not_mutate_original():
    original = todos()
    manager = OptimisticListManager(original, FAST)

    async def scenario():
        gate = asyncio.Event()
        task = asyncio.create_task(manager.update_item("a", {"title": "A!"}, gated, gate, original))
        await asyncio.sleep(0)
        assert manager.get_items()[0] == {"id": "a", "title": "A!"}
        gate.set()
        await task

    asyncio.run(scenario())
    assert original[0] == {"id": "a", "title": "A"}


def test_update_pydantic_items():
    items = [Todo(id="a", title="A"), Todo(id="b", title="B")]
    manager = OptimisticListManager(items, FAST)

    async def echo_current():
        return manager.get_items()

    asyncio.run(manager.update_item("b", {"done": True}, echo_current))

    assert manager.get_items()[1].done is True
    assert items[1].done is False


def test_update_plain_objects():
    class Row:
        def __init__(self, id, label):
            self.id = id
            self.label = label

    rows = [Row(1, "one"), Row(2, "two")]
    manager = OptimisticListManager(rows, FAST)

    async def echo_current():
        return manager.get_items()

    asyncio.run(manager.update_item(2, {"label": "TWO"}, echo_current))

    assert manager.get_items()[1].label == "TWO"
    assert rows[1].label == "two"


@pytest.mark.parametrize(
    "from_index, to_index, expected",
    [
        (0, 2, ["b", "c", "a"]),
        (2, 0, ["c", "a", "b"]),
        (1, 1, ["a", "b", "c"]),
        (7, 0, ["a", "b", "c"]),
    ],
)
def test_reorder_items(from_index, to_index, expected):
    manager = OptimisticListManager(todos(), FAST)

    async def echo_current():
        return manager.get_items()

    asyncio.run(manager.reorder_items(from_index, to_index, echo_current))
    assert ids(manager.get_items()) == expected


def test_pending_items_and_item_pending():
    manager = OptimisticListManager(todos(), FAST)

    async def scenario():
        gate = asyncio.Event()
        add = asyncio.create_task(manager.add_item({"id": "d", "title": "D"}, gated, gate, todos()))
        await asyncio.sleep(0)
        edit = asyncio.create_task(manager.update_item("a", {"title": "A!"}, gated, gate, todos()))
        await asyncio.sleep(0)

        assert manager.has_pending_updates()
        assert ids(manager.get_pending_items()) == ["d"]
        assert manager.has_item_pending("a")
        assert manager.has_item_pending("d")
        assert not manager.has_item_pending("b")

        gate.set()
        await asyncio.gather(add, edit)

    asyncio.run(scenario())
    assert manager.get_pending_items() == []
    assert not manager.has_item_pending("a")


def test_structural_comparison_ignores_identity():
    manager = OptimisticListManager(todos(), FAST)

    async def scenario():
        gate = asyncio.Event()
        task = asyncio.create_task(manager.update_item("a", {"title": "A"}, gated, gate, todos()))
        await asyncio.sleep(0)
        assert not manager.has_item_pending("a")
        gate.set()
        await task

    asyncio.run(scenario())


def test_undo_and_stats():
    manager = create_optimistic_list_manager([], FAST)

    async def scenario():
        await manager.add_item({"id": "a"}, returns, [{"id": "a"}])
        await manager.add_item({"id": "b"}, returns, [{"id": "a"}, {"id": "b"}])

    asyncio.run(scenario())
    assert manager.get_stats()["confirmed"] == 2
    assert ids(manager.undo()) == ["a", "b"]
    assert ids(manager.undo()) == ["a"]
    assert manager.undo() is None
    assert manager.manager.get_value() == [{"id": "a"}]
