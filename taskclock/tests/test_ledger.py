from __future__ import annotations

import asyncio
import unittest

from taskclock.models import Task
from taskclock.tests.test_helpers import T0, WorkspaceTestCase


class TestTaskTimeLedger(WorkspaceTestCase):
    async def test_delta_reaches_every_ancestor_exactly_once(self) -> None:
        root = await self.service.create_task(title="Thesis")
        chapter = await self.service.create_task(title="Chapter 2", parent_id=root.id)
        section = await self.service.create_task(title="2.1", parent_id=chapter.id)
        sibling = await self.service.create_task(title="Chapter 3", parent_id=root.id)

        updated = await self.ws.ledger.apply_delta(section.id, 15)

        self.assertEqual(updated, [section.id, chapter.id, root.id])
        for task_id in updated:
            task = await self.db.get_task(task_id)
            self.assertEqual(task.actual_time, 15)
        untouched = await self.db.get_task(sibling.id)
        self.assertEqual(untouched.actual_time, 0)

    async def test_cyclic_parent_chain_is_cut(self) -> None:
        await self.db.insert_task(Task(id="a", title="A", parent_id="b", created_at=T0, updated_at=T0))
        await self.db.insert_task(Task(id="b", title="B", parent_id="a", created_at=T0, updated_at=T0))

        with self.assertLogs("taskclock.ledger", level="WARNING"):
            updated = await self.ws.ledger.apply_delta("a", 4)

        self.assertEqual(updated, ["a", "b"])
        self.assertEqual((await self.db.get_task("a")).actual_time, 4)
        self.assertEqual((await self.db.get_task("b")).actual_time, 4)

    async def test_missing_task_updates_nothing(self) -> None:
        self.assertEqual(await self.ws.ledger.apply_delta("nope", 10), [])

    async def test_concurrent_deltas_are_not_lost(self) -> None:
        root = await self.service.create_task(title="Root")
        leaf = await self.service.create_task(title="Leaf", parent_id=root.id)

        await asyncio.gather(*(self.ws.ledger.apply_delta(leaf.id, 1) for _ in range(10)))

        self.assertEqual((await self.db.get_task(leaf.id)).actual_time, 10)
        self.assertEqual((await self.db.get_task(root.id)).actual_time, 10)

    async def test_set_time_overwrites_and_clamps(self) -> None:
        task = await self.service.create_task(title="Manual")
        self.assertTrue(await self.ws.ledger.set_time(task.id, 42))
        self.assertEqual((await self.db.get_task(task.id)).actual_time, 42)
        self.assertTrue(await self.ws.ledger.set_time(task.id, -3))
        self.assertEqual((await self.db.get_task(task.id)).actual_time, 0)
        self.assertFalse(await self.ws.ledger.set_time("missing", 5))


    async def test_hold_chain_yields_task_then_ancestors(self) -> None:
        root = await self.service.create_task(title="Thesis")
        chapter = await self.service.create_task(title="Chapter 2", parent_id=root.id)

        async with self.ws.ledger.hold_chain(chapter.id) as chain:
            self.assertEqual([task.id for task in chain], [chapter.id, root.id])

        async with self.ws.ledger.hold_chain("nope") as chain:
            self.assertEqual(chain, [])

    async def test_hold_chain_stops_at_a_cycle(self) -> None:
        await self.db.insert_task(Task(id="a", title="A", parent_id="b", created_at=T0, updated_at=T0))
        await self.db.insert_task(Task(id="b", title="B", parent_id="a", created_at=T0, updated_at=T0))

        with self.assertLogs("taskclock.ledger", level="WARNING"):
            async with self.ws.ledger.hold_chain("a") as chain:
                self.assertEqual([task.id for task in chain], ["a", "b"])


if __name__ == "__main__":
    unittest.main()
