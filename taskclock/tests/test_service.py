from __future__ import annotations

import asyncio
from datetime import timedelta
import unittest

from taskclock.errors import CategoryError, CategoryNotFoundError, InvalidParentError, TaskNotFoundError
from taskclock.intervals import TimeInterval
from taskclock.tests.test_helpers import T0, WorkspaceTestCase


class TestTaskHierarchy(WorkspaceTestCase):
    async def test_tree_queries_and_progress(self) -> None:
        root = await self.service.create_task(title="Thesis", category="writing")
        done = await self.service.create_task(title="Outline", parent_id=root.id, status="completed")
        await self.service.create_task(title="Draft", parent_id=root.id)

        loaded = await self.service.get_task(root.id)
        self.assertEqual([child.title for child in loaded.children], ["Outline", "Draft"])
        self.assertEqual(loaded.progress(), 50)
        self.assertIsNotNone(done.completed_at)

        self.assertEqual([task.id for task in await self.service.get_tasks()], [root.id])
        self.assertEqual(len(await self.service.get_tasks(root.id)), 2)
        self.assertEqual(await self.service.get_tasks("missing"), [])
        self.assertEqual(len(await self.service.get_all_tasks()), 3)
        self.assertEqual([task.id for task in await self.service.get_tasks_by_status("completed")], [done.id])
        self.assertEqual([task.id for task in await self.service.get_tasks_by_category("writing")], [root.id])

    async def test_own_time_excludes_propagated_minutes(self) -> None:
        root = await self.service.create_task(title="Root")
        child = await self.service.create_task(title="Child", parent_id=root.id)

        await self.service.start_tracking(root.id)
        self.clock.advance(minutes=10)
        await self.service.start_tracking(child.id)
        self.clock.advance(minutes=20)
        await self.service.stop_tracking(child.id)

        loaded = await self.service.get_task(root.id)
        self.assertEqual(loaded.actual_time, 30)
        self.assertEqual(loaded.own_time(), 10)
        self.assertEqual(loaded.children[0].actual_time, 20)

    async def test_parent_must_exist_and_not_form_a_cycle(self) -> None:
        with self.assertRaises(TaskNotFoundError):
            await self.service.create_task(title="Orphan", parent_id="missing")

        root = await self.service.create_task(title="Root")
        child = await self.service.create_task(title="Child", parent_id=root.id)
        grandchild = await self.service.create_task(title="Grandchild", parent_id=child.id)

        with self.assertRaises(InvalidParentError):
            await self.service.update_task(root.id, {"parent_id": grandchild.id})
        with self.assertRaises(InvalidParentError):
            await self.service.update_task(root.id, {"parent_id": root.id})
        with self.assertRaises(TaskNotFoundError):
            await self.service.update_task(child.id, {"parent_id": "missing"})

        moved = await self.service.update_task(grandchild.id, {"parent_id": None})
        self.assertIsNone(moved.parent_id)
        self.assertEqual(len(await self.service.get_tasks()), 2)

    async def test_invalid_fields_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            await self.service.create_task(title="   ")
        with self.assertRaises(ValueError):
            await self.service.create_task(title="Bad", priority="urgent")
        with self.assertRaises(ValueError):
            await self.service.create_task(title="Bad", deadline="tomorrow")
        with self.assertRaises(TaskNotFoundError):
            await self.service.update_task("missing", {"title": "x"})

    async def test_completion_is_logged_once_for_today(self) -> None:
        task = await self.service.create_task(title="Submit", tags="Admin, admin, deadline")
        self.assertEqual(task.tags, ["admin", "deadline"])

        updated = await self.service.update_task(task.id, {"status": "completed"})
        self.assertIsNotNone(updated.completed_at)

        await self.service.update_task(task.id, {"status": "todo"})
        reopened = await self.service.get_task(task.id)
        self.assertIsNone(reopened.completed_at)
        await self.service.update_task(task.id, {"status": "completed"})

        log = await self.service.get_daily_log("2026-03-02")
        self.assertEqual(log.tasks_completed, [{"id": task.id, "title": "Submit"}])
        self.assertEqual(log.productivity_score, 10)

    async def test_delete_removes_subtree_and_stops_tracking(self) -> None:
        root = await self.service.create_task(title="Root")
        child = await self.service.create_task(title="Child", parent_id=root.id)
        keep = await self.service.create_task(title="Keep")

        await self.service.start_tracking(child.id)
        self.clock.advance(minutes=3)

        self.assertTrue(await self.service.delete_task(root.id))

        self.assertIsNone(self.service.get_active_task_id())
        self.assertIsNone(await self.service.get_task(root.id))
        self.assertIsNone(await self.service.get_task(child.id))
        self.assertEqual(await self.service.get_time_entries_by_task(child.id), [])
        self.assertIsNotNone(await self.service.get_task(keep.id))
        self.assertFalse(await self.service.delete_task(root.id))

    async def test_delete_counts_open_rows_left_in_the_store(self) -> None:
        project = await self.service.create_task(title="Project")
        draft = await self.service.create_task(title="Draft", parent_id=project.id)
        await self.db.insert_interval(TimeInterval.open(draft.id, T0 - timedelta(minutes=9)))

        self.assertTrue(await self.service.delete_task(draft.id))

        self.assertEqual((await self.db.get_task(project.id)).actual_time, 9)
        self.assertEqual(await self.db.list_open_intervals(), [])
        self.assertEqual((await self.db.get_daily_log("2026-03-02")).total_time, 9)

    async def test_start_racing_delete_leaves_nothing_open(self) -> None:
        root = await self.service.create_task(title="Root")
        child = await self.service.create_task(title="Child", parent_id=root.id)

        results = await asyncio.gather(
            self.service.delete_task(root.id),
            self.service.start_tracking(child.id),
            return_exceptions=True,
        )

        self.assertIs(results[0], True)
        if isinstance(results[1], BaseException):
            self.assertIsInstance(results[1], TaskNotFoundError)
        self.assertIsNone(self.service.get_active_task_id())
        self.assertEqual(await self.db.list_open_intervals(), [])
        self.assertIsNone(await self.db.get_task(child.id))

    async def test_manual_actual_time_update_is_kept(self) -> None:
        task = await self.service.create_task(title="Imported")
        updated = await self.service.update_task(task.id, {"actual_time": 90})
        self.assertEqual(updated.actual_time, 90)

        await self.service.start_tracking(task.id)
        self.clock.advance(minutes=10)
        await self.service.stop_tracking(task.id)
        self.assertEqual((await self.service.get_task(task.id)).actual_time, 100)


class TestDeadlines(WorkspaceTestCase):
    async def test_deadline_views(self) -> None:
        today = self.clock.now().date()

        def day(offset: int) -> str:
            return (today + timedelta(days=offset)).isoformat()

        overdue = await self.service.create_task(title="Late", deadline=day(-1))
        await self.service.create_task(title="Late but done", deadline=day(-2), status="completed")
        tomorrow = await self.service.create_task(title="Tomorrow", deadline=day(1))
        later = await self.service.create_task(title="Friday", deadline=day(4))
        await self.service.create_task(title="Next month", deadline=day(30))

        self.assertEqual([task.id for task in await self.service.get_overdue_tasks()], [overdue.id])
        self.assertEqual([task.id for task in await self.service.get_tasks_due_tomorrow()], [tomorrow.id])
        self.assertEqual(
            [task.id for task in await self.service.get_tasks_due_this_week()],
            [tomorrow.id, later.id],
        )

        loaded = await self.service.get_task(overdue.id)
        self.assertEqual(loaded.days_until_deadline(today), -1)
        self.assertTrue(loaded.is_overdue(today))


class TestCategories(WorkspaceTestCase):
    async def test_default_categories_are_seeded_and_protected(self) -> None:
        categories = await self.service.get_categories()
        self.assertEqual(len(categories), 6)
        self.assertTrue(all(item.is_default for item in categories))

        with self.assertRaises(CategoryError):
            await self.service.update_category("general", {"name": "Misc"})
        with self.assertRaises(CategoryError):
            await self.service.delete_category("writing")

    async def test_custom_category_lifecycle(self) -> None:
        created = await self.service.create_category("Teaching", "#123456", "TA work")
        self.assertFalse(created.is_default)

        with self.assertRaises(CategoryError):
            await self.service.create_category("Teaching")
        with self.assertRaises(CategoryError):
            await self.service.create_category("  ")

        renamed = await self.service.update_category(created.id, {"name": "Teaching & grading"})
        self.assertEqual(renamed.name, "Teaching & grading")
        self.assertEqual((await self.service.get_category(created.id)).color, "#123456")

        task = await self.service.create_task(title="Grade", category=created.id)
        with self.assertRaises(CategoryError):
            await self.service.delete_category(created.id)

        await self.service.delete_task(task.id)
        await self.service.delete_category(created.id)
        self.assertIsNone(await self.service.get_category(created.id))
        with self.assertRaises(CategoryNotFoundError):
            await self.service.delete_category(created.id)
        with self.assertRaises(CategoryNotFoundError):
            await self.service.update_category("missing", {"name": "x"})


if __name__ == "__main__":
    unittest.main()
