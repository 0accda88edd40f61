from __future__ import annotations

from datetime import timedelta
from pathlib import Path
import unittest

from taskclock.db import TaskClockDB, user_db_path
from taskclock.intervals import TimeInterval
from taskclock.models import DailyLog, Task
from taskclock.tests.test_helpers import T0, local_tmp_dir


class TestTaskClockDB(unittest.IsolatedAsyncioTestCase):
    async def test_schema_is_idempotent_and_categories_seed_once(self) -> None:
        with local_tmp_dir() as tmp:
            db = TaskClockDB(tmp / "nested" / "store.sqlite")
            await db.init_schema()
            await db.init_schema()
            self.assertEqual(await db.seed_default_categories(T0), 6)
            self.assertEqual(await db.seed_default_categories(T0), 0)
            self.assertTrue((tmp / "nested" / "store.sqlite").exists())

    async def test_interval_pause_state_survives_a_round_trip(self) -> None:
        with local_tmp_dir() as tmp:
            db = TaskClockDB(tmp / "store.sqlite")
            await db.init_schema()
            await db.insert_task(Task(id="t1", title="Read", created_at=T0, updated_at=T0))

            interval = TimeInterval.open("t1", T0, description="chapter 1")
            await db.insert_interval(interval)
            interval.pause(T0 + timedelta(minutes=3))
            self.assertTrue(await db.update_interval(interval))

            loaded = await db.get_open_interval("t1")
            self.assertEqual(loaded.id, interval.id)
            self.assertTrue(loaded.is_paused)
            self.assertEqual(loaded.paused_at, T0 + timedelta(minutes=3))
            self.assertEqual(loaded.start_time, T0)
            self.assertEqual(loaded.date, "2026-03-02")
            self.assertEqual([item.id for item in await db.list_open_intervals()], [interval.id])

            loaded.stop(T0 + timedelta(minutes=10))
            await db.update_interval(loaded)
            self.assertIsNone(await db.get_open_interval("t1"))
            closed = await db.get_interval(interval.id)
            self.assertEqual(closed.duration, 3)

            ghost = TimeInterval.open("t1", T0)
            self.assertFalse(await db.update_interval(ghost))

    async def test_tasks_and_intervals_are_deleted_together(self) -> None:
        with local_tmp_dir() as tmp:
            db = TaskClockDB(tmp / "store.sqlite")
            await db.init_schema()
            await db.insert_task(Task(id="p", title="Parent", created_at=T0, updated_at=T0))
            await db.insert_task(Task(id="c", title="Child", parent_id="p", created_at=T0, updated_at=T0))
            await db.insert_interval(TimeInterval.open("c", T0))

            self.assertEqual([task.id for task in await db.list_tasks("p")], ["c"])
            self.assertEqual([task.id for task in await db.list_tasks()], ["p"])
            self.assertEqual(await db.delete_tasks(["p", "c"]), 2)
            self.assertEqual(await db.list_all_intervals(), [])
            self.assertFalse(await db.task_exists("p"))
            self.assertEqual(await db.delete_tasks([]), 0)

    async def test_daily_log_upsert_keeps_one_row_per_date(self) -> None:
        with local_tmp_dir() as tmp:
            db = TaskClockDB(tmp / "store.sqlite")
            await db.init_schema()
            log = DailyLog(date="2026-03-02", created_at=T0, updated_at=T0)
            log.add_worked_on_task("t1", "Read", 20)
            log.add_time(20)
            await db.save_daily_log(log)

            log.notes = "good day"
            log.add_time(5)
            await db.save_daily_log(DailyLog(date="2026-03-02", id="other", total_time=25, notes="good day"))

            logs = await db.list_daily_logs("2026-03-01", "2026-03-31")
            self.assertEqual(len(logs), 1)
            self.assertEqual(logs[0].id, log.id)
            self.assertEqual(logs[0].total_time, 25)
            self.assertEqual(logs[0].notes, "good day")

    def test_user_db_path(self) -> None:
        self.assertEqual(
            user_db_path(Path("/data"), "alice"),
            Path("/data") / "users" / "alice" / "taskclock.sqlite",
        )


if __name__ == "__main__":
    unittest.main()
