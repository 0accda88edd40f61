from __future__ import annotations

import csv
import unittest

from taskclock.exporting import export_tasks_csv, export_time_entries_csv
from taskclock.tests.test_helpers import WorkspaceTestCase


class TestExporting(WorkspaceTestCase):
    async def test_time_entries_and_tasks_csv(self) -> None:
        root = await self.service.create_task(title="Thesis", tags="phd")
        child = await self.service.create_task(title="Chapter, one", parent_id=root.id, deadline="2026-03-01")
        await self.service.start_tracking(child.id, "first pass")
        self.clock.advance(minutes=25)
        await self.service.stop_tracking(child.id)

        entries_path = await export_time_entries_csv(self.db, self.tmp / "out")
        with entries_path.open("r", encoding="utf-8", newline="") as fp:
            rows = list(csv.DictReader(fp))
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["task_title"], "Chapter, one")
        self.assertEqual(rows[0]["parent_id"], root.id)
        self.assertEqual(rows[0]["duration_min"], "25")
        self.assertEqual(rows[0]["description"], "first pass")

        tasks_path = await export_tasks_csv(self.db, self.tmp / "out", self.clock.now().date())
        with tasks_path.open("r", encoding="utf-8", newline="") as fp:
            by_id = {row["id"]: row for row in csv.DictReader(fp)}
        self.assertEqual(by_id[root.id]["actual_min"], "25")
        self.assertEqual(by_id[root.id]["tags"], "phd")
        self.assertEqual(by_id[child.id]["is_overdue"], "1")


if __name__ == "__main__":
    unittest.main()
