from __future__ import annotations

import unittest

from taskclock.clock import FakeClock
from taskclock.tests.test_helpers import T0, local_tmp_dir


class TestAPI(unittest.TestCase):
    def setUp(self) -> None:
        try:
            from fastapi.testclient import TestClient  # noqa: F401
            from taskclock.api.app import create_app  # noqa: F401
        except Exception as exc:  # pragma: no cover
            self.skipTest(f"fastapi test client unavailable: {exc}")

    def _app(self, tmp, clock: FakeClock):
        from taskclock.api.app import create_app

        # Ticks never fire: the virtual clock is advanced from the test thread.
        return create_app(data_dir=tmp, clock=clock, tick_seconds=86400, default_user="default")

    def test_task_tracking_flow(self) -> None:
        from fastapi.testclient import TestClient

        with local_tmp_dir() as tmp:
            clock = FakeClock(T0)
            with TestClient(self._app(tmp, clock)) as client:
                health = client.get("/api/v1/health")
                self.assertEqual(health.status_code, 200)
                self.assertEqual(health.json().get("status"), "ok")

                meta = client.get("/api/v1/meta")
                self.assertEqual(meta.json()["user_id"], "default")
                self.assertEqual(meta.json()["db_path"], str(tmp / "users" / "default" / "taskclock.sqlite"))

                root = client.post("/api/v1/tasks", json={"title": "Thesis", "category": "writing"})
                self.assertEqual(root.status_code, 201)
                root_id = root.json()["id"]
                child = client.post("/api/v1/tasks", json={"title": "Chapter 1", "parent_id": root_id})
                child_id = child.json()["id"]

                started = client.post(f"/api/v1/tasks/{child_id}/start", json={"description": "outline"})
                self.assertEqual(started.status_code, 200)
                self.assertEqual(started.json()["state"], "active")

                clock.advance(minutes=20)
                self.assertEqual(client.post(f"/api/v1/tasks/{child_id}/pause").json()["duration"], 20)
                self.assertEqual(client.post(f"/api/v1/tasks/{child_id}/pause").status_code, 404)
                clock.advance(minutes=5)
                self.assertEqual(client.post(f"/api/v1/tasks/{child_id}/resume").status_code, 200)
                clock.advance(minutes=10)

                active = client.get("/api/v1/analytics/active").json()
                self.assertEqual(active["active_task_id"], child_id)
                self.assertEqual(active["entries"][0]["duration"], 30)

                stopped = client.post(f"/api/v1/tasks/{child_id}/stop")
                self.assertEqual(stopped.json()["duration"], 30)
                self.assertEqual(client.post(f"/api/v1/tasks/{child_id}/stop").status_code, 404)

                tree = client.get(f"/api/v1/tasks/{root_id}").json()
                self.assertEqual(tree["actual_time"], 30)
                self.assertEqual(tree["own_time"], 0)
                self.assertEqual(tree["children"][0]["actual_time"], 30)

                entries = client.get(f"/api/v1/tasks/{child_id}/time-entries").json()
                self.assertEqual([item["duration"] for item in entries], [30])

                log = client.get("/api/v1/logs/2026-03-02").json()
                self.assertEqual(log["total_time"], 30)
                notes = client.put("/api/v1/logs/2026-03-02/notes", json={"notes": "focused"})
                self.assertEqual(notes.json()["notes"], "focused")
                self.assertEqual(len(client.get("/api/v1/logs/range/2026-03-01/2026-03-03").json()), 3)
                self.assertEqual(client.get("/api/v1/logs/not-a-date").status_code, 400)

                done = client.put(f"/api/v1/tasks/{child_id}", json={"status": "completed"})
                self.assertIsNotNone(done.json()["completed_at"])
                by_status = client.get("/api/v1/tasks/status/completed").json()
                self.assertEqual([item["id"] for item in by_status], [child_id])
                self.assertEqual(client.get("/api/v1/tasks/status/blocked").status_code, 400)
                by_category = client.get("/api/v1/tasks/category/writing").json()
                self.assertEqual([item["id"] for item in by_category], [root_id])

                productivity = client.get("/api/v1/analytics/productivity/2026-03-01/2026-03-07").json()
                self.assertEqual(productivity["total_time"], 30)
                self.assertEqual(productivity["tasks_completed"], 1)
                self.assertEqual(client.get("/api/v1/analytics/time-trends/0").status_code, 422)
                self.assertEqual(client.get("/api/v1/analytics/time-trends/7").json()["total_time"], 30)
                self.assertEqual(client.get("/api/v1/analytics/summary").json()["today"]["time"], 30)
                self.assertEqual(len(client.get("/api/v1/analytics/hierarchy").json()), 1)
                self.assertIn("overdue", client.get("/api/v1/analytics/deadlines").json())

                deleted = client.delete(f"/api/v1/tasks/{root_id}")
                self.assertEqual(deleted.status_code, 200)
                self.assertEqual(client.get(f"/api/v1/tasks/{child_id}").status_code, 404)

    def test_errors_and_user_isolation(self) -> None:
        from fastapi.testclient import TestClient

        with local_tmp_dir() as tmp:
            clock = FakeClock(T0)
            with TestClient(self._app(tmp, clock)) as client:
                alice = {"X-User-Id": "alice"}
                task = client.post("/api/v1/tasks", json={"title": "Private"}, headers=alice).json()

                self.assertEqual(client.get(f"/api/v1/tasks/{task['id']}", headers=alice).status_code, 200)
                self.assertEqual(client.get(f"/api/v1/tasks/{task['id']}").status_code, 404)
                self.assertEqual(client.get("/api/v1/tasks", headers={"X-User-Id": "bob"}).json(), [])
                self.assertEqual(client.get("/api/v1/tasks", headers={"X-User-Id": "../x"}).status_code, 400)

                self.assertEqual(client.post("/api/v1/tasks/missing/start").status_code, 404)
                self.assertEqual(client.post("/api/v1/tasks", json={"title": ""}).status_code, 422)
                self.assertEqual(
                    client.post("/api/v1/tasks", json={"title": "x", "parent_id": "missing"}).status_code,
                    404,
                )
                self.assertEqual(
                    client.put(
                        f"/api/v1/tasks/{task['id']}", json={"parent_id": task["id"]}, headers=alice
                    ).status_code,
                    400,
                )

                categories = client.get("/api/v1/categories").json()
                self.assertEqual(len(categories), 6)
                created = client.post("/api/v1/categories", json={"name": "Teaching"})
                self.assertEqual(created.status_code, 201)
                self.assertEqual(client.post("/api/v1/categories", json={"name": "Teaching"}).status_code, 400)
                self.assertEqual(client.delete("/api/v1/categories/general").status_code, 400)
                self.assertEqual(client.get("/api/v1/categories/missing").status_code, 404)
                self.assertEqual(client.delete("/api/v1/categories/missing").status_code, 404)
                renamed = client.put(f"/api/v1/categories/{created.json()['id']}", json={"color": "#000000"})
                self.assertEqual(renamed.json()["color"], "#000000")

                client.post(f"/api/v1/tasks/{task['id']}/start", headers=alice)
                clock.advance(minutes=9)

            # Leaving the client runs the shutdown hook, which closes alice's interval.
            with TestClient(self._app(tmp, clock)) as client:
                loaded = client.get(f"/api/v1/tasks/{task['id']}", headers={"X-User-Id": "alice"}).json()
                self.assertEqual(loaded["actual_time"], 9)
                self.assertEqual(client.get("/api/v1/analytics/active", headers={"X-User-Id": "alice"}).json()["entries"], [])

    def test_export_report_and_openapi(self) -> None:
        from fastapi.testclient import TestClient

        with local_tmp_dir() as tmp:
            clock = FakeClock(T0)
            with TestClient(self._app(tmp, clock)) as client:
                task = client.post("/api/v1/tasks", json={"title": "Export me"}).json()
                client.post(f"/api/v1/tasks/{task['id']}/start")
                clock.advance(minutes=15)
                client.post(f"/api/v1/tasks/{task['id']}/stop")

                exported = client.post("/api/v1/export/csv", json={"out_dir": str(tmp / "out"), "include_tasks": True})
                self.assertEqual(exported.status_code, 200)
                self.assertTrue((tmp / "out" / "time-entries.csv").exists())
                self.assertTrue((tmp / "out" / "tasks.csv").exists())

                report = client.post("/api/v1/report/weekly", json={})
                self.assertEqual(report.status_code, 200)
                self.assertTrue(report.json()["path"].endswith("week-2026-10.md"))

                index = client.get("/")
                self.assertEqual(index.status_code, 200)
                self.assertIn("TaskClock", index.text)

                paths = client.get("/openapi.json").json().get("paths", {})
                self.assertIn("/api/v1/tasks/{task_id}/start", paths)
                self.assertIn("/api/v1/logs/range/{start}/{end}", paths)


if __name__ == "__main__":
    unittest.main()
