from __future__ import annotations

import logging
import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from contest_reminder.db import Base, get_db
from contest_reminder.ingestion.sync import PartialBatchError, SyncResult
from contest_reminder.log_buffer import ROOT_LOGGER, install_buffer_handler
from contest_reminder.main import app
from contest_reminder.models import Contest

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class ApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "api.db")
        self.engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False},
        )
        Base.metadata.create_all(bind=self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)
        self._seed()

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.engine.dispose()
        self.tmpdir.cleanup()

    def _seed(self) -> None:
        rows = [
            ("weekly-500", "LeetCode", 2, "upcoming"),
            ("cf-1234", "Codeforces", 1, "upcoming"),
            ("cf-1235", "Codeforces", 5, "upcoming"),
            ("cc-OLD", "CodeChef", -3, "finished"),
        ]
        with self.SessionLocal() as db:
            for slug, platform, days, status in rows:
                start = NOW + timedelta(days=days)
                db.add(
                    Contest(
                        name=slug,
                        platform=platform,
                        slug=slug,
                        start_time=start,
                        end_time=start + timedelta(hours=2),
                        status=status,
                        url=f"https://example.test/{slug}",
                    )
                )
            db.commit()
            self.contest_ids = {c.slug: c.id for c in db.query(Contest).all()}

    def test_contests_are_grouped_by_platform(self) -> None:
        response = self.client.get("/contests")

        self.assertEqual(200, response.status_code)
        body = response.json()
        self.assertEqual(4, body["count"])
        self.assertEqual(["CodeChef", "Codeforces", "LeetCode"], body["platforms"])
        self.assertEqual(
            ["cf-1234", "cf-1235"],
            [c["slug"] for c in body["contests"]["Codeforces"]],
        )

    def test_filters_and_descending_sort(self) -> None:
        response = self.client.get(
            "/contests", params={"platform": "Codeforces", "status": "upcoming", "sort": "desc"}
        )

        body = response.json()
        self.assertEqual(["Codeforces"], body["platforms"])
        self.assertEqual(
            ["cf-1235", "cf-1234"],
            [c["slug"] for c in body["contests"]["Codeforces"]],
        )

    def test_limit_applies_after_ordering(self) -> None:
        body = self.client.get("/contests", params={"limit": 1}).json()

        self.assertEqual(1, body["count"])
        self.assertEqual(["cc-OLD"], [c["slug"] for c in body["contests"]["CodeChef"]])

    def test_contest_items_use_camel_case_utc_times(self) -> None:
        body = self.client.get("/contests", params={"platform": "LeetCode"}).json()

        (item,) = body["contests"]["LeetCode"]
        self.assertEqual(
            {"id", "name", "slug", "url", "startTime", "endTime", "status"},
            set(item),
        )
        self.assertTrue(item["startTime"].endswith(("Z", "+00:00")), item["startTime"])
        self.assertTrue(item["endTime"].endswith(("Z", "+00:00")), item["endTime"])
        start = datetime.fromisoformat(item["startTime"].replace("Z", "+00:00"))
        self.assertEqual(NOW + timedelta(days=2), start)

    def test_zero_limit_returns_everything(self) -> None:
        body = self.client.get("/contests", params={"limit": 0}).json()

        self.assertEqual(4, body["count"])

    def test_negative_limit_is_rejected(self) -> None:
        self.assertEqual(422, self.client.get("/contests", params={"limit": -1}).status_code)

    def test_invalid_sort_is_rejected(self) -> None:
        response = self.client.get("/contests", params={"sort": "sideways"})

        self.assertEqual(400, response.status_code)

    def test_refresh_returns_sync_summary(self) -> None:
        result = SyncResult(total_fetched=3, inserted=2, unchanged=1, platform_counts={"LeetCode": 3})
        with patch("contest_reminder.main.run_sync_pass", new=AsyncMock(return_value=result)):
            response = self.client.post("/contests/refresh")

        self.assertEqual(200, response.status_code)
        body = response.json()
        self.assertEqual(2, body["inserted"])
        self.assertEqual({"LeetCode": 3}, body["platform_counts"])

    def test_refresh_reports_failed_batch(self) -> None:
        error = PartialBatchError("All 2 contest upserts failed", SyncResult(total_fetched=2, errors=2))
        with patch("contest_reminder.main.run_sync_pass", new=AsyncMock(side_effect=error)):
            response = self.client.post("/contests/refresh")

        self.assertEqual(500, response.status_code)
        self.assertEqual(2, response.json()["errors"])

    def test_create_and_list_reminders(self) -> None:
        payload = {
            "user_ref": "dev@example.com",
            "contest_id": self.contest_ids["cf-1234"],
            "reminder_time": (NOW + timedelta(hours=20)).isoformat(),
        }

        created = self.client.post("/reminders", json=payload)
        self.assertEqual(201, created.status_code)
        self.assertFalse(created.json()["sent"])

        listed_time = self.client.get("/reminders").json()[0]["reminder_time"]
        self.assertTrue(listed_time.endswith(("Z", "+00:00")), listed_time)

        listed = self.client.get("/reminders", params={"user_ref": "dev@example.com"}).json()
        self.assertEqual([created.json()["id"]], [r["id"] for r in listed])

    def test_reminder_for_unknown_contest_is_404(self) -> None:
        payload = {"user_ref": "dev@example.com", "contest_id": 9999, "reminder_time": NOW.isoformat()}

        self.assertEqual(404, self.client.post("/reminders", json=payload).status_code)

    def test_reminder_after_start_is_400(self) -> None:
        payload = {
            "user_ref": "dev@example.com",
            "contest_id": self.contest_ids["cf-1234"],
            "reminder_time": (NOW + timedelta(days=3)).isoformat(),
        }

        self.assertEqual(400, self.client.post("/reminders", json=payload).status_code)

    def test_logs_endpoint_returns_entries(self) -> None:
        response = self.client.get("/api/logs", params={"limit": 5})

        self.assertEqual(200, response.status_code)
        self.assertIsInstance(response.json()["entries"], list)

    def test_logs_filter_by_level_and_platform(self) -> None:
        handler = install_buffer_handler()
        handler.clear()
        try:
            ingestion_logger = logging.getLogger("contest_reminder.ingestion.aggregate")
            ingestion_logger.info("Fetched %s contests from platform=%s", 3, "Codeforces")
            ingestion_logger.error("Adapter failed platform=%s error=%s", "CodeChef", "timed out")

            body = self.client.get(
                "/api/logs", params={"level": "error", "platform": "codechef"}
            ).json()
        finally:
            logging.getLogger(ROOT_LOGGER).removeHandler(handler)
            handler.clear()

        (entry,) = body["entries"]
        self.assertEqual("ERROR", entry["level"])
        self.assertEqual("CodeChef", entry["platform"])
        self.assertIn("timed out", entry["message"])

    def test_logs_reject_unknown_level(self) -> None:
        response = self.client.get("/api/logs", params={"level": "loud"})

        self.assertEqual(400, response.status_code)


if __name__ == "__main__":
    unittest.main()
