from __future__ import annotations

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import requests

from contest_reminder.ingestion.adapters import within_window
from contest_reminder.ingestion.platforms import build_adapters
from contest_reminder.ingestion.schema import CanonicalContest

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class _FakeResponse:
    def __init__(self, status_code: int, payload, text: str | None = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else str(payload)

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def _epoch(value: datetime) -> int:
    return int(value.timestamp())


def _adapter(platform: str):
    (adapter,) = build_adapters([platform])
    return adapter


class LeetCodeAdapterTests(unittest.TestCase):
    def test_fetch_normalizes_contest_inside_window(self) -> None:
        start = NOW + timedelta(days=3)
        payload = {
            "data": {
                "allContests": [
                    {
                        "title": "Biweekly 100",
                        "titleSlug": "biweekly-100",
                        "startTime": _epoch(start),
                        "duration": 5400,
                    }
                ]
            }
        }

        with patch(
            "contest_reminder.ingestion.http_client.requests.post",
            return_value=_FakeResponse(200, payload),
        ) as mock_post:
            contests = _adapter("LeetCode").fetch(NOW)

        self.assertEqual(1, len(contests))
        contest = contests[0]
        self.assertEqual("Biweekly 100", contest.name)
        self.assertEqual("biweekly-100", contest.slug)
        self.assertEqual("LeetCode", contest.platform)
        self.assertEqual(start, contest.start_time)
        self.assertEqual(start + timedelta(seconds=5400), contest.end_time)
        self.assertTrue(contest.url.endswith("/contest/biweekly-100"))
        self.assertIn("allContests", mock_post.call_args.kwargs["json"]["query"])
        self.assertEqual(12, mock_post.call_args.kwargs["timeout"])

    def test_fetch_skips_past_and_malformed_contests(self) -> None:
        payload = {
            "data": {
                "allContests": [
                    {
                        "title": "Weekly 1",
                        "titleSlug": "weekly-1",
                        "startTime": _epoch(NOW - timedelta(days=400)),
                        "duration": 5400,
                    },
                    {
                        "title": "Broken",
                        "titleSlug": "broken",
                        "startTime": _epoch(NOW + timedelta(days=1)),
                        "duration": -60,
                    },
                    {"title": "No start", "titleSlug": "no-start", "startTime": None},
                ]
            }
        }

        with patch(
            "contest_reminder.ingestion.http_client.requests.post",
            return_value=_FakeResponse(200, payload),
        ):
            contests = _adapter("LeetCode").fetch(NOW)

        self.assertEqual([], contests)

    def test_fetch_returns_empty_list_on_timeout(self) -> None:
        with patch(
            "contest_reminder.ingestion.http_client.requests.post",
            side_effect=requests.Timeout("read timeout"),
        ) as mock_post:
            adapter = _adapter("LeetCode")
            outcome = adapter.run(NOW)
            contests = adapter.fetch(NOW)

        self.assertFalse(outcome.ok)
        self.assertIn("read timeout", outcome.error)
        self.assertEqual([], contests)
        # No internal retry: one request per fetch.
        self.assertEqual(2, mock_post.call_count)


class CodeforcesAdapterTests(unittest.TestCase):
    def _payload(self, *contests: dict) -> dict:
        return {"status": "OK", "result": list(contests)}

    def test_fetch_excludes_contest_beyond_two_weeks(self) -> None:
        payload = self._payload(
            {
                "id": 2001,
                "name": "Far Round",
                "startTimeSeconds": _epoch(NOW + timedelta(days=20)),
                "durationSeconds": 7200,
                "phase": "BEFORE",
            },
            {
                "id": 1234,
                "name": "Codeforces Round 1234 (Div. 2)",
                "startTimeSeconds": _epoch(NOW + timedelta(days=2)),
                "durationSeconds": 7200,
                "phase": "BEFORE",
            },
        )

        with patch(
            "contest_reminder.ingestion.http_client.requests.get",
            return_value=_FakeResponse(200, payload),
        ):
            contests = _adapter("Codeforces").fetch(NOW)

        self.assertEqual(["cf-1234"], [c.slug for c in contests])
        self.assertEqual(timedelta(hours=2), contests[0].end_time - contests[0].start_time)
        self.assertTrue(contests[0].url.endswith("/contest/1234"))

    def test_fetch_returns_empty_list_when_status_not_ok(self) -> None:
        payload = {"status": "FAILED", "comment": "Call limit exceeded"}

        with patch(
            "contest_reminder.ingestion.http_client.requests.get",
            return_value=_FakeResponse(200, payload),
        ):
            outcome = _adapter("Codeforces").run(NOW)

        self.assertFalse(outcome.ok)
        self.assertIn("Call limit exceeded", outcome.error)
        self.assertEqual([], outcome.contests)

    def test_fetch_returns_empty_list_on_non_200(self) -> None:
        with patch(
            "contest_reminder.ingestion.http_client.requests.get",
            return_value=_FakeResponse(503, {}, text="Service Unavailable"),
        ):
            outcome = _adapter("Codeforces").run(NOW)

        self.assertFalse(outcome.ok)
        self.assertIn("status=503", outcome.error)

    def test_fetch_returns_empty_list_on_non_json_body(self) -> None:
        with patch(
            "contest_reminder.ingestion.http_client.requests.get",
            return_value=_FakeResponse(200, ValueError("no json"), text="<html>"),
        ):
            contests = _adapter("Codeforces").fetch(NOW)

        self.assertEqual([], contests)


class CodeChefAdapterTests(unittest.TestCase):
    def test_fetch_parses_future_contests_and_discards_bad_dates(self) -> None:
        payload = {
            "status": "success",
            "present_contests": [
                {
                    "contest_code": "LIVE1",
                    "contest_name": "Running now",
                    "contest_start_date_iso": "2026-10-18T10:00:00+05:30",
                    "contest_end_date_iso": "2026-10-30T10:00:00+05:30",
                }
            ],
            "future_contests": [
                {
                    "contest_code": "START210",
                    "contest_name": "Starters 210",
                    "contest_start_date_iso": "2026-10-22T20:00:00+05:30",
                    "contest_end_date_iso": "2026-10-22T22:00:00+05:30",
                },
                {
                    "contest_code": "BADDATE",
                    "contest_name": "Bad date",
                    "contest_start_date_iso": "sometime soon",
                    "contest_end_date_iso": "2026-10-22T22:00:00+05:30",
                },
                {
                    "contest_code": "NODATE",
                    "contest_name": "No date",
                },
            ],
        }

        with patch(
            "contest_reminder.ingestion.http_client.requests.get",
            return_value=_FakeResponse(200, payload),
        ) as mock_get:
            contests = _adapter("CodeChef").fetch(NOW)

        self.assertEqual(["cc-START210"], [c.slug for c in contests])
        contest = contests[0]
        self.assertEqual(datetime(2026, 10, 22, 14, 30, tzinfo=timezone.utc), contest.start_time)
        self.assertEqual(datetime(2026, 10, 22, 16, 30, tzinfo=timezone.utc), contest.end_time)
        self.assertTrue(contest.url.endswith("/START210"))
        self.assertEqual("START", mock_get.call_args.kwargs["params"]["sort_by"])

    def test_fetch_returns_empty_list_on_connection_error(self) -> None:
        with patch(
            "contest_reminder.ingestion.http_client.requests.get",
            side_effect=requests.ConnectionError("connection refused"),
        ):
            contests = _adapter("CodeChef").fetch(NOW)

        self.assertEqual([], contests)


class WindowTests(unittest.TestCase):
    def _contest(self, start: datetime) -> CanonicalContest:
        return CanonicalContest(
            name="c",
            slug="c",
            platform="Codeforces",
            start_time=start,
            end_time=start + timedelta(hours=2),
            url="https://codeforces.com/contest/1",
        )

    def test_window_excludes_start_equal_to_now(self) -> None:
        self.assertFalse(within_window(self._contest(NOW), NOW))

    def test_window_includes_exactly_fourteen_days_out(self) -> None:
        self.assertTrue(within_window(self._contest(NOW + timedelta(days=14)), NOW))
        self.assertFalse(
            within_window(self._contest(NOW + timedelta(days=14, seconds=1)), NOW)
        )

    def test_canonical_contest_rejects_end_before_start(self) -> None:
        with self.assertRaises(ValueError):
            CanonicalContest(
                name="c",
                slug="c",
                platform="LeetCode",
                start_time=NOW,
                end_time=NOW - timedelta(minutes=1),
                url="u",
            )

    def test_canonical_contest_accepts_zero_duration(self) -> None:
        contest = CanonicalContest(
            name="c", slug="c", platform="LeetCode", start_time=NOW, end_time=NOW, url="u"
        )
        self.assertEqual(contest.start_time, contest.end_time)


if __name__ == "__main__":
    unittest.main()
