# tests/conftest.py
import json
import re
from collections import Counter
from datetime import date

import httpx
import pytest

from habitvault.api import ApiClient
from habitvault.db import SessionStore
from habitvault.services import ActivityService, AnalyticsService, HabitService, QuoteService


class RecordingNotifier:
    def __init__(self):
        self.successes = []
        self.errors = []

    def success(self, message):
        self.successes.append(message)

    def error(self, message):
        self.errors.append(message)


class FakeServer:
    """
    In-memory stand-in for the REST API, served through httpx.MockTransport.

    Check-ins are keyed by (habit_id, date) like the real table, so a
    repeated POST updates in place.
    """

    def __init__(self):
        self.habits = {}
        self.checkins = {}
        self.heatmaps = {}
        self.calls = Counter()
        self.requests = []
        self.fail = {}
        self.streaks = {}
        self.timeouts = []
        self.quotes = []
        # None: an older server without activity routes
        self.activities = None
        self.next_id = 1

    def add_habit(self, habit_id, name, target_type="daily", start_date="2025-05-01", target_days=None, **extra):
        self.habits[habit_id] = {
            "id": habit_id,
            "name": name,
            "target_type": target_type,
            "start_date": start_date,
            "target_days": target_days,
            "current_streak": 0,
            "longest_streak": 0,
            "created_at": "2025-05-01T00:00:00.000Z",
            "updated_at": "2025-05-01T00:00:00.000Z",
            **extra,
        }

    def add_checkin(self, habit_id, day, status):
        cid = self.next_id
        self.next_id += 1
        self.checkins[(habit_id, day)] = {
            "id": cid,
            "habit_id": habit_id,
            "date": day,
            "status": status,
            "created_at": "2025-05-14T08:00:00.000Z",
            "updated_at": "2025-05-14T08:00:00.000Z",
        }

    def fail_on(self, method, path, status=500, body=None):
        """status None drops the connection; "timeout" times out the read."""
        self.fail[(method, path)] = (status, body if body is not None else {"message": "Server error"})

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/api")
        params = dict(request.url.params)
        key = (request.method, path)
        self.calls[key] += 1
        self.requests.append((request.method, path, params, request.headers.get("Authorization")))
        self.timeouts.append(request.extensions.get("timeout", {}).get("read"))

        if key in self.fail:
            status, body = self.fail[key]
            if status is None:
                raise httpx.ConnectError("connection refused", request=request)
            if status == "timeout":
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(status, json=body)

        if path == "/habits" and request.method == "GET":
            return httpx.Response(200, json=list(self.habits.values()))

        if path == "/habits" and request.method == "POST":
            payload = json.loads(request.content)
            habit_id = max(self.habits, default=0) + 1
            self.add_habit(habit_id, payload["name"], payload["target_type"], payload["start_date"], payload.get("target_days"))
            return httpx.Response(201, json=self.habits[habit_id])

        m = re.fullmatch(r"/habits/(\d+)", path)
        if m:
            habit_id = int(m.group(1))
            if habit_id not in self.habits:
                return httpx.Response(404, json={"message": "Habit not found"})
            if request.method == "GET":
                return httpx.Response(200, json=self.habits[habit_id])
            if request.method == "PUT":
                self.habits[habit_id].update(json.loads(request.content))
                return httpx.Response(200, json=self.habits[habit_id])
            if request.method == "DELETE":
                del self.habits[habit_id]
                return httpx.Response(204)

        m = re.fullmatch(r"/habits/(\d+)/checkins", path)
        if m:
            habit_id = int(m.group(1))
            if request.method == "GET":
                start = params.get("start_date", "0000-00-00")
                end = params.get("end_date", "9999-99-99")
                rows = [c for (hid, d), c in self.checkins.items() if hid == habit_id and start <= d <= end]
                return httpx.Response(200, json=rows)
            payload = json.loads(request.content)
            existing = self.checkins.get((habit_id, payload["date"]))
            if existing:
                existing["status"] = payload["status"]
            else:
                self.add_checkin(habit_id, payload["date"], payload["status"])
            current, longest = self.streaks.get(habit_id, (1, 1))
            self.habits[habit_id]["current_streak"] = current
            self.habits[habit_id]["longest_streak"] = longest
            return httpx.Response(200, json={"current_streak": current, "longest_streak": longest})

        if path == "/checkins/batch":
            payload = json.loads(request.content)
            for u in payload["updates"]:
                existing = self.checkins.get((u["habit_id"], payload["date"]))
                if existing:
                    existing["status"] = u["status"]
                else:
                    self.add_checkin(u["habit_id"], payload["date"], u["status"])
            return httpx.Response(200, json={"updated": len(payload["updates"])})

        if path == "/analytics/heatmap":
            start, end = params.get("start_date"), params.get("end_date")
            if (start, end) in self.heatmaps:
                return httpx.Response(200, json=self.heatmaps[(start, end)])
            out = {}
            for hid, h in self.habits.items():
                out[str(hid)] = {
                    "name": h["name"],
                    "target_type": h["target_type"],
                    "checkins": {
                        d: c["status"]
                        for (chid, d), c in self.checkins.items()
                        if chid == hid and (start is None or start <= d <= end)
                    },
                }
            return httpx.Response(200, json=out)

        if path == "/analytics/summary":
            habits = list(self.habits.values())
            return httpx.Response(
                200,
                json={
                    "total_habits": len(habits),
                    "completion_rate": 75,
                    "habit_types": dict(Counter(h["target_type"] for h in habits)),
                    "top_streaks": [
                        {
                            "id": h["id"],
                            "name": h["name"],
                            "current_streak": h["current_streak"],
                            "longest_streak": h["longest_streak"],
                        }
                        for h in habits
                    ],
                    "longest_streak": max((h["longest_streak"] for h in habits), default=0),
                },
            )

        if path == "/quotes/daily":
            return httpx.Response(200, json={"id": 99, "text": "Keep going.", "author": "Server"})

        if path == "/quotes/random" and self.quotes:
            return httpx.Response(200, json=self.quotes[0])

        m = re.fullmatch(r"/quotes/category/(\w+)", path)
        if m and self.quotes:
            return httpx.Response(200, json=[q for q in self.quotes if q.get("category") == m.group(1)])

        if path.startswith("/activities") and self.activities is not None:
            limit = int(params.get("limit", 20))
            m = re.fullmatch(r"/activities/type/(\w+)", path)
            rows = [a for a in self.activities if a["type"] == m.group(1)] if m else self.activities
            return httpx.Response(200, json=rows[:limit])

        return httpx.Response(404, json={"message": "Not found"})


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def store(tmp_path):
    s = SessionStore(str(tmp_path / "prefs.db"))
    s.token = "test-token"
    return s


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(server, store, notifier):
    c = ApiClient(
        "http://test/api",
        session=store,
        notifier=notifier,
        transport=httpx.MockTransport(server.handler),
    )
    yield c
    c.close()


@pytest.fixture
def habit_service(client):
    return HabitService(client, fanout_workers=4)


@pytest.fixture
def analytics_service(client):
    return AnalyticsService(client)


@pytest.fixture
def quote_service(client):
    return QuoteService(client)


@pytest.fixture
def may14():
    return date(2025, 5, 14)


@pytest.fixture
def activity_service(client, habit_service):
    return ActivityService(client, habit_service)
