# tests/contract/test_analytics_api.py
#
# Contract tests for GET/POST /api/analytics.

from datetime import datetime, timedelta, timezone

import pytest

pytestmark = pytest.mark.contract


def _post(client, **fields):
    body = {"model": "phi", "tokens": 10, "responseTime": 1.0, "success": True, "cost": 0.0}
    body.update(fields)
    return client.post("/api/analytics", json=body)


class TestRecordUsage:

    def test_post_returns_success(self, client, analytics_store):
        resp = _post(client)
        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        assert len(analytics_store) == 1

    def test_camel_case_response_time_accepted(self, client, analytics_store):
        _post(client, responseTime=2.5)
        assert analytics_store.records()[0].response_time == 2.5

    def test_timestamp_defaults_to_now(self, client, analytics_store):
        before = datetime.now(timezone.utc)
        _post(client)
        recorded = analytics_store.records()[0].timestamp
        assert recorded.tzinfo is not None
        assert recorded >= before - timedelta(seconds=1)

    def test_explicit_timestamp_kept(self, client, analytics_store):
        _post(client, timestamp="2024-03-01T12:00:00.000Z")
        recorded = analytics_store.records()[0].timestamp
        assert recorded == datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_retention_keeps_latest_1000(self, client, analytics_store):
        for i in range(1050):
            _post(client, tokens=i)

        records = analytics_store.records()
        assert len(records) == 1000
        assert records[0].tokens == 50
        assert records[-1].tokens == 1049
        assert client.get("/api/analytics").json()["totalRequests"] == 1000

    def test_invalid_body_rejected(self, client):
        resp = _post(client, tokens="lots")
        assert resp.status_code == 400
        assert "error" in resp.json()


class TestUsageSummary:

    def test_empty_summary(self, client):
        data = client.get("/api/analytics").json()

        assert data["totalRequests"] == 0
        assert data["totalCost"] == 0
        assert data["avgSuccessRate"] == 0
        assert data["avgResponseTime"] == 0
        assert data["usageData"] == []
        assert len(data["dailyUsage"]) == 7
        assert all(day["requests"] == 0 for day in data["dailyUsage"])
        assert data["lastUpdated"].endswith("Z")

    def test_summary_aggregates_posts(self, client):
        _post(client, model="phi", tokens=10, responseTime=1.0, success=True, cost=0.5)
        _post(client, model="phi", tokens=20, responseTime=2.0, success=False, cost=0.0)
        _post(client, model="tts-nova", tokens=5, responseTime=3.0, success=True, cost=0.25)

        data = client.get("/api/analytics").json()
        assert data["totalRequests"] == 3
        assert data["totalCost"] == pytest.approx(0.75)
        assert data["avgSuccessRate"] == pytest.approx(66.7)
        assert data["avgResponseTime"] == pytest.approx(2.0)

        by_model = {u["model"]: u for u in data["usageData"]}
        assert by_model["phi"]["requests"] == 2
        assert by_model["phi"]["tokens"] == 30
        assert by_model["phi"]["success"] == pytest.approx(50.0)
        assert by_model["phi"]["avgResponseTime"] == pytest.approx(1.5)
        assert by_model["tts-nova"]["cost"] == pytest.approx(0.25)

        today = data["dailyUsage"][-1]
        assert today["date"] == datetime.now(timezone.utc).date().isoformat()
        assert today["requests"] == 3

    def test_records_older_than_30_days_ignored(self, client):
        old = (datetime.now(timezone.utc) - timedelta(days=45)).isoformat()
        _post(client, timestamp=old)
        _post(client)

        assert client.get("/api/analytics").json()["totalRequests"] == 1

    def test_chat_requests_show_up(self, client):
        client.post("/api/chat", json={"model": "phi", "messages": [{"role": "user", "content": "Hi"}]})

        data = client.get("/api/analytics").json()
        assert data["totalRequests"] == 1
        assert data["usageData"][0]["model"] == "phi"
        assert data["usageData"][0]["success"] == 100.0
