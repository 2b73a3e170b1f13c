"""Tests for the sync run history route."""


class TestSyncRuns:
    def test_empty(self, client):
        resp = client.get("/api/sync-runs")
        assert resp.status_code == 200
        data = resp.json()
        assert data["runs"] == []
        assert data["scheduler_active"] is False
        assert data["next_run"] is None

    def test_lists_recorded_runs(self, seeded_client):
        data = seeded_client.get("/api/sync-runs").json()
        assert len(data["runs"]) == 1
        run = data["runs"][0]
        assert run["status"] == "partial"
        assert run["categories_ok"] == 1
        assert run["categories_failed"] == 1
        assert run["deleted"] == 1

    def test_limit_validated(self, client):
        assert client.get("/api/sync-runs?limit=0").status_code == 422
