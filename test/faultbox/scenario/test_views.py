from flask import url_for

from lib.test import ViewTestMixin
from faultbox.scenario.models import ScenarioKind

FAILURE_BODY = {
    "durationMinutes": 60,
    "requestsPerSecond": 1,
    "failurePercentage": 0,
}


class TestScenarioToggle(ViewTestMixin):
    def test_status_lists_every_kind(self):
        response = self.client.get(url_for("scenario.status_all"))

        assert response.status_code == 200
        data = response.get_json()
        assert [item["scenario"] for item in data] == [
            "ProbabilisticFailure",
            "CpuSpike",
            "MemoryLeak",
            "ProbabilisticLatency",
        ]
        assert not any(item["isActive"] for item in data)

    def test_start(self, registry):
        response = self.client.post(
            "/api/scenario-toggle/probabilistic-failure/start",
            json=FAILURE_BODY,
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data["isActive"] is True
        assert data["lastMessage"] == "Running"
        assert data["activeConfig"] == FAILURE_BODY
        assert data["endsAtUtc"].endswith("+00:00")
        assert registry.status(ScenarioKind.PROBABILISTIC_FAILURE).is_active

    def test_start_twice_conflicts(self):
        url = "/api/scenario-toggle/probabilistic-failure/start"
        self.client.post(url, json=FAILURE_BODY)

        response = self.client.post(url, json=FAILURE_BODY)

        assert response.status_code == 409
        assert "already running" in response.get_json()["error"]

    def test_start_invalid_body(self):
        response = self.client.post(
            "/api/scenario-toggle/cpu-spike/start",
            json={"durationMinutes": 1, "intervalSeconds": 0},
        )

        assert response.status_code == 400
        fields = response.get_json()["fields"]
        assert fields["intervalSeconds"] == "must be between 1 and 300"
        assert fields["spikeSeconds"] == "is required"

    def test_start_without_json(self):
        response = self.client.post(
            "/api/scenario-toggle/cpu-spike/start", data="not json"
        )

        assert response.status_code == 400

    def test_unknown_kind(self):
        response = self.client.post("/api/scenario-toggle/disk-fill/start")

        assert response.status_code == 404
        assert response.get_json() == {"error": "Unknown scenario: disk-fill"}

    def test_stop_idle(self):
        response = self.client.post("/api/scenario-toggle/memory-leak/stop")

        assert response.status_code == 200
        assert response.get_json()["isActive"] is False

    def test_stop_running(self, registry):
        self.client.post(
            "/api/scenario-toggle/probabilistic-failure/start",
            json=FAILURE_BODY,
        )

        self.client.post("/api/scenario-toggle/probabilistic-failure/stop")
        assert registry.join(ScenarioKind.PROBABILISTIC_FAILURE, timeout=5)

        response = self.client.get(
            "/api/scenario-toggle/probabilistic-failure/status"
        )
        data = response.get_json()
        assert data["isActive"] is False
        assert data["lastMessage"] == "Scenario cancelled"
