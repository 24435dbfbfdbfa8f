from unittest.mock import MagicMock, patch

import requests

from faultbox.scenario.primitives import MemoryLeaseStore
from faultbox.scenario.registry import ScenarioRegistry


def api_response(status_code=200, json_data=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = json_data
    resp.text = ""
    return resp


class TestCreateApp:
    def test_extensions_are_shared(self, app):
        registry = app.extensions["scenario_registry"]

        assert isinstance(registry, ScenarioRegistry)
        assert isinstance(app.extensions["memory_leases"], MemoryLeaseStore)
        assert registry.leases is app.extensions["memory_leases"]
        assert app.extensions["scenario_target"] is None


class TestScenariosCli:
    @patch("faultbox.app.requests.request")
    def test_status(self, mock_request, app):
        mock_request.return_value = api_response(
            json_data=[
                {
                    "scenario": "CpuSpike",
                    "isActive": True,
                    "lastMessage": "Running",
                }
            ]
        )

        result = app.test_cli_runner().invoke(
            args=["scenarios", "--base-url", "http://svc.test/", "status"]
        )

        assert result.exit_code == 0
        assert "CpuSpike" in result.output
        assert "active" in result.output
        assert mock_request.call_args.args == (
            "GET",
            "http://svc.test/api/scenario-toggle/status",
        )

    @patch("faultbox.app.requests.request")
    def test_start_posts_config(self, mock_request, app):
        mock_request.return_value = api_response(json_data={"isActive": True})

        result = app.test_cli_runner().invoke(
            args=[
                "scenarios",
                "--base-url",
                "http://svc.test",
                "start",
                "cpu-spike",
                '{"durationMinutes": 1}',
            ]
        )

        assert result.exit_code == 0
        assert mock_request.call_args.kwargs["json"] == {"durationMinutes": 1}

    @patch("faultbox.app.requests.request")
    def test_conflict_is_reported(self, mock_request, app):
        mock_request.return_value = api_response(
            status_code=409, json_data={"error": "Scenario CpuSpike is already running."}
        )

        result = app.test_cli_runner().invoke(
            args=["scenarios", "--base-url", "http://svc.test", "stop", "cpu-spike"]
        )

        assert result.exit_code == 1
        assert "already running" in result.output

    @patch("faultbox.app.requests.request")
    def test_unreachable(self, mock_request, app):
        mock_request.side_effect = requests.ConnectionError("refused")

        result = app.test_cli_runner().invoke(
            args=["scenarios", "--base-url", "http://svc.test", "status"]
        )

        assert result.exit_code == 1
        assert "Could not reach" in result.output

    def test_unknown_kind_rejected(self, app):
        result = app.test_cli_runner().invoke(
            args=["scenarios", "stop", "disk-fill"]
        )

        assert result.exit_code == 2
