"""Tests for the guardedfetch command line interface."""

from __future__ import annotations

import json
import logging

import pytest
from typer.testing import CliRunner

from GuardedFetch import cli
from GuardedFetch.client import HttpClient
from GuardedFetch.logging_config import LOGGER_NAME
from GuardedFetch.testing import RecordingTransport, ok_response, status_failure

runner = CliRunner()


@pytest.fixture(autouse=True)
def detach_cli_logging():
    """Drop the handlers each command installs on the package logger."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_guardedfetch_managed", False):
            logger.removeHandler(handler)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "network_settings:\n"
        "  '*.example.com':\n"
        "    http_proxy: http://proxy:8080\n"
        "  'api.example.com':\n"
        "    enable_network: false\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def recording(monkeypatch):
    """Route CLI requests through a scripted transport."""
    transport = RecordingTransport()
    monkeypatch.setattr(cli, "HttpClient", lambda: HttpClient(transport))
    return transport


class TestResolveCommand:
    def test_resolve_prints_policy(self, config_file):
        result = runner.invoke(cli.app, ["resolve", "https://api.example.com/x", "--config", str(config_file)])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload == {
            "enable_network": False,
            "ca_file_path": None,
            "http_proxy": "http://proxy:8080",
            "https_proxy": None,
        }


class TestGetCommand:
    def test_get_json(self, recording):
        recording.queue(ok_response(b'{"name": "pkg"}'))
        result = runner.invoke(cli.app, ["get", "https://example.org/pkg", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {"name": "pkg"}

    def test_get_raw(self, recording):
        recording.queue(ok_response(b"plain body"))
        result = runner.invoke(cli.app, ["get", "https://example.org/pkg"])
        assert result.exit_code == 0, result.output
        assert "plain body" in result.stdout

    def test_blocked_destination(self, recording, config_file):
        result = runner.invoke(cli.app, ["get", "https://api.example.com/x", "--config", str(config_file)])
        assert result.exit_code == 1
        assert recording.call_count == 0

    def test_structured_failure(self, recording):
        recording.queue(status_failure(404, url="https://example.org/missing"))
        result = runner.invoke(cli.app, ["get", "https://example.org/missing"])
        assert result.exit_code == 1

    def test_missing_config_file(self, tmp_path):
        result = runner.invoke(cli.app, ["get", "https://example.org/", "--config", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 2


class TestSettingsShow:
    def test_settings_show(self, config_file):
        result = runner.invoke(cli.app, ["settings", "show", "--config", str(config_file)])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["http_retry"] == 3
        assert payload["network_settings"]["api.example.com"]["enable_network"] is False
        assert len(payload["config_hash"]) == 16
