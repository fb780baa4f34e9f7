"""Tests for the server entry point."""

import pytest

from achievement_tracker import main
from achievement_tracker.config import get_settings


@pytest.fixture
def served(monkeypatch):
    calls = []
    monkeypatch.setattr(
        main.uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs))
    )
    return calls


class TestRun:
    def test_defaults_come_from_settings(self, served):
        settings = get_settings()

        main.run()

        target, kwargs = served[0]
        assert target == "achievement_tracker.main:app"
        assert kwargs["host"] == settings.api_host
        assert kwargs["port"] == settings.api_port
        assert kwargs["reload"] == settings.debug

    def test_reload_runs_single_worker(self, served):
        main.run(host="127.0.0.1", port=9001, reload=True)

        _, kwargs = served[0]
        assert kwargs == {"host": "127.0.0.1", "port": 9001, "reload": True, "workers": 1}
