"""
Tests for observability — daemon health probe and logging setup.
"""

import logging
from pathlib import Path

import pytest

from sbenv.adapters.base import HttpUnreachableError
from sbenv.adapters.mock import FakeHttpClient
from sbenv.adapters.network.http import UrllibHttpClient
from sbenv.core.models.environment import EnvironmentRecord, LocalConfig, Registry
from sbenv.core.observability.health import (
    HEALTHY,
    UNHEALTHY,
    UNKNOWN,
    UNREACHABLE,
    probe_base_url,
    probe_daemon,
)
from sbenv.core.observability.logging_config import level_from_flags, setup_logging

BASE = "http://127.0.0.1:7950"


# ── Health probe ─────────────────────────────────────────────────────


class TestProbeBaseUrl:
    def test_client_url_wins(self):
        config = LocalConfig(client_url="http://localhost:8123/")
        assert probe_base_url(config, Registry(), "/envs/a") == "http://localhost:8123"

    def test_registry_port(self):
        registry = Registry(environments={
            "a@/envs/a": EnvironmentRecord(path="/envs/a", email="a", port=7950),
        })
        assert probe_base_url(LocalConfig(), registry, "/envs/a") == BASE

    def test_nothing_known(self):
        assert probe_base_url(LocalConfig(), Registry(), "/envs/a") is None


class TestProbeDaemon:
    @pytest.mark.parametrize("code,expected", [
        (200, HEALTHY),
        (401, HEALTHY),
        (403, UNHEALTHY),
        (404, UNHEALTHY),
        (500, UNHEALTHY),
    ])
    def test_classification(self, code, expected):
        http = FakeHttpClient()
        http.statuses[f"{BASE}/v1/status"] = code
        result = probe_daemon(http, BASE)
        assert result.status == expected
        assert result.code == code

    def test_unreachable(self):
        http = FakeHttpClient()
        http.statuses[f"{BASE}/v1/status"] = HttpUnreachableError("connection refused")
        result = probe_daemon(http, BASE)
        assert result.status == UNREACHABLE
        assert result.code is None
        assert "refused" in result.message
        assert not result.responding

    def test_port_held_by_something_else(self, foreign_listener, monkeypatch):
        for var in ("http_proxy", "HTTP_PROXY", "all_proxy", "ALL_PROXY"):
            monkeypatch.delenv(var, raising=False)
        result = probe_daemon(UrllibHttpClient(), foreign_listener, token="t", timeout=1)
        assert result.status == UNREACHABLE
        assert result.code is None
        assert "BadStatusLine" in result.message

    def test_malformed_client_url(self):
        result = probe_daemon(UrllibHttpClient(), "localhost:7950")
        assert result.status == UNREACHABLE

    def test_no_url(self):
        result = probe_daemon(FakeHttpClient(), None)
        assert result.status == UNKNOWN
        assert FakeHttpClient().request_count == 0

    def test_single_request(self):
        http = FakeHttpClient()
        http.statuses[f"{BASE}/v1/status"] = 200
        probe_daemon(http, BASE + "/", token="t")
        assert http.requests == [("status", f"{BASE}/v1/status")]

    def test_to_dict(self):
        http = FakeHttpClient()
        http.statuses[f"{BASE}/v1/status"] = 401
        d = probe_daemon(http, BASE).to_dict()
        assert d == {
            "status": HEALTHY,
            "url": f"{BASE}/v1/status",
            "code": 401,
            "message": "Control API requires token",
        }


# ── Logging ──────────────────────────────────────────────────────────


class TestLogging:
    @pytest.fixture(autouse=True)
    def _restore_root_logger(self):
        root = logging.getLogger()
        adapters = logging.getLogger("sbenv.adapters")
        handlers, level, adapters_level = list(root.handlers), root.level, adapters.level
        yield
        adapters.setLevel(adapters_level)
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_flag_precedence(self, monkeypatch):
        monkeypatch.setenv("SBENV_LOG_LEVEL", "ERROR")
        assert level_from_flags(debug=True, verbose=True) == "DEBUG"
        assert level_from_flags(verbose=True) == "INFO"
        assert level_from_flags(quiet=True) == "ERROR"
        assert level_from_flags() == "ERROR"
        monkeypatch.delenv("SBENV_LOG_LEVEL")
        assert level_from_flags() == "WARNING"

    def test_console_level(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_bad_level_falls_back(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "sbenv.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        logging.getLogger("sbenv.test").debug("hello file")
        for handler in root.handlers:
            handler.flush()
        assert "hello file" in log_file.read_text()

    def test_adapter_debug_needs_console_debug(self, tmp_path: Path):
        log_file = tmp_path / "sbenv.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")
        logging.getLogger("sbenv.adapters.shell.command").debug("running ps")
        logging.getLogger("sbenv.adapters.shell.command").info("downloaded")
        logging.getLogger("sbenv.core.services.ports").debug("port picked")
        for handler in logging.getLogger().handlers:
            handler.flush()
        text = log_file.read_text()
        assert "port picked" in text
        assert "downloaded" in text
        assert "running ps" not in text

    def test_console_debug_shows_adapters(self):
        setup_logging("INFO")
        assert logging.getLogger("sbenv.adapters").level == logging.INFO
        setup_logging("DEBUG")
        assert logging.getLogger("sbenv.adapters").getEffectiveLevel() == logging.DEBUG
