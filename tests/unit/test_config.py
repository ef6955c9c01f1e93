"""
Unit tests for configuration loading and logging setup.
"""

import json
import logging

import pytest

from firewall.config import ProxyConfig, load_config
from firewall.logger import DashboardLogHandler, setup_logging


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()

        assert config.port == 8080
        assert config.blocked_tokens == ("bad",)
        assert config.connect_timeout == 5.0
        assert config.read_timeout == 5.0
        assert config.client_timeout is None
        assert config.max_body_bytes is None
        assert config.max_request_line == 8192

    def test_file_overrides_defaults(self, tmp_path):
        path = tmp_path / "firewall.json"
        path.write_text(json.dumps({"port": 9000, "blocked_tokens": ["ads", "casino"]}))

        config = load_config(str(path))

        assert config.port == 9000
        assert config.blocked_tokens == ("ads", "casino")
        assert config.host == "0.0.0.0"

    def test_unknown_keys_are_rejected(self, tmp_path):
        path = tmp_path / "firewall.json"
        path.write_text(json.dumps({"prot": 9000}))

        with pytest.raises(ValueError, match="prot"):
            load_config(str(path))

    def test_non_object_is_rejected(self, tmp_path):
        path = tmp_path / "firewall.json"
        path.write_text("[1, 2]")

        with pytest.raises(ValueError):
            load_config(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_config(str(tmp_path / "nope.json"))

    def test_merged_ignores_none(self):
        config = ProxyConfig().merged({"port": None, "host": "127.0.0.1"})

        assert config.port == 8080
        assert config.host == "127.0.0.1"


class TestSetupLogging:
    def test_writes_rotating_log_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "firewall.log"

        setup_logging("INFO", str(log_file), console=False)
        logging.getLogger("firewall.test").info("hello from the test")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "hello from the test" in log_file.read_text(encoding="utf-8")

    def test_dashboard_keeps_recent_records(self, restore_root_logger):
        dashboard = DashboardLogHandler(maxlen=2)
        setup_logging("INFO", None, dashboard=dashboard)

        log = logging.getLogger("firewall.test")
        log.info("one")
        log.warning("two")
        log.error("three")

        assert list(dashboard.records) == [("WARNING", "two"), ("ERROR", "three")]
