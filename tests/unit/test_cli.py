"""
Tests for the firewall-proxy command line.
"""

import pytest

import firewall_proxy


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(firewall_proxy, "setup_logging", lambda *args, **kwargs: None)


class TestRequestCommand:
    def test_blocked_url(self, proxy_server, capsys):
        code = firewall_proxy.main([
            "request", "http://bad.example.com",
            "--address", "127.0.0.1", "--port", str(proxy_server.port),
        ])

        assert code == 2
        assert "URL blocked by firewall" in capsys.readouterr().out

    def test_fetched_body(self, proxy_server, origin, capsys):
        code = firewall_proxy.main([
            "request", f"{origin}/cli",
            "--address", "127.0.0.1", "--port", str(proxy_server.port),
        ])

        assert code == 0
        assert "/cli" in capsys.readouterr().out

    def test_no_server(self, free_port, capsys):
        code = firewall_proxy.main(["request", "http://example.com", "-a", "127.0.0.1", "-p", str(free_port)])

        assert code == 2
        assert "Client Error:" in capsys.readouterr().out


class TestConfigOption:
    def test_invalid_config_file(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        code = firewall_proxy.main(["--config", str(path), "request", "http://example.com"])

        assert code == 1
        assert "Invalid configuration" in capsys.readouterr().out

    def test_serve_reports_bind_failure(self, monkeypatch, capsys):
        class DeadHandle:
            running = False

        monkeypatch.setattr(firewall_proxy, "start_server", lambda *args, **kwargs: DeadHandle())

        code = firewall_proxy.main(["serve", "--port", "1", "--no-dashboard"])

        assert code == 1
        assert "Could not start" in capsys.readouterr().out

    def test_parser_requires_a_command(self):
        with pytest.raises(SystemExit):
            firewall_proxy.build_parser().parse_args([])
