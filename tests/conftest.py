"""
pytest configuration and fixtures.
"""

import logging
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Generator

import pytest

from firewall.FirewallProxyServer import ServerHandle, start_server, stop_server

PROXY_ENV_VARS = (
    "HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY",
    "http_proxy", "https_proxy", "all_proxy",
)


@pytest.fixture(autouse=True)
def no_env_proxies(monkeypatch):
    """Keep requests from routing local test traffic through a system proxy."""
    for name in PROXY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("NO_PROXY", "*")


@pytest.fixture
def restore_root_logger():
    """Remove the handlers a test adds to the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class OriginHandler(BaseHTTPRequestHandler):
    """
    Upstream used by the fetch tests.

    /status/<code>  answers with that status
    /slow           waits a second before answering
    /multi          answers with a multi-line body
    /big            answers with 20000 bytes
    /utf8-no-charset  UTF-8 text/html without a charset parameter
    /latin1         ISO-8859-1 body with a matching charset
    anything else   echoes the path back as the body
    """

    def do_GET(self):
        if self.path.startswith("/status/"):
            code = int(self.path.rsplit("/", 1)[1])
            self._reply(code, f"status {code}")
        elif self.path == "/slow":
            time.sleep(1.0)
            self._reply(200, "finally")
        elif self.path == "/multi":
            self._reply(200, "line one\nline two\n")
        elif self.path == "/big":
            self._reply(200, "a" * 20000)
        elif self.path == "/utf8-no-charset":
            self._reply(200, "héllo wörld", content_type="text/html")
        elif self.path == "/latin1":
            self._reply(200, "héllo", content_type="text/plain; charset=iso-8859-1")
        else:
            self._reply(200, self.path)

    def _reply(self, code: int, body: str, content_type: str = "text/plain; charset=utf-8"):
        charset = content_type.partition("charset=")[2] or "utf-8"
        data = body.encode(charset)
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        if code not in (204, 304):
            self.wfile.write(data)

    def log_message(self, format, *args):
        pass


class OriginServer(ThreadingHTTPServer):
    daemon_threads = True
    request_queue_size = 128

    def handle_error(self, request, client_address):
        # Clients that time out on /slow leave a broken pipe behind
        pass


@pytest.fixture
def origin() -> Generator[str, None, None]:
    """Base URL of a local HTTP server."""
    server = OriginServer(("127.0.0.1", 0), OriginHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield f"http://127.0.0.1:{server.server_address[1]}"

    server.shutdown()
    server.server_close()


@pytest.fixture
def free_port() -> int:
    """Get a port nothing is listening on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def proxy_server() -> Generator[ServerHandle, None, None]:
    """A firewall server on an OS-assigned port."""
    handle = start_server(0, host="127.0.0.1")
    assert handle.running

    yield handle

    stop_server(handle)
    handle.join(timeout=5.0)
