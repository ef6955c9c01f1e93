"""
Firewall Proxy Server
Description: Accepts one URL per connection, refuses URLs matching the
             blocklist and answers everything else with the fetched body.
"""

import logging
import socket
import threading
import time
from typing import Optional

from firewall.config import ProxyConfig
from firewall.ConnectionHandler import ConnectionHandler
from firewall.FilterPolicy import FilterPolicy
from firewall.UrlFetcher import UrlFetcher

logger = logging.getLogger(__name__)


class FirewallProxyServer:
    """
    A threaded server that hands every accepted connection to its own
    ConnectionHandler.

    Attributes:
        listening_addr (str): The address on which the server listens
        listening_port (int): The port requested for the listener
        bound_port (int): The port actually bound, None until bound
        server_socket (socket): The listening socket, None once closed
        client_threads (list): Handler threads that may still be running
        running (bool): Flag indicating if the accept loop is live
    """

    def __init__(
        self,
        listening_addr: Optional[str] = None,
        listening_port: Optional[int] = None,
        config: Optional[ProxyConfig] = None,
        filter_policy: Optional[FilterPolicy] = None,
        fetcher: Optional[UrlFetcher] = None
    ):
        self.config = config or ProxyConfig()
        self.listening_addr = self.config.host if listening_addr is None else listening_addr
        self.listening_port = self.config.port if listening_port is None else listening_port
        self.filter_policy = filter_policy or FilterPolicy(self.config.blocked_tokens)
        self.fetcher = fetcher or UrlFetcher(
            connect_timeout=self.config.connect_timeout,
            read_timeout=self.config.read_timeout,
            max_body_bytes=self.config.max_body_bytes
        )

        self.bound_port = None
        self.server_socket = None
        self.client_threads = []
        self.running = False
        self.started_at = None

        self.total_connections = 0
        self.active_connections = 0
        self.blocked_requests = 0

        self._lock = threading.Lock()
        self._stopped = threading.Event()
        self._bound = threading.Event()

    def serve_forever(self):
        """
        Bind the listener and run the accept loop until ``stop`` is called.
        Bind failures are logged and leave the server not running.
        """
        try:
            server_socket = self._bind()
        except Exception as e:
            logger.error(f"Failed to start server on {self.listening_addr}:{self.listening_port}: {e}")
            self._bound.set()
            return

        logger.info(f"Firewall Server started on {self.listening_addr}:{self.bound_port}")
        try:
            self._accept_loop(server_socket)
        finally:
            self.running = False
            self._close_listener()
            logger.info(f"Firewall Server on port {self.bound_port} stopped")

    def _bind(self) -> socket.socket:
        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.listening_addr, self.listening_port))
            server_socket.listen(self.config.backlog)
            server_socket.settimeout(self.config.accept_timeout)
        except Exception:
            server_socket.close()
            raise

        with self._lock:
            if self._stopped.is_set():
                server_socket.close()
                self._bound.set()
                raise OSError("server stopped before it finished binding")
            self.server_socket = server_socket
            self.bound_port = server_socket.getsockname()[1]
            self.running = True
            self.started_at = time.time()
        self._bound.set()
        return server_socket

    def _accept_loop(self, server_socket: socket.socket):
        while self.running and not self._stopped.is_set():
            try:
                client_socket, addr = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._stopped.is_set():
                    break
                logger.error(f"Error accepting connections: {e}")
                if server_socket.fileno() == -1:
                    break
                time.sleep(0.1)
                continue

            logger.info(f"Accepted connection from {addr[0]}:{addr[1]}")
            self.handle_client(client_socket, addr)

    def handle_client(self, client_socket: socket.socket, client_address):
        """
        Start a handler thread for an accepted connection and return at once.

        Args:
            client_socket (socket): The socket connected to the client
            client_address (tuple): The client's address
        """
        handler = ConnectionHandler(
            client_socket,
            client_address,
            self.filter_policy,
            self.fetcher,
            timeout=self.config.client_timeout,
            encoding=self.config.encoding,
            max_line=self.config.max_request_line
        )
        client_handler = threading.Thread(
            target=self._run_handler,
            args=(handler,),
            daemon=True
        )

        with self._lock:
            self.total_connections += 1
            self.active_connections += 1
            # Clean up finished threads
            self.client_threads = [t for t in self.client_threads if t.is_alive()]
            self.client_threads.append(client_handler)

        client_handler.start()

    def _run_handler(self, handler: ConnectionHandler):
        try:
            handler.run()
        finally:
            with self._lock:
                self.active_connections -= 1
                if handler.blocked:
                    self.blocked_requests += 1

    def start(self, wait: float = 5.0) -> "ServerHandle":
        """
        Run ``serve_forever`` on a background thread.

        Args:
            wait (float): Seconds to wait for the bind to finish

        Returns:
            ServerHandle for the running (or failed) listener
        """
        thread = threading.Thread(
            target=self.serve_forever,
            name=f"firewall-accept-{self.listening_port}",
            daemon=True
        )
        thread.start()
        self._bound.wait(wait)
        return ServerHandle(self, thread)

    def stop(self, drain_timeout: Optional[float] = None):
        """
        Stop accepting connections. Safe to call more than once and from any
        thread.

        Args:
            drain_timeout (float): Seconds to wait for in-flight handlers,
                None returns without waiting
        """
        if not self._stopped.is_set():
            logger.info("Shutting down the server...")
        self._stopped.set()
        self.running = False
        self._close_listener()

        if drain_timeout is not None:
            self._drain(drain_timeout)

    def _close_listener(self):
        with self._lock:
            server_socket, self.server_socket = self.server_socket, None
        if server_socket is None:
            return

        try:
            # Wakes a blocked accept and refuses new connections right away
            server_socket.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Listener shutdown: {e}")
        try:
            server_socket.close()
        except OSError as e:
            logger.error(f"Error closing socket: {e}")

    def _drain(self, timeout: float):
        deadline = time.monotonic() + timeout
        with self._lock:
            threads = list(self.client_threads)
        for t in threads:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            t.join(remaining)

        pending = sum(1 for t in threads if t.is_alive())
        if pending:
            logger.warning(f"{pending} connection(s) still in flight after {timeout}s")

    def stats(self) -> dict:
        with self._lock:
            return {
                'running': self.running,
                'port': self.bound_port,
                'uptime': int(time.time() - self.started_at) if self.started_at else 0,
                'total_connections': self.total_connections,
                'active_connections': self.active_connections,
                'blocked_requests': self.blocked_requests,
            }


class ServerHandle:
    """
    A running listener, returned by ``start_server`` and passed to
    ``stop_server``.
    """

    def __init__(self, server: FirewallProxyServer, thread: threading.Thread):
        self.server = server
        self.thread = thread

    @property
    def port(self) -> Optional[int]:
        return self.server.bound_port

    @property
    def running(self) -> bool:
        return self.server.running and self.thread.is_alive()

    def stop(self, drain_timeout: Optional[float] = None):
        self.server.stop(drain_timeout=drain_timeout)

    def join(self, timeout: Optional[float] = None):
        self.thread.join(timeout)

    def __repr__(self):
        return f"ServerHandle(port={self.port}, running={self.running})"


def start_server(port: int, host: Optional[str] = None, config: Optional[ProxyConfig] = None, **kwargs) -> ServerHandle:
    """
    Start a firewall server on ``port``.

    A bind failure is logged and reported through ``handle.running``
    instead of being raised.
    """
    server = FirewallProxyServer(listening_addr=host, listening_port=port, config=config, **kwargs)
    return server.start()


def stop_server(handle: Optional[ServerHandle], drain_timeout: Optional[float] = None):
    if handle is None:
        return
    handle.stop(drain_timeout=drain_timeout)
