import logging
import socket
import threading
from concurrent.futures import Future
from typing import Callable, Optional

from firewall.config import ENCODING

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0


class ProxyClient:
    """
    Sends a URL to a firewall server and reads back the answer.

    Attributes:
        connect_timeout (float): Seconds allowed to connect to the server
        read_timeout (float): Seconds allowed between reads, None waits for
            the server to close the connection
        encoding (str): Text encoding of the line protocol
    """

    def __init__(
        self,
        connect_timeout: Optional[float] = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: Optional[float] = None,
        encoding: str = ENCODING
    ):
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.encoding = encoding

    def request(self, address: str, port: int, url: str) -> str:
        """
        Send one request and block until the server closes the connection.

        Args:
            address (str): Server host name or IP
            port (int): Server port
            url (str): The URL to request

        Returns:
            str: The server's answer with trailing whitespace removed, or
            ``"Client Error: <cause>"`` if the exchange failed
        """
        try:
            with socket.create_connection((address, port), timeout=self.connect_timeout) as sock:
                sock.settimeout(self.read_timeout)
                sock.sendall(f"{url}\n".encode(self.encoding))

                with sock.makefile('r', encoding=self.encoding, errors='replace') as reader:
                    lines = [line.rstrip('\n') for line in reader]

            return "\n".join(lines).rstrip()
        except Exception as e:
            logger.error(f"Client Error talking to {address}:{port}: {e}")
            return f"Client Error: {e}"

    def send_request(
        self,
        address: str,
        port: int,
        url: str,
        on_result: Optional[Callable[[str], None]] = None
    ) -> Future:
        """
        Send one request on a background thread.

        ``on_result`` is called exactly once, on that background thread, with
        the same string the returned future resolves to. Callers that need the
        result on a particular thread must hand it over themselves.
        """
        future = Future()
        future.set_running_or_notify_cancel()
        if on_result is not None:
            future.add_done_callback(lambda f: on_result(f.result()))

        def worker():
            future.set_result(self.request(address, port, url))

        threading.Thread(target=worker, name=f"firewall-client-{address}:{port}", daemon=True).start()
        return future


def send_request(address: str, port: int, url: str, on_result: Optional[Callable[[str], None]] = None) -> Future:
    return ProxyClient().send_request(address, port, url, on_result)
