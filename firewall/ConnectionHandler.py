import logging
import socket
from typing import Optional, Tuple

from firewall.config import BLOCKED_MESSAGE, ENCODING, MAX_REQUEST_LINE
from firewall.FilterPolicy import FilterPolicy
from firewall.header import HandlerState, ProxyRequest, ProxyResponse
from firewall.UrlFetcher import UrlFetcher

logger = logging.getLogger(__name__)


class ConnectionHandler:
    """
    Serves exactly one accepted connection: one request line in, one
    response out, then close.

    Attributes:
        client_socket (socket): The accepted connection, owned by this handler
        client_address (tuple): Peer address of the connection
        filter_policy (FilterPolicy): Decides which URLs are blocked
        fetcher (UrlFetcher): Fetches URLs that are not blocked
        timeout (float): Read timeout on the request line, None waits forever
        max_line (int): Longest request line accepted, in characters
        state (HandlerState): Where the handler is in its single pass
    """

    def __init__(
        self,
        client_socket: socket.socket,
        client_address: Tuple[str, int],
        filter_policy: FilterPolicy,
        fetcher: UrlFetcher,
        timeout: Optional[float] = None,
        encoding: str = ENCODING,
        max_line: int = MAX_REQUEST_LINE
    ):
        self.client_socket = client_socket
        self.client_address = client_address
        self.filter_policy = filter_policy
        self.fetcher = fetcher
        self.timeout = timeout
        self.encoding = encoding
        self.max_line = max_line
        self.state = HandlerState.READ_REQUEST
        self.blocked = False

    def run(self):
        """
        Handle the connection. Errors are logged and never raised, and the
        socket is closed on every path.
        """
        peer = self._peer()
        try:
            self.client_socket.settimeout(self.timeout)

            request = self.read_request()
            if request is None:
                logger.debug(f"{peer} closed before sending a request")
                return

            logger.info(f"{peer} Processing request for: {request.requested_url}")
            self.state = HandlerState.PROCESS
            response = self.process(request)

            self.state = HandlerState.RESPOND_AND_CLOSE
            self.respond(response)

        except socket.timeout:
            if self.state is HandlerState.READ_REQUEST:
                logger.warning(f"{peer} timed out waiting for a request")
            else:
                logger.warning(f"{peer} timed out sending the response")
        except Exception as e:
            logger.error(f"{peer} Handler error: {e}")
        finally:
            self.state = HandlerState.RESPOND_AND_CLOSE
            self.close()

    def read_request(self) -> Optional[ProxyRequest]:
        """
        Read one line from the connection.

        Returns:
            ProxyRequest, or None when the peer closed without sending a line

        Raises:
            ValueError: The line is longer than ``max_line`` characters
        """
        with self.client_socket.makefile('r', encoding=self.encoding, errors='replace', newline='\n') as reader:
            line = reader.readline(self.max_line + 1)

        if not line:
            return None
        if len(line) > self.max_line and not line.endswith('\n'):
            raise ValueError(f"request line longer than {self.max_line} characters")
        return ProxyRequest(requested_url=line.rstrip('\r\n'))

    def process(self, request: ProxyRequest) -> ProxyResponse:
        is_blocked, reason = self.filter_policy.check(request.requested_url)
        if is_blocked:
            self.blocked = True
            logger.warning(f"Blocked {request.requested_url} - Reason: {reason}")
            return ProxyResponse(body=BLOCKED_MESSAGE)

        return ProxyResponse(body=self.fetcher.fetch(request.requested_url))

    def respond(self, response: ProxyResponse):
        self.client_socket.sendall(response.to_line().encode(self.encoding))

    def close(self):
        try:
            self.client_socket.close()
        except OSError as e:
            logger.error(f"Error closing client socket: {e}")

    def _peer(self) -> str:
        try:
            return f"{self.client_address[0]}:{self.client_address[1]}"
        except (IndexError, TypeError):
            return str(self.client_address)
