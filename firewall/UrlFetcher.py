import logging
from typing import Optional

import requests

from firewall.config import CONNECT_TIMEOUT, READ_TIMEOUT
from firewall.header import PendingFetch

logger = logging.getLogger(__name__)


class UrlFetcher:
    """
    Fetches a URL with a single HTTP GET and returns the outcome as text.

    Every failure is turned into a readable string, so ``fetch`` never raises.

    Attributes:
        connect_timeout (float): Seconds allowed to establish the connection
        read_timeout (float): Seconds allowed between bytes of the response
        max_body_bytes (int): Bytes of body kept, None keeps the whole body
        headers (dict): HTTP headers sent with every request
    """

    def __init__(
        self,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_timeout: float = READ_TIMEOUT,
        max_body_bytes: Optional[int] = None,
        headers: Optional[dict] = None
    ):
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_body_bytes = max_body_bytes
        self.headers = headers or {
            'User-Agent': 'FirewallProxy/1.0',
            'Accept': '*/*',
        }

    def fetch(self, url: str) -> str:
        """
        Fetch ``url`` and return its body.

        Args:
            url (str): The URL to GET

        Returns:
            str: The body on HTTP 200, ``"HTTP Error: <code>"`` on any other
            status, ``"Error fetching content: <cause>"`` when the request
            could not be made or timed out
        """
        pending = PendingFetch(
            url=url,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout
        )
        try:
            return self._get(pending)
        except requests.RequestException as e:
            logger.warning(f"Fetch failed for {url}: {e}")
            return f"Error fetching content: {e}"
        except Exception as e:
            logger.exception(f"Unexpected error fetching {url}")
            return f"Error fetching content: {e}"

    def _get(self, pending: PendingFetch) -> str:
        with requests.get(
            pending.url,
            headers=self.headers,
            timeout=(pending.connect_timeout, pending.read_timeout),
            stream=True
        ) as response:
            pending.status_code = response.status_code
            # Only an exact 200 counts as success
            if response.status_code != requests.codes.ok:
                logger.info(f"{pending.url} answered HTTP {response.status_code}")
                return f"HTTP Error: {response.status_code}"

            # requests falls back to ISO-8859-1 for text/* without a charset
            if 'charset' not in response.headers.get('Content-Type', '').lower():
                response.encoding = 'utf-8'

            if self.max_body_bytes is None:
                return response.text

            return self._read_capped(response)

    def _read_capped(self, response: requests.Response) -> str:
        body = bytearray()
        for chunk in response.iter_content(chunk_size=8192):
            body.extend(chunk)
            if len(body) >= self.max_body_bytes:
                logger.info(f"Body of {response.url} truncated to {self.max_body_bytes} bytes")
                del body[self.max_body_bytes:]
                break
        try:
            return body.decode(response.encoding, errors='replace')
        except LookupError:
            return body.decode('utf-8', errors='replace')
