"""
Firewall Proxy configuration.

Defaults live on ``ProxyConfig``; a JSON file can override any of them and
command line flags override the file.
"""

import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

# Configuration
LISTENING_ADDR = '0.0.0.0'
LISTENING_PORT = 8080
BACKLOG = 100
ACCEPT_TIMEOUT = 1.0
BLOCKED_TOKENS = ("bad",)
BLOCKED_MESSAGE = "URL blocked by firewall"
CONNECT_TIMEOUT = 5.0
READ_TIMEOUT = 5.0
ENCODING = 'utf-8'
MAX_REQUEST_LINE = 8192
LOG_FILE = 'logs/firewall.log'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class ProxyConfig:
    """
    Settings shared by the server, the handlers and the client.

    Attributes:
        host (str): Address the server listens on
        port (int): Port the server listens on (0 lets the OS pick)
        backlog (int): Listen queue length
        accept_timeout (float): Poll interval of the accept loop in seconds
        blocked_tokens (tuple): Substrings that block a URL, case-insensitive
        connect_timeout (float): Upstream connect timeout in seconds
        read_timeout (float): Upstream read timeout in seconds
        client_timeout (float): Read timeout on accepted connections, None waits forever
        max_request_line (int): Longest request line accepted, in characters
        max_body_bytes (int): Cap on fetched body size, None reads everything
        encoding (str): Text encoding of the line protocol
        log_file (str): Rotating log file, None disables file logging
        log_level (str): Root log level name
    """
    host: str = LISTENING_ADDR
    port: int = LISTENING_PORT
    backlog: int = BACKLOG
    accept_timeout: float = ACCEPT_TIMEOUT
    blocked_tokens: Tuple[str, ...] = field(default_factory=lambda: BLOCKED_TOKENS)
    connect_timeout: float = CONNECT_TIMEOUT
    read_timeout: float = READ_TIMEOUT
    client_timeout: Optional[float] = None
    max_request_line: int = MAX_REQUEST_LINE
    max_body_bytes: Optional[int] = None
    encoding: str = ENCODING
    log_file: Optional[str] = LOG_FILE
    log_level: str = 'INFO'

    def merged(self, overrides: Dict[str, Any]) -> "ProxyConfig":
        """Return a copy with every non-None value of ``overrides`` applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values = {k: v for k, v in overrides.items() if v is not None}
        if 'blocked_tokens' in values:
            values['blocked_tokens'] = tuple(values['blocked_tokens'])
        return replace(self, **values)


def load_config(path: Optional[str] = None) -> ProxyConfig:
    """
    Load configuration from a JSON file on top of the defaults.

    Args:
        path: JSON file to read, None returns the defaults

    Returns:
        ProxyConfig

    Raises:
        OSError: The file could not be read
        ValueError: The file is not a JSON object or names unknown keys
    """
    config = ProxyConfig()
    if path is None:
        return config

    config_path = Path(path)
    with open(config_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"{config_path} must contain a JSON object")

    logger.info(f"Loaded configuration from {config_path}")
    return config.merged(data)
