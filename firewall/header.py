# =============================================================================
# Core Types
# =============================================================================

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class HandlerState(Enum):
    READ_REQUEST = "read_request"
    PROCESS = "process"
    RESPOND_AND_CLOSE = "respond_and_close"


@dataclass
class ProxyRequest:
    requested_url: str


@dataclass
class ProxyResponse:
    body: str

    def to_line(self) -> str:
        return self.body + "\n"


@dataclass
class PendingFetch:
    url: str
    connect_timeout: float
    read_timeout: float
    status_code: Optional[int] = None
