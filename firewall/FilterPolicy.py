from typing import Iterable, Optional, Tuple

from firewall.config import BLOCKED_TOKENS


class FilterPolicy:
    """
    Blocks requested URLs that contain any of the configured tokens.

    Matching is textual and case-insensitive, so any string is valid input,
    including empty or malformed URLs.
    """

    def __init__(self, blocked_tokens: Optional[Iterable[str]] = None):
        tokens = BLOCKED_TOKENS if blocked_tokens is None else blocked_tokens
        # Normalize once to lower case for case-insensitive matching
        self.blocked_tokens = tuple(t.lower() for t in tokens if t)

    def check(self, url: str) -> Tuple[bool, str]:
        """
        Check a URL against the blocklist.

        Args:
            url (str): The requested URL, as received

        Returns:
            tuple[bool, str]: Whether the URL is blocked, and why
        """
        lowered = url.lower()
        for token in self.blocked_tokens:
            if token in lowered:
                return True, f"Contains '{token}'"
        return False, "Not Blocked"

    def is_blocked(self, url: str) -> bool:
        return self.check(url)[0]
