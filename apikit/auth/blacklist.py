"""
Token blacklist - in-memory revocation list.

Revocations do not survive a restart.
"""

from typing import Iterator, List
import logging
import threading

logger = logging.getLogger("apikit.auth.jwt")


class TokenBlacklist:
    """Thread-safe set of revoked raw tokens."""

    def __init__(self):
        self._tokens: set[str] = set()
        self._lock = threading.Lock()

    def add(self, token: str) -> None:
        if not token:
            return
        with self._lock:
            self._tokens.add(token)
        logger.info("Token added to blacklist")

    def remove(self, token: str) -> bool:
        """Un-revoke ``token``. Returns whether it was present."""
        with self._lock:
            if token in self._tokens:
                self._tokens.discard(token)
                removed = True
            else:
                removed = False
        if removed:
            logger.info("Token removed from blacklist")
        return removed

    def clear(self) -> int:
        """Drop every entry and return how many there were."""
        with self._lock:
            count = len(self._tokens)
            self._tokens.clear()
        logger.info("Token blacklist cleared (%d tokens)", count)
        return count

    def contains(self, token: str) -> bool:
        with self._lock:
            return token in self._tokens

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.contains(token)

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._tokens)

    def __len__(self) -> int:
        return self.size

    def snapshot(self) -> List[str]:
        with self._lock:
            return list(self._tokens)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())
