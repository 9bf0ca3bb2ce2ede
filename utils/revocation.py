"""
In-memory registry of revoked (logged out / superseded) access tokens.

Entries are never evicted and are lost on restart.
"""
from __future__ import annotations

import threading


class TokenRevocationRegistry:
    """Thread-safe set of opaque token strings."""

    def __init__(self):
        self._lock = threading.Lock()
        self._tokens: set[str] = set()

    def revoke(self, token: str) -> None:
        """Add a token. Revoking twice is a no-op."""
        if not token:
            return
        with self._lock:
            self._tokens.add(token)

    def is_revoked(self, token: str) -> bool:
        with self._lock:
            return token in self._tokens

    def __contains__(self, token: str) -> bool:
        return self.is_revoked(token)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)
