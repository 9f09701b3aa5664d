"""
Ephemeral challenge registry.

Holds the challenge handed to an authenticator between "begin" and
"complete" of a ceremony. Entries are keyed by (subject_id, purpose),
expire after a TTL and are removed on first consumption, so a captured
assertion cannot be replayed against the same entry.
"""

import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from . import config
from .logging_config import audit_log
from .util import b64url_encode


@dataclass
class ChallengeEntry:
    challenge: str
    expires_at: float


class ChallengeRegistry:
    """
    Thread-safe, TTL-bounded, single-use challenge store.

    Issuing again for the same (subject_id, purpose) replaces the previous
    challenge.
    """

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time
    ):
        self._ttl = ttl_seconds if ttl_seconds is not None else config.CHALLENGE_TTL_SECONDS
        if self._ttl <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._clock = clock
        self._entries: Dict[Tuple[str, str], ChallengeEntry] = {}
        self._lock = threading.Lock()

    def issue(self, subject_id: str, purpose: str, challenge: Optional[str] = None) -> str:
        """
        Register a challenge for (subject_id, purpose).

        Args:
            subject_id: User or session the challenge belongs to
            purpose: Ceremony name, e.g. "register", "authenticate", "sign"
            challenge: Challenge to store; a random 32-byte base64url value if None

        Returns:
            The stored challenge
        """
        if challenge is None:
            challenge = b64url_encode(secrets.token_bytes(32))
        expires_at = self._clock() + self._ttl

        with self._lock:
            self._evict_expired(expires_at - self._ttl)
            self._entries[(subject_id, purpose)] = ChallengeEntry(challenge, expires_at)

        audit_log.challenge_issued(subject_id, purpose, expires_at)
        return challenge

    def consume(self, subject_id: str, purpose: str) -> Optional[str]:
        """
        Remove and return the challenge, or None if absent or expired.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.pop((subject_id, purpose), None)

        found = entry is not None and entry.expires_at > now
        audit_log.challenge_consumed(subject_id, purpose, found)
        return entry.challenge if found else None

    def peek(self, subject_id: str, purpose: str) -> Optional[str]:
        """Return the live challenge without consuming it."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get((subject_id, purpose))
            if entry is None or entry.expires_at <= now:
                return None
            return entry.challenge

    def cleanup_expired(self) -> int:
        """
        Evict expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            return self._evict_expired(now)

    def _evict_expired(self, now: float) -> int:
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
