"""Content-addressed fingerprints and the committed-fingerprint index."""

import asyncio
import hashlib
from typing import Protocol

from coach_ledger.models.identity import ResolvedIdentity

# ASCII unit separator; never appears in names or dates
FIELD_SEPARATOR = "\x1f"
FINGERPRINT_LENGTH = 32


def _normalize(value: object) -> str:
    return " ".join(str(value).split()).lower()


def compute_key(identity: ResolvedIdentity, external_id: str | None = None) -> str:
    """Stable key for the real-world session an identity describes.

    Fields are normalized (trimmed, whitespace collapsed, lowercased) and
    emitted as ``name=value`` pairs in sorted name order, so casing,
    whitespace and field order never change the key.

    Args:
        identity: Resolved identity
        external_id: Upstream recording ID, included when present

    Returns:
        32-character hex digest
    """
    fields: dict[str, str] = {
        "coach": _normalize(identity.coach),
        "student": _normalize(identity.student),
        "week_number": _normalize(identity.week_number),
        "date": identity.date.isoformat() if identity.date else "",
    }
    if external_id and external_id.strip():
        fields["external_id"] = _normalize(external_id)

    material = FIELD_SEPARATOR.join(f"{name}={fields[name]}" for name in sorted(fields))
    return hashlib.sha256(material.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def scoped(partition: str, fingerprint: str) -> str:
    """Key for a fingerprint within one ledger partition."""
    return f"{partition}{FIELD_SEPARATOR}{fingerprint}"


class SeenStore(Protocol):
    """Set of committed scoped fingerprints."""

    async def contains(self, key: str) -> bool: ...

    async def add(self, key: str) -> None: ...


class InMemorySeenStore:
    """Process-local seen set."""

    def __init__(self) -> None:
        self._keys: set[str] = set()

    async def contains(self, key: str) -> bool:
        return key in self._keys

    async def add(self, key: str) -> None:
        self._keys.add(key)

    def __len__(self) -> int:
        return len(self._keys)


class FingerprintIndex:
    """Tracks which fingerprints have been committed to the ledger.

    The store is shared by all workers; access goes through one lock.
    """

    def __init__(self, store: SeenStore | None = None):
        self._store = store if store is not None else InMemorySeenStore()
        self._lock = asyncio.Lock()

    @staticmethod
    def compute_key(identity: ResolvedIdentity, external_id: str | None = None) -> str:
        return compute_key(identity, external_id)

    async def has_seen(self, key: str) -> bool:
        async with self._lock:
            return await self._store.contains(key)

    async def mark_seen(self, key: str) -> None:
        async with self._lock:
            await self._store.add(key)
