"""Repository layer for shared pipeline state.

Repositories persist the chronology and committed fingerprints in libSQL
so several workers (and restarts) see the same state.
"""

from coach_ledger.repositories.chronology_repo import ChronologyRepository
from coach_ledger.repositories.fingerprint_repo import SeenFingerprintRepository

__all__ = [
    "ChronologyRepository",
    "SeenFingerprintRepository",
]
