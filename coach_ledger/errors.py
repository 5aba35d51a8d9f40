"""Exceptions raised across the resolution and ledger sync pipeline."""


class LedgerSyncError(Exception):
    """Base class for pipeline errors."""

    pass


class SourceUnavailable(LedgerSyncError):
    """Raised when a collaborator stays unreachable after all retries."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source} unavailable: {message}")


class LedgerConflict(LedgerSyncError):
    """Raised when ledger rows changed between read and write."""

    def __init__(self, partition: str, fingerprints: list[str]):
        self.partition = partition
        self.fingerprints = fingerprints
        super().__init__(
            f"Concurrent change in {partition!r} for {len(fingerprints)} row(s): "
            f"{', '.join(fingerprints[:5])}"
        )
