"""Exception hierarchy for the indexing and retrieval pipeline."""

from typing import Optional


class VaultRagError(Exception):
    """Base error for all vaultrag exceptions."""


class ConfigurationError(VaultRagError):
    """Raised when a required dependency or credential is missing."""


class UpstreamError(VaultRagError):
    """Raised when an upstream service fails or returns an unusable response."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StoreError(VaultRagError):
    """Raised when a persistence operation on the index store fails."""


class NotFoundError(VaultRagError):
    """Raised when a requested document does not exist."""
