"""Abstract key-value storage interface."""

from abc import ABC, abstractmethod


class KeyValueStore(ABC):
    """Abstract base class defining the persistence contract.

    Values are whole serialized documents; a write replaces the previous
    value for its key. Implementations with bounded capacity raise
    StorageQuotaExceededError instead of writing, leaving the old value in
    place. Any other failure is raised as StorageError.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. No-op if it does not exist."""
