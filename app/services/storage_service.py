"""
Storage service — removal of stored media files.

Only deletion is modelled here; uploads are handled outside this
application. ``remove_assets`` is best-effort: each key is attempted
independently and the outcome of every attempt is reported in a
``BatchResult`` rather than raised.
"""

import logging
import os
from dataclasses import dataclass, field

from flask import current_app

logger = logging.getLogger(__name__)


# =========================================================================
# Result containers
# =========================================================================


@dataclass
class ItemOutcome:
    """Result of one removal attempt."""

    key: str
    ok: bool
    error: str | None = None


@dataclass
class BatchResult:
    """Per-item outcomes of a best-effort batch operation."""

    outcomes: list[ItemOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.ok)

    @property
    def failed_keys(self) -> list[str]:
        return [outcome.key for outcome in self.outcomes if not outcome.ok]

    def to_dict(self) -> dict:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failed_keys": self.failed_keys,
        }


# =========================================================================
# Backends
# =========================================================================


class LocalDiskStorage:
    """Files stored under a root folder, addressed by relative key."""

    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(root)

    def _path_for(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        # Keys must not escape the storage root.
        if os.path.commonpath([self.root, path]) != self.root:
            raise ValueError(f"Storage key '{key}' resolves outside the storage root.")
        return path

    def delete(self, key: str) -> None:
        """
        Remove one stored file. A file that is already gone counts as
        removed.

        Raises:
            OSError: If the file exists but cannot be removed.
            ValueError: If the key points outside the storage root.
        """
        path = self._path_for(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.debug("Storage key %s already absent", key)


def get_storage() -> LocalDiskStorage:
    """Return the storage backend configured for the current app."""
    return LocalDiskStorage(current_app.config["UPLOAD_FOLDER"])


def remove_assets(keys: list[str], storage=None) -> BatchResult:
    """
    Attempt to delete every key; never raise.

    Args:
        keys:    Storage keys to remove.
        storage: Backend with a ``delete(key)`` method. Defaults to the
                 configured backend.

    Returns:
        A BatchResult with one outcome per key.
    """
    storage = storage or get_storage()
    result = BatchResult()
    for key in keys:
        try:
            storage.delete(key)
            result.outcomes.append(ItemOutcome(key=key, ok=True))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.error("Failed to remove stored file %s: %s", key, exc)
            result.outcomes.append(ItemOutcome(key=key, ok=False, error=str(exc)))

    if result.failed:
        logger.warning(
            "Storage cleanup finished with %d failure(s) out of %d",
            result.failed,
            len(keys),
        )
    return result
