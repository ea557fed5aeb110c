"""Abstract store interface.

The CLI depends on BaseStore, not on a concrete backend, so the record
location and format can change without touching the review workflow.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prsift_store.models import ReviewRecord


class BaseStore(ABC):
    """Persistence for review records, one record per pull request."""

    @abstractmethod
    def save(self, record: ReviewRecord) -> str:
        """Persist a review record, replacing any earlier one for the same PR.

        Returns a human-readable location of the saved record.
        """

    @abstractmethod
    def load(self, pr_number: int) -> ReviewRecord | None:
        """Return the record for a PR, or None if none was saved."""

    @abstractmethod
    def list_reviews(self) -> list[ReviewRecord]:
        """Return every saved record, oldest review first.

        Returns an empty list if no reviews exist.
        """

    def close(self) -> None:
        """Release any resources held by the store.

        Default is a no-op so callers can always call close() safely.
        """
