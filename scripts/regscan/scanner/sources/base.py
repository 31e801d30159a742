"""
Base class for scan source adapters.
"""

from abc import ABC, abstractmethod

from regscan.scanner.models import Source, SourceFetch


class SourceAdapter(ABC):
    """Abstract base class for article sources.

    Each adapter fetches candidate items from a single configured source and
    returns a SourceFetch carrying the items and the source's health record.
    Adapters never raise; failures are reported through the result.
    """

    def __init__(self, source: Source) -> None:
        self.source = source

    @property
    def name(self) -> str:
        """Human-readable source name."""
        return self.source.name

    @property
    def source_id(self) -> str:
        """Identifier used when selecting sources for a scan."""
        return self.source.identity

    @property
    def kind(self) -> str:
        return self.source.type

    @abstractmethod
    def fetch(self, days: int = 14) -> SourceFetch:
        """Fetch candidate items from this source.

        Args:
            days: Number of days to look back.

        Returns:
            SourceFetch with items, health and an optional error message.
        """
        ...
