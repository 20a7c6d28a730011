"""
Base interface for extraction strategies.
"""
import logging
from abc import ABC, abstractmethod
from typing import List

from .models import PageSource, RawJobCandidate

logger = logging.getLogger(__name__)


class ExtractionStrategy(ABC):
    """
    Base class for extraction strategies.

    Each strategy reads one kind of raw source from a PageSource and returns
    job-like candidates for the normalizer. Strategies must not modify the
    source, and must never raise: parse failures mean "nothing found".
    """

    #: Label recorded as the extraction method when this strategy wins
    label: str = ""
    #: Source name passed to the normalizer
    source: str = ""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.source or self.__class__.__name__}")

    def extract(self, page: PageSource) -> List[RawJobCandidate]:
        """Run the strategy, converting any failure into an empty result."""
        try:
            candidates = self._extract(page)
        except Exception as e:
            self.logger.warning(f"[{self.source}] Extraction failed for {page.url}: {e}")
            return []
        if candidates:
            self.logger.debug(f"[{self.source}] {len(candidates)} candidate(s) from {page.url}")
        return candidates

    @abstractmethod
    def _extract(self, page: PageSource) -> List[RawJobCandidate]:
        pass

    def __repr__(self):
        return f"<{self.__class__.__name__}(label={self.label})>"
