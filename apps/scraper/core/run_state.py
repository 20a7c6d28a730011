"""
Run-scoped state: search progress, deduplication and statistics.

Everything here lives on an explicit RunContext passed to the components that
need it; nothing is module-level.
"""
import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set, Tuple

from pipeline.models import JobRecord

if TYPE_CHECKING:
    from app.config import ScraperInput, Settings
    from core.storage import Dataset, KeyValueStore
    from pipeline.snapshot import DiagnosticsRecorder

logger = logging.getLogger(__name__)


def identity_key(record: JobRecord) -> str:
    """URL when present, else title + company + location."""
    if record.url:
        return record.url
    return "|".join(part.strip().lower() for part in (record.title, record.company, record.location))


@dataclass
class RunStatistics:
    """Counts and timings for the final report."""
    pages_processed: int = 0
    pages_blocked: int = 0
    pages_empty: int = 0
    pages_failed: int = 0
    records_emitted: int = 0
    duplicates_dropped: int = 0
    enrichment_enriched: int = 0
    enrichment_blocked: int = 0
    enrichment_failed: int = 0
    extraction_method: str = "None"
    escalated_to_browser: bool = False
    modes_used: List[str] = field(default_factory=list)
    method_counts: Dict[str, int] = field(default_factory=lambda: defaultdict(int))
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    def record_method(self, method: str):
        self.method_counts[method] += 1

    def record_mode(self, mode: str):
        if mode not in self.modes_used:
            self.modes_used.append(mode)

    def finish(self):
        self.finished_at = time.time()

    @property
    def duration_seconds(self) -> int:
        end = self.finished_at or time.time()
        return int(round(end - self.started_at))

    def to_summary(self) -> Dict:
        return {
            'totalJobsScraped': self.records_emitted,
            'pagesProcessed': self.pages_processed,
            'pagesBlocked': self.pages_blocked,
            'pagesEmpty': self.pages_empty,
            'pagesFailed': self.pages_failed,
            'duplicatesDropped': self.duplicates_dropped,
            'extractionMethod': self.extraction_method,
            'methodCounts': dict(self.method_counts),
            'retrievalModes': list(self.modes_used),
            'escalatedToBrowser': self.escalated_to_browser,
            'enrichment': {
                'enriched': self.enrichment_enriched,
                'blocked': self.enrichment_blocked,
                'failed': self.enrichment_failed,
            },
            'startedAt': datetime.fromtimestamp(self.started_at, timezone.utc).isoformat(),
            'durationSeconds': self.duration_seconds,
        }


class SearchState:
    """
    Seen-identity set and emitted count.

    Mutated only through admit() and release(), which hold a lock so
    concurrent page-visit tasks cannot interleave a read-modify-write.
    """

    def __init__(self):
        self._seen: Set[str] = set()
        self._lock = asyncio.Lock()
        self._pages: Set[int] = set()
        self.total_emitted = 0
        self.method = "None"

    @property
    def pages_processed(self) -> int:
        """Distinct listing-page positions processed, whichever mode visited them."""
        return len(self._pages)

    def mark_page(self, position: int):
        self._pages.add(position)

    def budget_left(self, max_jobs: int) -> Optional[int]:
        """Remaining record budget, or None when unbounded."""
        if max_jobs <= 0:
            return None
        return max(0, max_jobs - self.total_emitted)

    def budget_reached(self, max_jobs: int) -> bool:
        return max_jobs > 0 and self.total_emitted >= max_jobs

    async def admit(self, records: Iterable[JobRecord], max_jobs: int = 0) -> Tuple[List[JobRecord], int]:
        """
        Drop already-seen records and truncate to the remaining budget.

        Returns:
            (admitted records in input order, number of duplicates dropped)
        """
        async with self._lock:
            admitted: List[JobRecord] = []
            duplicates = 0
            remaining = self.budget_left(max_jobs)
            for record in records:
                if remaining is not None and len(admitted) >= remaining:
                    break
                key = identity_key(record)
                if key in self._seen:
                    duplicates += 1
                    continue
                self._seen.add(key)
                admitted.append(record)
            self.total_emitted += len(admitted)
            return admitted, duplicates

    async def release(self, records: Iterable[JobRecord]):
        """Undo admit() for records that were never written."""
        async with self._lock:
            for record in records:
                key = identity_key(record)
                if key in self._seen:
                    self._seen.discard(key)
                    self.total_emitted -= 1


@dataclass
class RunContext:
    """Explicit per-run context handed to every component."""
    input: "ScraperInput"
    settings: "Settings"
    dataset: "Dataset"
    store: "KeyValueStore"
    diagnostics: "DiagnosticsRecorder"
    state: SearchState = field(default_factory=SearchState)
    stats: RunStatistics = field(default_factory=RunStatistics)
