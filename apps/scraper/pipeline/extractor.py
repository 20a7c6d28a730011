"""
Strategy chain.

Runs extraction strategies in fixed priority order against one page:
1. Intercepted API traffic (browser mode only)
2. Embedded hydration state
3. JSON-LD structured data
4. DOM cards / job-link harvest

The first strategy whose candidates normalize to at least one record wins;
later strategies are not run.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from .base import ExtractionStrategy
from .dom import DomStrategy
from .hydration import HydrationStrategy
from .jsonld import JsonLdStrategy
from .models import JobRecord, PageSource
from .network import NetworkStrategy
from .normalizer import normalize_all

logger = logging.getLogger(__name__)

METHOD_NONE = "None"


@dataclass
class ChainResult:
    """Outcome of running the chain on one page."""
    method: str = METHOD_NONE
    records: List[JobRecord] = field(default_factory=list)
    attempted: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.records


class StrategyChain:
    """Ordered list of strategies; earliest success wins."""

    def __init__(self, strategies: Sequence[ExtractionStrategy]):
        self.strategies = list(strategies)

    def run(self, page: PageSource) -> ChainResult:
        result = ChainResult()
        for strategy in self.strategies:
            result.attempted.append(strategy.label)
            candidates = strategy.extract(page)
            if not candidates:
                continue
            records = normalize_all(candidates, strategy.source, base_url=page.url)
            if records:
                logger.info(f"[extractor] {strategy.label} produced {len(records)} record(s) for {page.url}")
                result.method = strategy.label
                result.records = records
                return result
            logger.debug(f"[extractor] {strategy.label} candidates normalized to nothing, trying next strategy")

        logger.warning(f"[extractor] No strategy produced records for {page.url} (tried {', '.join(result.attempted)})")
        return result

    def labels(self) -> List[str]:
        return [s.label for s in self.strategies]


def build_strategy_chain(include_network: bool = True) -> StrategyChain:
    """
    Build the default chain. HTTP-mode pages have no live traffic, so the
    intercepted-traffic strategy is left out there.
    """
    strategies: List[ExtractionStrategy] = []
    if include_network:
        strategies.append(NetworkStrategy())
    strategies.extend([HydrationStrategy(), JsonLdStrategy(), DomStrategy()])
    return StrategyChain(strategies)
