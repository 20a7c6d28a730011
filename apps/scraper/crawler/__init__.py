"""
Listing-page retrieval: HTTP and browser crawlers, detail enrichment and the
orchestrator that decides between them.
"""

from .browser_crawler import BrowserCrawler
from .enrichment import DetailEnricher
from .http_crawler import HttpCrawler
from .orchestrator import RetrievalOrchestrator

__all__ = ['BrowserCrawler', 'DetailEnricher', 'HttpCrawler', 'RetrievalOrchestrator']
