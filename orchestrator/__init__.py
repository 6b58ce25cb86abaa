"""
Orchestration package for crawling folder and wiki hierarchies.

The crawl orchestrator lists containers and hands every leaf document or
file to a bounded worker pool that surfaces the first failure.
"""

from .crawl_orchestrator import CrawlOrchestrator, CrawlRoot
from .worker_pool import WorkerPool

__all__ = [
    'CrawlOrchestrator',
    'CrawlRoot',
    'WorkerPool'
]
