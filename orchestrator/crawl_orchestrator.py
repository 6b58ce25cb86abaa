"""
Crawl orchestrator for exporting whole drive folders and wiki spaces.

Containers are listed synchronously, depth first; every leaf becomes a
CrawlJob that runs on a bounded worker pool. After the listing finishes
the pool is drained and the first task failure is raised.
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from config_loader import get_nested
from exporters.document_exporter import DocumentExporter
from exporters.resource_manager import sanitize_filename
from fetchers.base_fetcher import BaseFetcher, FetcherError, RemoteFetchError
from logger import ProgressTracker, log_section
from models import FILE_OBJECT_TYPES, CrawlJob, JobKind
from url_parser import validate_folder_url, validate_wiki_url
from .worker_pool import WorkerPool

PathLike = Union[str, Path]


@dataclass
class CrawlRoot:
    """Where a crawl starts: a drive folder token or a wiki space id."""

    kind: str
    token: str

    FOLDER = 'folder'
    WIKI = 'wiki'


class CrawlOrchestrator:
    """Walks a folder or wiki hierarchy and exports every leaf concurrently."""

    def __init__(
        self,
        fetcher: BaseFetcher,
        exporter: DocumentExporter,
        max_concurrency: int = 10,
        cancel_on_error: bool = True,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize crawl orchestrator.

        Args:
            fetcher: Fetcher used for listing containers
            exporter: Exporter run once per leaf
            max_concurrency: Maximum number of leaf tasks in flight
            cancel_on_error: Skip pending tasks after the first failure
            logger: Optional logger instance
        """
        self.fetcher = fetcher
        self.exporter = exporter
        self.max_concurrency = max_concurrency
        self.cancel_on_error = cancel_on_error
        self.logger = logger or logging.getLogger('feishu_docs_exporter.orchestrator.crawl')

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        fetcher: BaseFetcher,
        exporter: DocumentExporter,
        logger: Optional[logging.Logger] = None
    ) -> 'CrawlOrchestrator':
        return cls(
            fetcher,
            exporter,
            max_concurrency=get_nested(config, 'crawl.max_concurrency', 10),
            cancel_on_error=get_nested(config, 'crawl.cancel_on_error', True),
            logger=logger
        )

    def walk_folder(self, url: str, output_dir: PathLike) -> Dict[str, Any]:
        """
        Export every document and file below a drive folder.

        Args:
            url: Drive folder URL
            output_dir: Local directory mirroring the folder

        Returns:
            Crawl statistics

        Raises:
            URLValidationError: If the URL is not a folder URL
            FetcherError: On listing failure or the first task failure
        """
        folder_token = validate_folder_url(url)
        self.logger.info(f"Captured folder token: {folder_token}")
        return self.walk(CrawlRoot(CrawlRoot.FOLDER, folder_token), Path(output_dir))

    def walk_wiki(self, url: str, output_dir: PathLike) -> Dict[str, Any]:
        """
        Export every document and file of a wiki space.

        The URL may name the space (``/wiki/settings/<space_id>``) or any
        node inside it; the whole space is exported either way, into a
        directory named after the space.

        Args:
            url: Wiki space or wiki node URL
            output_dir: Parent directory of the space directory

        Returns:
            Crawl statistics
        """
        _, token = validate_wiki_url(url)

        try:
            self.fetcher.fetch_wiki_space_name(token)
            space_id = token
        except FetcherError:
            self.logger.debug(f"{token} is not a space id, resolving it as a wiki node")
            node = self.fetcher.fetch_wiki_node(token)
            if not node.space_id:
                raise RemoteFetchError(f"Wiki node {token} does not belong to a space")
            space_id = node.space_id

        space_name = self.fetcher.fetch_wiki_space_name(space_id)
        if not space_name:
            raise RemoteFetchError(f"Failed to get the name of wiki space {space_id}")

        destination = Path(output_dir) / sanitize_filename(space_name)
        self.logger.info(f"Exporting wiki space '{space_name}' ({space_id}) to {destination}")
        return self.walk(CrawlRoot(CrawlRoot.WIKI, space_id), destination)

    def walk(self, root: CrawlRoot, destination: Path) -> Dict[str, Any]:
        """
        List the hierarchy under root and run one export task per leaf.

        Args:
            root: Folder token or wiki space id to start from
            destination: Local directory for the root's children

        Returns:
            Crawl statistics (submitted, succeeded, failed, skipped)

        Raises:
            FetcherError: If listing fails; otherwise the first task error
        """
        log_section(f"Crawl {root.kind}: {root.token}")

        with ProgressTracker(item_type='leaves') as tracker:
            pool = WorkerPool(
                max_workers=self.max_concurrency,
                cancel_on_error=self.cancel_on_error,
                tracker=tracker,
                logger=self.logger
            )
            with pool:
                if root.kind == CrawlRoot.FOLDER:
                    self._walk_folder(pool, root.token, destination)
                elif root.kind == CrawlRoot.WIKI:
                    self._walk_wiki(pool, root.token, None, destination)
                else:
                    raise ValueError(f"Unknown crawl root kind: {root.kind}")

        stats = dict(pool.stats)
        stats['destination'] = str(destination)
        self.logger.info(
            f"Crawl complete: {stats['succeeded']} exported, "
            f"{stats['failed']} failed, {stats['skipped']} skipped"
        )
        return stats

    def _walk_folder(self, pool: WorkerPool, folder_token: str, destination: Path) -> None:
        if pool.cancelled:
            return

        for entry in self.fetcher.fetch_folder_children(folder_token):
            if entry.type == 'folder':
                self._walk_folder(pool, entry.token, destination / sanitize_filename(entry.name))
            elif entry.type == 'docx':
                self._schedule(pool, CrawlJob(JobKind.DOCUMENT, entry.token, entry.name, entry.type, str(destination)))
            elif entry.type in FILE_OBJECT_TYPES:
                self._schedule(pool, CrawlJob(JobKind.FILE, entry.token, entry.name, entry.type, str(destination)))
            else:
                self.logger.debug(f"Skipping '{entry.name}' of unsupported type '{entry.type}'")

    def _walk_wiki(
        self,
        pool: WorkerPool,
        space_id: str,
        parent_token: Optional[str],
        destination: Path
    ) -> None:
        if pool.cancelled:
            return

        for node in self.fetcher.fetch_wiki_children(space_id, parent_token):
            if node.obj_type == 'docx':
                self._schedule(pool, CrawlJob(JobKind.DOCUMENT, node.obj_token, node.title, node.obj_type, str(destination)))
            elif node.obj_type in FILE_OBJECT_TYPES:
                self._schedule(pool, CrawlJob(JobKind.FILE, node.obj_token, node.title, node.obj_type, str(destination)))
            else:
                self.logger.warning(f"Skipping wiki node '{node.title}' of unsupported type '{node.obj_type}'")

            if node.has_child:
                self._walk_wiki(pool, space_id, node.node_token, destination / sanitize_filename(node.title))

    def _schedule(self, pool: WorkerPool, job: CrawlJob) -> None:
        self.logger.debug(f"Scheduling {job.kind.value} '{job.label}' -> {job.output_dir}")
        pool.submit(lambda cancel_event: self._run_job(job, cancel_event), job.label)

    def _run_job(self, job: CrawlJob, cancel_event: threading.Event) -> Path:
        if job.kind == JobKind.DOCUMENT:
            return self.exporter.export_document(job.token, job.output_dir, cancel_event)
        return self.exporter.export_file(job.token, job.title, job.obj_type, job.output_dir, cancel_event)
