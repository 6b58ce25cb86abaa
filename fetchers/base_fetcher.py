"""Abstract base fetcher interface and common functionality."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from models import Block, BlockPage, DocumentMeta, DriveFile, Resource, WikiNode


class FetcherError(Exception):
    """Base exception for fetcher-related errors."""
    pass


class RemoteFetchError(FetcherError):
    """Listing, pagination or resource download failed on the remote side."""
    pass


class UnsupportedDocumentError(FetcherError):
    """The document type cannot be exported (e.g. legacy 'docs' documents)."""
    pass


class BaseFetcher(ABC):
    """Capability interface over the remote document store.

    Implementations provide block, node and resource retrieval; everything
    built on top (rendering, crawling, exporting) only talks to this class.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, logger=None):
        """
        Initialize base fetcher with configuration and logger.

        Args:
            config: Configuration dictionary
            logger: Logger instance (optional, uses module logger if not provided)
        """
        self.config = config or {}
        self.logger = logger or logging.getLogger('feishu_docs_exporter.fetcher')

    @abstractmethod
    def fetch_document(self, document_id: str) -> DocumentMeta:
        """Fetch the descriptor of a docx document."""
        pass

    @abstractmethod
    def fetch_blocks(self, document_id: str, page_token: Optional[str] = None) -> BlockPage:
        """
        Fetch one page of a document's flat block list.

        Args:
            document_id: Document id
            page_token: Continuation token from the previous page, None for the first

        Returns:
            BlockPage with the blocks and the next page token
        """
        pass

    @abstractmethod
    def fetch_wiki_node(self, token: str) -> WikiNode:
        """Resolve a wiki node token."""
        pass

    @abstractmethod
    def fetch_wiki_space_name(self, space_id: str) -> str:
        pass

    @abstractmethod
    def fetch_wiki_children(self, space_id: str, parent_token: Optional[str] = None) -> List[WikiNode]:
        """
        List the child nodes of a wiki node (or the space root).

        Args:
            space_id: Wiki space id
            parent_token: Parent node token, None for the top level

        Returns:
            All children, pagination already resolved
        """
        pass

    @abstractmethod
    def fetch_folder_children(self, folder_token: str) -> List[DriveFile]:
        """List every entry of a drive folder."""
        pass

    @abstractmethod
    def fetch_resource(self, token: str) -> Resource:
        """Download a media resource (image, attachment) embedded in a document."""
        pass

    @abstractmethod
    def fetch_file(self, token: str) -> Resource:
        """Download a standalone drive file."""
        pass

    @abstractmethod
    def fetch_sheet_values(self, token: str) -> List[List[str]]:
        """Fetch an embedded sheet as rows of cell strings."""
        pass

    @abstractmethod
    def fetch_bitable_values(self, token: str) -> List[List[str]]:
        """Fetch an embedded bitable as a header row plus record rows."""
        pass

    def fetch_all_blocks(self, document_id: str) -> List[Block]:
        """
        Fetch every block of a document by following pagination.

        Stops when the remote reports no more pages, or when a page token
        repeats (a misbehaving server would otherwise loop forever).

        Args:
            document_id: Document id

        Returns:
            Blocks in the order the remote returned them
        """
        blocks: List[Block] = []
        page_token: Optional[str] = None
        seen_tokens = set()

        while True:
            page = self.fetch_blocks(document_id, page_token)
            blocks.extend(page.blocks)

            if not page.has_more or not page.page_token:
                break
            if page.page_token in seen_tokens:
                self.logger.warning(
                    f"Page token repeated while listing blocks of {document_id}, stopping pagination"
                )
                break

            seen_tokens.add(page.page_token)
            page_token = page.page_token

        self.logger.debug(f"Fetched {len(blocks)} blocks for document {document_id}")
        return blocks
