"""API fetcher implementation for retrieving Feishu content via the Open API."""

import functools
import threading
from typing import Any, Dict, List, Optional

import requests

from lark_client import LarkApiError, LarkClient
from models import Block, BlockPage, DocumentMeta, DriveFile, Resource, WikiNode
from .base_fetcher import BaseFetcher, RemoteFetchError


def _wrap_remote_errors(action: str):
    """Translate client errors of the decorated method into RemoteFetchError."""
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, token, *args, **kwargs):
            try:
                return method(self, token, *args, **kwargs)
            except (LarkApiError, requests.exceptions.RequestException, ValueError) as e:
                with self._errors_lock:
                    self.api_errors += 1
                raise RemoteFetchError(f"Failed to {action} {token}: {e}") from e
        return wrapper
    return decorator


class ApiFetcher(BaseFetcher):
    """Fetches Feishu documents, wiki trees and drive folders through LarkClient."""

    def __init__(self, config: Dict[str, Any], logger=None, client: Optional[LarkClient] = None):
        """
        Initialize API fetcher with configuration.

        Args:
            config: Configuration dictionary with feishu and advanced settings
            logger: Logger instance (optional)
            client: Pre-built client (optional, built from config otherwise)
        """
        super().__init__(config, logger)

        self.client = client or LarkClient.from_config(config)
        self.api_errors = 0
        self._errors_lock = threading.Lock()

        self.logger.info(f"Initialized ApiFetcher for {self.client.base_url}")

    @_wrap_remote_errors('fetch document')
    def fetch_document(self, document_id: str) -> DocumentMeta:
        data = self.client.get_document(document_id)
        if not data.get('document_id'):
            data = dict(data, document_id=document_id)
        return DocumentMeta.from_dict(data)

    @_wrap_remote_errors('list blocks of')
    def fetch_blocks(self, document_id: str, page_token: Optional[str] = None) -> BlockPage:
        items, next_token, has_more = self.client.list_blocks(document_id, page_token)
        return BlockPage(
            blocks=[Block.from_dict(item) for item in items],
            page_token=next_token,
            has_more=has_more
        )

    @_wrap_remote_errors('resolve wiki node')
    def fetch_wiki_node(self, token: str) -> WikiNode:
        return WikiNode.from_dict(self.client.get_wiki_node(token))

    @_wrap_remote_errors('fetch wiki space')
    def fetch_wiki_space_name(self, space_id: str) -> str:
        return self.client.get_wiki_space_name(space_id)

    @_wrap_remote_errors('list wiki space')
    def fetch_wiki_children(self, space_id: str, parent_token: Optional[str] = None) -> List[WikiNode]:
        return [WikiNode.from_dict(item) for item in self.client.list_wiki_nodes(space_id, parent_token)]

    @_wrap_remote_errors('list folder')
    def fetch_folder_children(self, folder_token: str) -> List[DriveFile]:
        return [DriveFile.from_dict(item) for item in self.client.list_folder(folder_token)]

    @_wrap_remote_errors('download resource')
    def fetch_resource(self, token: str) -> Resource:
        content, filename = self.client.download_media(token)
        return Resource(content=content, filename=filename)

    @_wrap_remote_errors('download file')
    def fetch_file(self, token: str) -> Resource:
        content, filename = self.client.download_file(token)
        return Resource(content=content, filename=filename)

    @_wrap_remote_errors('fetch sheet')
    def fetch_sheet_values(self, token: str) -> List[List[str]]:
        return self.client.get_sheet_values(token)

    @_wrap_remote_errors('fetch bitable')
    def fetch_bitable_values(self, token: str) -> List[List[str]]:
        return self.client.get_bitable_values(token)
