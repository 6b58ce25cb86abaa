"""Fetchers package for retrieving Feishu content through the Open API."""

from .base_fetcher import BaseFetcher, FetcherError, RemoteFetchError, UnsupportedDocumentError
from .api_fetcher import ApiFetcher

__all__ = [
    'BaseFetcher',
    'FetcherError',
    'RemoteFetchError',
    'UnsupportedDocumentError',
    'ApiFetcher'
]
