"""Validation of Feishu document, folder and wiki URLs."""

import re
from typing import Tuple
from urllib.parse import unquote, unquote_plus

DOCUMENT_URL_PATTERN = re.compile(r'^https://[\w.-]+/(docs|docx|wiki)/([a-zA-Z0-9]+)')
FOLDER_URL_PATTERN = re.compile(r'^https://[\w.-]+/drive/folder/([a-zA-Z0-9]+)')
WIKI_URL_PATTERN = re.compile(r'^(https://[\w.-]+)/wiki/(?:settings/)?([a-zA-Z0-9]+)')


class URLValidationError(ValueError):
    """Raised when an input URL cannot be parsed into a token."""
    pass


def validate_document_url(url: str) -> Tuple[str, str]:
    """Return (doc_type, token) for a docs/docx/wiki URL."""
    match = DOCUMENT_URL_PATTERN.match(url or '')
    if not match:
        raise URLValidationError(
            f"Invalid Feishu document URL: {url!r} "
            "(expected https://<domain>/docx/<token> or https://<domain>/wiki/<token>)"
        )
    return match.group(1), match.group(2)


def validate_folder_url(url: str) -> str:
    """Return the folder token of a drive folder URL."""
    match = FOLDER_URL_PATTERN.match(url or '')
    if not match:
        raise URLValidationError(
            f"Invalid Feishu folder URL: {url!r} "
            "(expected https://<domain>/drive/folder/<token>)"
        )
    return match.group(1)


def validate_wiki_url(url: str) -> Tuple[str, str]:
    """Return (url prefix, token) for a wiki space settings URL or a wiki node URL.

    The token is either a space id (``/wiki/settings/<id>``) or a node token
    (``/wiki/<node>``); callers tell them apart by asking the API.
    """
    match = WIKI_URL_PATTERN.match(url or '')
    if not match:
        raise URLValidationError(
            f"Invalid Feishu wiki URL: {url!r} "
            "(expected https://<domain>/wiki/settings/<space_id> or https://<domain>/wiki/<node>)"
        )
    return match.group(1), match.group(2)


def unescape_url(url: str) -> str:
    """Decode a percent-encoded URL as sent in link and mention payloads."""
    if not url:
        return ''
    try:
        return unquote_plus(url, errors='strict')
    except UnicodeDecodeError:
        return unquote(url)


__all__ = [
    'URLValidationError',
    'validate_document_url',
    'validate_folder_url',
    'validate_wiki_url',
    'unescape_url'
]
