"""Feishu/Lark Open API client with tenant token auth and transport retries."""

import json
import logging
import re
import threading
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config_loader import get_nested

logger = logging.getLogger('feishu_docs_exporter.client')

TOKEN_ENDPOINT = '/open-apis/auth/v3/tenant_access_token/internal'

# Refresh the tenant token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 60

_FILENAME_STAR_PATTERN = re.compile(r"filename\*\s*=\s*(?:UTF-8|utf-8)''([^;]+)")
_FILENAME_PATTERN = re.compile(r'filename\s*=\s*"?([^";]+)"?')


class LarkApiError(Exception):
    """The Open API answered with a non-zero business code."""

    def __init__(self, code: int, msg: str, endpoint: str = ''):
        self.code = code
        self.msg = msg
        self.endpoint = endpoint
        super().__init__(f"Lark API error {code} on {endpoint or 'request'}: {msg}")


def split_table_token(token: str) -> Tuple[str, str]:
    """Split an embedded sheet/bitable token into (spreadsheet/app token, sheet/table id).

    Raises:
        ValueError: If the token has no underscore separator
    """
    head, sep, tail = token.rpartition('_')
    if not sep or not head or not tail:
        raise ValueError(f"Invalid embedded table token (missing underscore separator): {token}")
    return head, tail


def _format_number(value: float) -> str:
    return '%g' % value


def flatten_sheet_cell(cell: Any) -> str:
    """Render one sheet cell value as a single line of Markdown-safe text."""
    if cell is None:
        return ''
    if isinstance(cell, bool):
        return 'true' if cell else 'false'
    if isinstance(cell, int):
        return str(cell)
    if isinstance(cell, float):
        return _format_number(cell)
    if isinstance(cell, str):
        return cell.replace('\n', '<br>')
    if isinstance(cell, list):
        return ', '.join(flatten_sheet_cell(item) for item in cell)
    if isinstance(cell, dict):
        # link / mention / formula segments all carry a display text
        if 'text' in cell:
            return flatten_sheet_cell(cell.get('text'))
        if 'values' in cell:
            return flatten_sheet_cell(cell.get('values'))
        return ''
    return str(cell)


def flatten_bitable_value(value: Any) -> str:
    """Render one bitable field value as text."""
    if value is None:
        return ''
    if isinstance(value, str):
        return value.replace('\n', '<br>')
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float):
        return _format_number(value)
    if isinstance(value, list):
        return ', '.join(flatten_bitable_value(item) for item in value)
    if isinstance(value, dict):
        for key in ('text', 'name', 'link', 'en_name'):
            if key in value:
                return flatten_bitable_value(value[key])
        return json.dumps(value, ensure_ascii=False)
    return str(value)


class LarkClient:
    """Open API client covering docx, wiki, drive, sheets and bitable reads."""

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        base_url: str = 'https://open.feishu.cn',
        timeout: float = 60,
        max_retries: int = 3,
        retry_backoff_factor: float = 1.0,
        page_size: int = 500
    ):
        """
        Initialize the client and its HTTP session.

        Args:
            app_id: Custom app id
            app_secret: Custom app secret
            base_url: Open API base URL
            timeout: HTTP request timeout in seconds
            max_retries: Transport retry attempts for transient errors
            retry_backoff_factor: urllib3 backoff factor
            page_size: Page size for paginated listings
        """
        if not app_id or not app_secret:
            raise ValueError("LarkClient requires app_id and app_secret")

        self.app_id = app_id
        self.app_secret = app_secret
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_backoff_factor = retry_backoff_factor
        self.page_size = page_size

        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

        self.session = requests.Session()
        self.session.headers['Content-Type'] = 'application/json; charset=utf-8'

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=retry_backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"]
        )

        adapter = HTTPAdapter(max_retries=retry_strategy, pool_maxsize=32)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.debug(f"Client configured with timeout={timeout}s, max_retries={max_retries}, "
                     f"backoff_factor={retry_backoff_factor}, page_size={page_size}")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _tenant_access_token(self) -> str:
        """Return a cached tenant access token, fetching a new one when expired."""
        with self._token_lock:
            if self._token and time.time() < self._token_expires_at:
                return self._token

            url = urljoin(self.base_url, TOKEN_ENDPOINT.lstrip('/'))
            logger.debug(f"Requesting tenant access token: {url}")
            response = self.session.post(
                url,
                json={'app_id': self.app_id, 'app_secret': self.app_secret},
                timeout=self.timeout
            )
            response.raise_for_status()
            data = response.json()
            if data.get('code', 0) != 0:
                raise LarkApiError(data.get('code'), data.get('msg', ''), TOKEN_ENDPOINT)

            self._token = data['tenant_access_token']
            expire = int(data.get('expire', 7200) or 7200)
            self._token_expires_at = time.time() + max(0, expire - TOKEN_EXPIRY_MARGIN)
            logger.info("Obtained tenant access token")
            return self._token

    def _make_request(
        self,
        method: str,
        endpoint: str,
        stream: bool = False,
        **kwargs
    ) -> requests.Response:
        """
        Make an authenticated HTTP request to the Open API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path (e.g., "/open-apis/docx/v1/documents/xxx")
            stream: Whether to stream the response body
            **kwargs: Additional arguments for requests

        Returns:
            Response object

        Raises:
            requests.exceptions.HTTPError: For HTTP errors
            requests.exceptions.Timeout: For timeout errors
            requests.exceptions.RequestException: For other request errors
        """
        url = urljoin(self.base_url, endpoint.lstrip('/'))
        headers = kwargs.pop('headers', {})
        headers['Authorization'] = f'Bearer {self._tenant_access_token()}'

        start_time = time.time()
        logger.debug(f"API Request: {method} {url}")

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, stream=stream, **kwargs
            )
            elapsed = time.time() - start_time
            logger.debug(f"API Response: {response.status_code} {url} ({elapsed:.3f}s)")

            response.raise_for_status()
            return response

        except requests.exceptions.Timeout:
            logger.error(f"Request timeout after {self.timeout}s: {method} {url}")
            raise

        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else "unknown"
            logger.error(f"HTTP Error {status_code}: {method} {url}")

            if e.response is not None:
                try:
                    error_data = e.response.json()
                    logger.error(f"Error details: {json.dumps(error_data, ensure_ascii=False)}")
                except ValueError:
                    logger.error(f"Error response: {e.response.text[:500]}")

            raise

        except requests.exceptions.RequestException as e:
            logger.error(f"Request error: {method} {url} - {str(e)}")
            raise

    def _get_json(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """GET an endpoint and unwrap the ``{code, msg, data}`` envelope."""
        response = self._make_request('GET', endpoint, params=params)
        try:
            body = response.json()
        except ValueError as e:
            raise LarkApiError(-1, f"Invalid JSON response: {e}", endpoint) from e

        code = body.get('code', 0)
        if code != 0:
            raise LarkApiError(code, body.get('msg', ''), endpoint)
        return body.get('data') or {}

    def _download(self, endpoint: str) -> Tuple[bytes, str]:
        response = self._make_request('GET', endpoint)
        content_type = response.headers.get('Content-Type', '')

        # Errors on download endpoints come back as a JSON envelope
        if content_type.startswith('application/json'):
            try:
                body = response.json()
            except ValueError:
                body = {}
            if body.get('code', 0) != 0:
                raise LarkApiError(body.get('code'), body.get('msg', ''), endpoint)

        return response.content, self._filename_from_headers(response.headers)

    @staticmethod
    def _filename_from_headers(headers) -> str:
        disposition = headers.get('Content-Disposition', '') or ''
        match = _FILENAME_STAR_PATTERN.search(disposition)
        if match:
            return unquote(match.group(1).strip())
        match = _FILENAME_PATTERN.search(disposition)
        if match:
            return match.group(1).strip()
        return ''

    # ------------------------------------------------------------------
    # Docx
    # ------------------------------------------------------------------

    def get_document(self, document_id: str) -> Dict[str, Any]:
        """Fetch the document descriptor (document_id, revision_id, title)."""
        data = self._get_json(f'/open-apis/docx/v1/documents/{document_id}')
        return data.get('document') or {}

    def list_blocks(
        self,
        document_id: str,
        page_token: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], str, bool]:
        """
        Fetch one page of a document's blocks.

        Returns:
            Tuple of (block dicts, next page token, has_more)
        """
        params: Dict[str, Any] = {'page_size': self.page_size, 'document_revision_id': -1}
        if page_token:
            params['page_token'] = page_token

        data = self._get_json(f'/open-apis/docx/v1/documents/{document_id}/blocks', params=params)
        return (
            data.get('items') or [],
            data.get('page_token', '') or '',
            bool(data.get('has_more', False))
        )

    # ------------------------------------------------------------------
    # Wiki
    # ------------------------------------------------------------------

    def get_wiki_node(self, token: str) -> Dict[str, Any]:
        """Resolve a wiki node token to its node descriptor."""
        data = self._get_json('/open-apis/wiki/v2/spaces/get_node', params={'token': token})
        return data.get('node') or {}

    def get_wiki_space_name(self, space_id: str) -> str:
        data = self._get_json(f'/open-apis/wiki/v2/spaces/{space_id}')
        return (data.get('space') or {}).get('name', '') or ''

    def list_wiki_nodes(self, space_id: str, parent_node_token: Optional[str] = None) -> List[Dict[str, Any]]:
        """List every child node under a parent (or the space root), following pagination."""
        nodes: List[Dict[str, Any]] = []
        page_token = None

        while True:
            params: Dict[str, Any] = {'page_size': 50}
            if parent_node_token:
                params['parent_node_token'] = parent_node_token
            if page_token:
                params['page_token'] = page_token

            data = self._get_json(f'/open-apis/wiki/v2/spaces/{space_id}/nodes', params=params)
            nodes.extend(data.get('items') or [])

            next_token = data.get('page_token', '') or ''
            if not data.get('has_more') or not next_token or next_token == page_token:
                break
            page_token = next_token

        logger.debug(f"Listed {len(nodes)} wiki nodes under {parent_node_token or space_id}")
        return nodes

    # ------------------------------------------------------------------
    # Drive
    # ------------------------------------------------------------------

    def list_folder(self, folder_token: str) -> List[Dict[str, Any]]:
        """List every entry of a drive folder, following pagination."""
        files: List[Dict[str, Any]] = []
        page_token = None

        while True:
            params: Dict[str, Any] = {'folder_token': folder_token, 'page_size': 200}
            if page_token:
                params['page_token'] = page_token

            data = self._get_json('/open-apis/drive/v1/files', params=params)
            files.extend(data.get('files') or [])

            next_token = data.get('next_page_token', '') or ''
            if not data.get('has_more') or not next_token or next_token == page_token:
                break
            page_token = next_token

        logger.debug(f"Listed {len(files)} entries in folder {folder_token}")
        return files

    def download_media(self, token: str) -> Tuple[bytes, str]:
        """Download a media resource (image or attachment embedded in a document)."""
        return self._download(f'/open-apis/drive/v1/medias/{token}/download')

    def download_file(self, token: str) -> Tuple[bytes, str]:
        """Download a standalone drive file, falling back to the media endpoint."""
        try:
            return self._download(f'/open-apis/drive/v1/files/{token}/download')
        except (LarkApiError, requests.exceptions.RequestException) as e:
            logger.debug(f"Drive file download failed for {token} ({e}), trying media download")
            return self.download_media(token)

    # ------------------------------------------------------------------
    # Sheets and bitable
    # ------------------------------------------------------------------

    def get_sheet_values(self, token: str) -> List[List[str]]:
        """Fetch the values of an embedded sheet as rows of strings."""
        spreadsheet_token, sheet_id = split_table_token(token)
        data = self._get_json(
            f'/open-apis/sheets/v2/spreadsheets/{spreadsheet_token}/values_batch_get',
            params={'ranges': sheet_id, 'valueRenderOption': 'ToString'}
        )
        value_ranges = data.get('valueRanges') or []
        if not value_ranges:
            return []
        values = value_ranges[0].get('values') or []
        return [[flatten_sheet_cell(cell) for cell in row or []] for row in values]

    def get_bitable_values(self, token: str) -> List[List[str]]:
        """Fetch an embedded bitable as a header row of field names plus record rows."""
        app_token, table_id = split_table_token(token)
        base = f'/open-apis/bitable/v1/apps/{app_token}/tables/{table_id}'

        fields = self._paginate_items(f'{base}/fields', page_size=100)
        records = self._paginate_items(f'{base}/records')

        if not fields:
            return []

        rows = [[f.get('field_name', '') or '' for f in fields]]
        for record in records:
            record_fields = record.get('fields') or {}
            row = []
            for f in fields:
                value = record_fields.get(f.get('field_name'))
                if value is None:
                    value = record_fields.get(f.get('field_id'))
                row.append(flatten_bitable_value(value))
            rows.append(row)
        return rows

    def _paginate_items(self, endpoint: str, page_size: Optional[int] = None) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page_token = None
        while True:
            params: Dict[str, Any] = {'page_size': page_size or self.page_size}
            if page_token:
                params['page_token'] = page_token
            data = self._get_json(endpoint, params=params)
            items.extend(data.get('items') or [])
            next_token = data.get('page_token', '') or ''
            if not data.get('has_more') or not next_token or next_token == page_token:
                break
            page_token = next_token
        return items

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'LarkClient':
        """
        Initialize the client from a configuration dictionary.

        Args:
            config: Configuration dictionary with feishu and advanced settings

        Returns:
            LarkClient instance
        """
        return cls(
            app_id=get_nested(config, 'feishu.app_id'),
            app_secret=get_nested(config, 'feishu.app_secret'),
            base_url=get_nested(config, 'feishu.base_url', 'https://open.feishu.cn'),
            timeout=get_nested(config, 'advanced.request_timeout', 60),
            max_retries=get_nested(config, 'advanced.max_retries', 3),
            retry_backoff_factor=get_nested(config, 'advanced.retry_backoff_factor', 1.0),
            page_size=get_nested(config, 'advanced.page_size', 500)
        )


__all__ = ['LarkClient', 'LarkApiError', 'split_table_token', 'flatten_sheet_cell']
