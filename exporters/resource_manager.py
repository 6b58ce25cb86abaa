"""Resource manager for downloading and saving images, attachments and files."""

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from tqdm import tqdm

from fetchers.base_fetcher import BaseFetcher, FetcherError
from models import Resource, SavedResource

_RESERVED_CHARS = '/\\:*?"<>|'


class ExportCancelled(Exception):
    """Raised when a crawl was cancelled while an export was in progress."""
    pass


def sanitize_filename(name: str) -> str:
    """
    Make a remote title safe to use as a file or directory name.

    Path separators, reserved and control characters become underscores;
    trailing dots and spaces are dropped.

    Args:
        name: Raw title

    Returns:
        Sanitized name, "untitled" when nothing usable remains
    """
    cleaned = ''.join(
        '_' if ch in _RESERVED_CHARS or ord(ch) < 32 else ch
        for ch in (name or '')
    )
    cleaned = cleaned.strip().rstrip('. ')
    if cleaned in ('', '.', '..'):
        return 'untitled'
    return cleaned


def check_cancelled(cancel_event: Optional[threading.Event], what: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise ExportCancelled(f"Cancelled before {what}")


class ResourceManager:
    """
    Writes downloaded resources of one document to disk.

    Images go to ``<output_dir>/<image_dir>/<token><ext>``; attachments and
    standalone files keep their remote file name inside ``output_dir``.
    """

    def __init__(
        self,
        fetcher: BaseFetcher,
        output_dir: Path,
        image_dir: str = 'static',
        logger: Optional[logging.Logger] = None,
        show_progress: Optional[bool] = None
    ):
        """
        Initialize the resource manager.

        Args:
            fetcher: Fetcher used for downloads
            output_dir: Directory of the Markdown file being exported
            image_dir: Image directory relative to output_dir
            logger: Logger instance
            show_progress: Force progress bars on/off (default: only on a TTY)
        """
        self.fetcher = fetcher
        self.output_dir = Path(output_dir)
        self.image_dir = image_dir
        self.logger = logger or logging.getLogger('feishu_docs_exporter.exporters.resource_manager')
        self.show_progress = show_progress

        self.stats = {
            'images': 0,
            'attachments': 0,
            'files': 0,
            'failed': 0,
            'total_size_bytes': 0
        }

    @property
    def images_dir(self) -> Path:
        return self.output_dir / self.image_dir

    def _should_show_progress(self) -> bool:
        if self.show_progress is not None:
            return self.show_progress
        return sys.stderr.isatty()

    def _write(self, path: Path, content: bytes) -> SavedResource:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        self.stats['total_size_bytes'] += len(content)
        return SavedResource(path=str(path), size=len(content))

    def save_image(self, token: str) -> str:
        """
        Download one image and return its link relative to the Markdown file.

        Raises:
            FetcherError: If the download fails
        """
        resource = self.fetcher.fetch_resource(token)
        ext = os.path.splitext(resource.filename)[1]
        filename = f"{token}{ext}"
        self._write(self.images_dir / filename, resource.content)
        self.stats['images'] += 1
        self.logger.debug(f"Saved image {token} -> {self.images_dir / filename}")
        return Path(self.image_dir, filename).as_posix()

    def save_images(
        self,
        tokens: Sequence[str],
        cancel_event: Optional[threading.Event] = None,
        label: str = ''
    ) -> Dict[str, str]:
        """
        Download images in order.

        Args:
            tokens: Image tokens in document order
            cancel_event: Checked before each download
            label: Document label for the progress bar

        Returns:
            Mapping of token to relative link

        Raises:
            FetcherError: On the first failed download
            ExportCancelled: If cancel_event is set
        """
        links: Dict[str, str] = {}
        token_iter = tokens
        if tokens and self._should_show_progress():
            token_iter = tqdm(
                tokens,
                desc=f"Images: {label[:30]}",
                leave=False,
                unit='img'
            )

        for token in token_iter:
            check_cancelled(cancel_event, f"downloading image {token}")
            if token in links:
                continue
            try:
                links[token] = self.save_image(token)
            except FetcherError:
                self.stats['failed'] += 1
                raise
        return links

    def save_attachment(self, token: str, name: str = '') -> Optional[SavedResource]:
        """
        Download an attachment embedded in a document.

        Failures are logged and reported as None so the caller can fall
        back to a placeholder.

        Args:
            token: Media token
            name: File name declared by the block

        Returns:
            SavedResource, or None when the download failed
        """
        try:
            resource = self.fetcher.fetch_resource(token)
            saved = self._write(self.output_dir / self._resource_name(resource, name or token), resource.content)
        except (FetcherError, OSError) as e:
            self.stats['failed'] += 1
            self.logger.warning(f"Failed to save attachment '{name or token}': {e}")
            return None

        self.stats['attachments'] += 1
        self.logger.debug(f"Saved attachment '{name or token}' -> {saved.path}")
        return saved

    def save_file(self, resource: Resource, fallback_name: str) -> SavedResource:
        """Write a downloaded standalone file into output_dir."""
        saved = self._write(self.output_dir / self._resource_name(resource, fallback_name), resource.content)
        self.stats['files'] += 1
        return saved

    @staticmethod
    def _resource_name(resource: Resource, fallback: str) -> str:
        return sanitize_filename(resource.filename or fallback)

    def get_stats(self) -> Dict[str, Any]:
        return dict(self.stats)
