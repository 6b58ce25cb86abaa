"""Document exporter: renders Feishu documents and writes them to disk."""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from converters.block_renderer import BlockRenderer
from fetchers.base_fetcher import BaseFetcher, FetcherError, UnsupportedDocumentError
from models import FILE_OBJECT_TYPES, Block, DocumentMeta, ExportOptions, RenderOptions
from url_parser import validate_document_url
from .resource_manager import ResourceManager, check_cancelled, sanitize_filename

FILE_TYPE_LABELS = {
    'mindnote': 'Mind map',
    'file': 'File',
    'sheet': 'Spreadsheet',
    'bitable': 'Bitable',
}

PathLike = Union[str, Path]


class DocumentExporter:
    """
    Exports single documents and standalone files to a local directory.

    One instance can be shared by concurrent crawl tasks; every export
    builds its own renderer and resource manager.
    """

    def __init__(
        self,
        fetcher: BaseFetcher,
        export_options: Optional[ExportOptions] = None,
        render_options: Optional[RenderOptions] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the document exporter.

        Args:
            fetcher: Fetcher for documents, blocks and resources
            export_options: Output layout options
            render_options: Markdown rendering options
            logger: Logger instance
        """
        self.fetcher = fetcher
        self.export_options = export_options or ExportOptions()
        self.render_options = render_options or RenderOptions()
        self.logger = logger or logging.getLogger('feishu_docs_exporter.exporters.document_exporter')

        self._stats_lock = threading.Lock()
        self.stats = {
            'documents_exported': 0,
            'files_downloaded': 0,
            'placeholders_written': 0,
            'images_saved': 0,
            'attachments_saved': 0
        }

    def _count(self, key: str, amount: int = 1) -> None:
        with self._stats_lock:
            self.stats[key] += amount

    def export_url(
        self,
        url: str,
        output_dir: PathLike,
        cancel_event: Optional[threading.Event] = None
    ) -> Path:
        """
        Export the document behind a docx or wiki URL.

        Args:
            url: Document URL
            output_dir: Target directory
            cancel_event: Optional crawl cancellation event

        Returns:
            Path of the written Markdown (or downloaded) file

        Raises:
            URLValidationError: If the URL is malformed
            UnsupportedDocumentError: For legacy docs and unknown wiki objects
            FetcherError: If fetching fails
        """
        doc_type, token = validate_document_url(url)
        self.logger.info(f"Captured document token: {token}")

        title = ''
        if doc_type == 'wiki':
            node = self.fetcher.fetch_wiki_node(token)
            doc_type, token, title = node.obj_type, node.obj_token, node.title

        if doc_type == 'docs':
            raise UnsupportedDocumentError(
                "Legacy Feishu Docs are no longer supported, convert the document to docx first"
            )

        if doc_type in FILE_OBJECT_TYPES:
            return self.export_file(token, title, doc_type, output_dir, cancel_event)

        if doc_type != 'docx':
            raise UnsupportedDocumentError(f"Unsupported object type '{doc_type}' for {url}")

        return self.export_document(token, output_dir, cancel_event)

    def export_document(
        self,
        document_id: str,
        output_dir: PathLike,
        cancel_event: Optional[threading.Event] = None
    ) -> Path:
        """
        Fetch, render and write one docx document.

        Images are downloaded into the image directory (unless disabled) and
        every image link to a token is pointed at the saved file, relative to
        the Markdown file.

        Args:
            document_id: Document token
            output_dir: Target directory
            cancel_event: Checked between network steps

        Returns:
            Path of the written Markdown file
        """
        output_dir = Path(output_dir)
        check_cancelled(cancel_event, f"fetching document {document_id}")

        meta = self.fetcher.fetch_document(document_id)
        blocks = self.fetcher.fetch_all_blocks(document_id)

        resources = ResourceManager(
            self.fetcher,
            output_dir,
            image_dir=self.export_options.image_dir,
            logger=self.logger
        )
        renderer = BlockRenderer(
            options=self.render_options,
            fetcher=self.fetcher,
            attachment_saver=resources.save_attachment,
            logger=self.logger
        )
        markdown = renderer.render_document(meta, blocks)

        if not self.export_options.skip_img_download:
            links = resources.save_images(renderer.img_tokens, cancel_event, label=meta.title or document_id)
            for token, link in links.items():
                markdown = markdown.replace(f"![]({token})", f"![]({link})")

        output_dir.mkdir(parents=True, exist_ok=True)

        if self.export_options.dump_json:
            self._dump_json(meta, blocks, output_dir / f"{document_id}.json")

        if self.export_options.title_as_filename:
            md_name = f"{sanitize_filename(meta.title)}.md"
        else:
            md_name = f"{document_id}.md"

        md_path = output_dir / md_name
        md_path.write_text(markdown, encoding='utf-8')

        resource_stats = resources.get_stats()
        self._count('documents_exported')
        self._count('images_saved', resource_stats['images'])
        self._count('attachments_saved', resource_stats['attachments'])

        self.logger.info(f"Downloaded markdown file to {md_path}")
        return md_path

    def export_file(
        self,
        token: str,
        title: str,
        obj_type: str,
        output_dir: PathLike,
        cancel_event: Optional[threading.Event] = None
    ) -> Path:
        """
        Download a standalone drive object (file, sheet, bitable, mind map).

        When the download fails a placeholder Markdown file linking to the
        original is written instead.

        Args:
            token: Object token
            title: Object title
            obj_type: Object type (file, sheet, bitable, mindnote)
            output_dir: Target directory
            cancel_event: Checked before downloading

        Returns:
            Path of the downloaded file or of the placeholder
        """
        output_dir = Path(output_dir)
        check_cancelled(cancel_event, f"downloading file {title or token}")

        try:
            resource = self.fetcher.fetch_file(token)
        except FetcherError as e:
            self.logger.warning(f"Could not download {obj_type} '{title or token}', writing placeholder: {e}")
            return self._write_placeholder(token, title, obj_type, output_dir)

        resources = ResourceManager(self.fetcher, output_dir, logger=self.logger)
        saved = resources.save_file(resource, fallback_name=token)
        self._count('files_downloaded')
        self.logger.info(f"Downloaded file to {saved.path}")
        return Path(saved.path)

    def _write_placeholder(self, token: str, title: str, obj_type: str, output_dir: Path) -> Path:
        file_type = FILE_TYPE_LABELS.get(obj_type, 'File')
        name = sanitize_filename(title or token)
        link = f"{self.export_options.web_base_url.rstrip('/')}/{obj_type}/{token}"

        content = (
            f"# {title or token}\n\n"
            f"**File type**: {file_type}\n\n"
            f"**File token**: `{token}`\n\n"
            f"**Note**: this {file_type.lower()} cannot be converted to Markdown.\n\n"
            f"Open the original in Feishu: [open]({link})\n"
        )

        output_dir.mkdir(parents=True, exist_ok=True)
        md_path = output_dir / f"{name}.md"
        md_path.write_text(content, encoding='utf-8')
        self._count('placeholders_written')
        return md_path

    def _dump_json(self, meta: DocumentMeta, blocks: List[Block], path: Path) -> None:
        data: Dict[str, Any] = {
            'document': meta.to_dict(),
            'blocks': [block.raw for block in blocks]
        }
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding='utf-8')
        self.logger.info(f"Dumped json response to {path}")

    def get_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self.stats)
