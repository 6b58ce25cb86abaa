"""Converters package for rendering Feishu docx block trees to Markdown."""

import logging
from typing import List, Optional, Sequence, Tuple

from models import Block, DocumentMeta, RenderOptions
from .block_index import BlockIndex
from .block_renderer import BlockRenderer
from .inline_styler import InlineStyler
from .table_layout import TableLayout

logger = logging.getLogger('feishu_docs_exporter.converters')


def render_document(
    meta: DocumentMeta,
    blocks: Sequence[Block],
    options: Optional[RenderOptions] = None,
    fetcher=None,
    logger=None
) -> Tuple[str, List[str]]:
    """
    Convenience function to render a fetched document to Markdown.

    Args:
        meta: Document descriptor
        blocks: Flat block list
        options: Optional rendering options
        fetcher: Optional fetcher for embedded sheets and bitables
        logger: Optional logger instance (uses module logger if not provided)

    Returns:
        Tuple of (markdown, image tokens in document order)

    Example:
        >>> from converters import render_document
        >>> markdown, img_tokens = render_document(meta, fetcher.fetch_all_blocks(meta.document_id))
    """
    if logger is None:
        logger = logging.getLogger('feishu_docs_exporter.converters')

    renderer = BlockRenderer(options=options, fetcher=fetcher, logger=logger)
    markdown = renderer.render_document(meta, blocks)
    return markdown, list(renderer.img_tokens)


__all__ = [
    'render_document',
    'BlockIndex',
    'BlockRenderer',
    'InlineStyler',
    'TableLayout'
]
