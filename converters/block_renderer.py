"""Recursive-descent Markdown renderer for docx block trees."""

import logging
from typing import Callable, List, Optional, Sequence

from fetchers.base_fetcher import BaseFetcher, FetcherError
from models import (
    Block,
    BlockType,
    DocumentMeta,
    FilePayload,
    RenderOptions,
    SavedResource,
    TablePayload,
    TextBody
)
from .block_index import BlockIndex
from .code_languages import language_label
from .inline_styler import InlineStyler
from .table_layout import TableLayout

AttachmentSaver = Callable[[str, str], Optional[SavedResource]]

IFRAME_TYPE_NAMES = {
    1: 'Bilibili',
    2: 'Xigua Video',
    3: 'Youku',
    4: 'Airtable',
    5: 'Baidu Map',
    6: 'Amap',
    7: 'TikTok',
    8: 'Figma',
    9: 'Modao',
    10: 'Canva',
    11: 'CodePen',
    12: 'Feishu Survey',
    13: 'Jinshuju',
    14: 'Google Map',
    15: 'YouTube',
    99: 'Other',
}

_ATTACHMENT_KINDS = (
    (('.mp4', '.mov', '.avi', '.mkv'), 'video'),
    (('.pdf',), 'PDF'),
    (('.doc',), 'Word document'),
    (('.xls',), 'Excel spreadsheet'),
)


def attachment_kind(name: str) -> str:
    """Guess a human label for an attachment from its file name."""
    lowered = name.lower()
    for markers, label in _ATTACHMENT_KINDS:
        if any(marker in lowered for marker in markers):
            return label
    return 'file'


def markdown_table(rows: Sequence[Sequence[str]]) -> str:
    """Render rows as a pipe table, first row as header."""
    header = rows[0]
    lines = ['|' + ''.join(f' {cell} |' for cell in header)]
    lines.append('|' + ' --- |' * len(header))
    for row in rows[1:]:
        lines.append('|' + ''.join(f' {cell} |' for cell in row))
    return '\n\n' + '\n'.join(lines) + '\n\n'


def _placeholder(title: str, lines: Sequence[str]) -> str:
    body = ''.join(f'> {line}\n' if line else '>\n' for line in lines)
    return f'\n\n> **📊 {title}**\n>\n{body}\n\n'


class BlockRenderer:
    """Renders a flat block collection as Markdown.

    Each instance collects the image tokens it meets in ``img_tokens``;
    the list restarts on every ``render_document`` call.
    """

    def __init__(
        self,
        options: Optional[RenderOptions] = None,
        fetcher: Optional[BaseFetcher] = None,
        attachment_saver: Optional[AttachmentSaver] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize renderer.

        Args:
            options: Rendering options (HTML tags, indent unit)
            fetcher: Used for best-effort sheet and bitable content, optional
            attachment_saver: Callable (token, name) -> SavedResource or None, optional
            logger: Logger instance (optional)
        """
        self.options = options or RenderOptions()
        self.fetcher = fetcher
        self.attachment_saver = attachment_saver
        self.logger = logger or logging.getLogger('feishu_docs_exporter.converters.renderer')
        self.styler = InlineStyler(self.options.use_html_tags)
        self.img_tokens: List[str] = []

    def render_document(self, meta: DocumentMeta, blocks: Sequence[Block]) -> str:
        """
        Render a whole document.

        The root is the block whose id equals the document id, or the first
        parentless block when the document id is not among the blocks.

        Args:
            meta: Document descriptor
            blocks: Flat block list as fetched

        Returns:
            Markdown text
        """
        self.img_tokens = []
        index = BlockIndex.build(blocks)

        root_id = meta.document_id if meta.document_id in index else None
        if root_id is None:
            root_id = next((b.block_id for b in blocks if not b.parent_id), None)
        if root_id is None:
            self.logger.warning(f"Document {meta.document_id} has no root block")
            return ''

        markdown = self.render(root_id, index, 0)
        self.logger.debug(
            f"Rendered document {meta.document_id}: {len(index)} blocks, "
            f"{len(self.img_tokens)} images"
        )
        return markdown

    def render(self, block_id: str, index: BlockIndex, indent_level: int) -> str:
        """Render one block and its subtree at the given indent level."""
        block = index.get(block_id)
        if block is None:
            return ''

        out = self.options.indent_unit * indent_level
        block_type = block.block_type

        if block_type == BlockType.PAGE:
            out += '# ' + self._text(block) + '\n'
            for child_id in self._children(block, index):
                out += self.render(child_id, index, 0) + '\n'
        elif block_type == BlockType.TEXT:
            out += self._text(block)
        elif block_type.heading_level:
            out += '#' * block_type.heading_level + ' ' + self._text(block)
            out += self._render_children(block, index, 0)
        elif block_type == BlockType.BULLET:
            out += '- ' + self._text(block)
            out += self._render_children(block, index, indent_level + 1)
        elif block_type == BlockType.ORDERED:
            out += f'{self._ordered_number(block, index)}. ' + self._text(block)
            out += self._render_children(block, index, indent_level + 1)
        elif block_type == BlockType.TODO:
            body = self._body(block)
            out += ('- [x] ' if body.done else '- [ ] ') + self.styler.render_text(body)
            out += self._render_children(block, index, indent_level + 1)
        elif block_type == BlockType.CODE:
            body = self._body(block)
            out += '```' + language_label(body.language) + '\n'
            out += self.styler.render_text(body).strip()
            out += '\n```\n'
        elif block_type == BlockType.QUOTE:
            out += '> ' + self._text(block)
        elif block_type == BlockType.QUOTE_CONTAINER:
            out += self._render_quote_container(block, index)
        elif block_type == BlockType.CALLOUT:
            out += '>[!TIP] \n'
            out += self._render_children(block, index, 0)
        elif block_type == BlockType.EQUATION:
            out += '$$\n' + self._body(block).plain_text().rstrip('\n') + '\n$$\n'
        elif block_type == BlockType.DIVIDER:
            out += '---\n'
        elif block_type == BlockType.IMAGE:
            token = block.payload.token if block.payload else ''
            self.img_tokens.append(token)
            out += f'![]({token})\n'
        elif block_type == BlockType.FILE:
            out += self._render_file(block.payload or FilePayload())
        elif block_type == BlockType.SHEET:
            token = block.payload.token if block.payload else ''
            out += self._render_embedded_table(token, 'Embedded sheet', self._fetch_sheet)
        elif block_type == BlockType.BITABLE:
            token = block.payload.token if block.payload else ''
            out += self._render_embedded_table(token, 'Embedded bitable', self._fetch_bitable)
        elif block_type == BlockType.DIAGRAM:
            out += self._render_diagram(block)
        elif block_type == BlockType.IFRAME:
            out += self._render_iframe(block)
        elif block_type == BlockType.TABLE:
            table = block.payload or TablePayload()
            out += TableLayout.render(
                table.column_size,
                table.cells,
                table.merge_info,
                lambda cell_id: self.render(cell_id, index, 0)
            )
        elif block_type == BlockType.TABLE_CELL:
            for child_id in self._children(block, index):
                out += self.render(child_id, index, 0) + '<br/>'
        elif block_type == BlockType.GRID:
            for column_id in self._children(block, index):
                for child_id in self._children(index[column_id], index):
                    out += self.render(child_id, index, indent_level)
        else:
            out += self._render_children(block, index, indent_level)

        return out

    def _children(self, block: Block, index: BlockIndex) -> List[str]:
        return [child_id for child_id in block.children if child_id in index]

    def _render_children(self, block: Block, index: BlockIndex, indent_level: int) -> str:
        return ''.join(self.render(child_id, index, indent_level)
                       for child_id in self._children(block, index))

    @staticmethod
    def _body(block: Block) -> TextBody:
        return block.payload if isinstance(block.payload, TextBody) else TextBody()

    def _text(self, block: Block) -> str:
        return self.styler.render_text(self._body(block))

    @staticmethod
    def _ordered_number(block: Block, index: BlockIndex) -> int:
        """1 + the number of ordered siblings immediately preceding the block."""
        parent = index.get(block.parent_id) if block.parent_id else None
        if parent is None:
            return 1

        siblings = parent.children
        try:
            position = siblings.index(block.block_id)
        except ValueError:
            return 1

        order = 1
        for sibling_id in reversed(siblings[:position]):
            sibling = index.get(sibling_id)
            if sibling is None or sibling.block_type != BlockType.ORDERED:
                break
            order += 1
        return order

    def _render_quote_container(self, block: Block, index: BlockIndex) -> str:
        lines = ['> ' + self.render(child_id, index, 0).rstrip('\n') + '  '
                 for child_id in self._children(block, index)]
        return '\n'.join(lines)

    def _render_file(self, file: FilePayload) -> str:
        name = file.name or file.token
        kind = attachment_kind(name)
        out = f'\n**Attachment**: {name} ({kind})\n\n'

        if self.attachment_saver is not None and file.token:
            saved = self.attachment_saver(file.token, file.name)
            if saved is not None:
                return out + f'**Downloaded**: saved to `{saved.path}` (size: {saved.size} bytes)\n\n'

        out += f'**File Token**: `{file.token}`\n\n'
        out += f'**Note**: this {kind} attachment was not downloaded, open Feishu to view the original.\n\n'
        return out

    def _fetch_sheet(self, token: str) -> List[List[str]]:
        return self.fetcher.fetch_sheet_values(token)

    def _fetch_bitable(self, token: str) -> List[List[str]]:
        return self.fetcher.fetch_bitable_values(token)

    def _render_embedded_table(
        self,
        token: str,
        title: str,
        fetch: Callable[[str], List[List[str]]]
    ) -> str:
        token_line = [f'Token: `{token}`'] if token else []

        if self.fetcher is None or not token:
            return _placeholder(title, token_line + ['', '*Note: content unavailable (no fetcher or token)*'])

        try:
            rows = fetch(token)
        except FetcherError as e:
            self.logger.warning(f"Could not fetch {title.lower()} {token}: {e}")
            return _placeholder(title, token_line + ['', self._fetch_failure_note(e)])

        if not rows or not rows[0]:
            return _placeholder(title, token_line + ['', '*Note: the table is empty*'])

        return markdown_table(rows)

    @staticmethod
    def _fetch_failure_note(error: Exception) -> str:
        message = str(error)
        if isinstance(error.__cause__, ValueError):
            return '*Note: this table is embedded in an unsupported way, its content cannot be fetched*'
        if '91402' in message or 'NOTEXIST' in message:
            return '*Note: the table cannot be accessed (missing permission or it no longer exists)*'
        return f'*Failed to fetch table content: {message}*'

    @staticmethod
    def _render_diagram(block: Block) -> str:
        diagram_type = block.payload.diagram_type if block.payload else 0
        label = 'UML diagram' if diagram_type == 2 else 'Flowchart'
        return (
            f'\n\n**📈 {label}**\n\n'
            '> *Note: flowcharts and UML diagrams cannot be converted to Markdown, '
            'export them as images or redraw them with Mermaid*\n'
            '\n\n'
        )

    @staticmethod
    def _render_iframe(block: Block) -> str:
        out = '\n\n**🔗 Embedded content**\n\n'
        iframe = block.payload
        if iframe is not None and (iframe.iframe_type or iframe.url):
            type_name = IFRAME_TYPE_NAMES.get(iframe.iframe_type, 'Unknown type')
            out += f'> Type: {type_name}\n'
            if iframe.url:
                out += '>\n'
                out += f'> Link: {iframe.url}\n'
        out += '>\n'
        out += '> *Note: embedded content cannot be shown in Markdown, open Feishu to view it*\n'
        out += '\n\n'
        return out
