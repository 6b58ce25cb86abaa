"""Data models for the Feishu document export pipeline."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from config_loader import get_nested

logger = logging.getLogger('feishu_docs_exporter.models')


class BlockType(Enum):
    """Block type codes used by the docx block API."""
    PAGE = 1
    TEXT = 2
    HEADING1 = 3
    HEADING2 = 4
    HEADING3 = 5
    HEADING4 = 6
    HEADING5 = 7
    HEADING6 = 8
    HEADING7 = 9
    HEADING8 = 10
    HEADING9 = 11
    BULLET = 12
    ORDERED = 13
    CODE = 14
    QUOTE = 15
    EQUATION = 16
    TODO = 17
    BITABLE = 18
    CALLOUT = 19
    CHAT_CARD = 20
    DIAGRAM = 21
    DIVIDER = 22
    FILE = 23
    GRID = 24
    GRID_COLUMN = 25
    IFRAME = 26
    IMAGE = 27
    ISV = 28
    MINDNOTE = 29
    SHEET = 30
    TABLE = 31
    TABLE_CELL = 32
    VIEW = 33
    QUOTE_CONTAINER = 34
    UNDEFINED = 999

    @classmethod
    def from_code(cls, code: Any) -> 'BlockType':
        """Map a raw type code to a BlockType, falling back to UNDEFINED."""
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return cls.UNDEFINED

    @property
    def payload_key(self) -> str:
        """JSON key holding this block type's payload (e.g. 'heading3')."""
        return self.name.lower()

    @property
    def heading_level(self) -> int:
        """Heading level 1..9, or 0 for non-heading types."""
        if BlockType.HEADING1.value <= self.value <= BlockType.HEADING9.value:
            return self.value - BlockType.HEADING1.value + 1
        return 0


# Block types whose payload is a text body (elements + style)
TEXT_BLOCK_TYPES = frozenset([
    BlockType.PAGE, BlockType.TEXT,
    BlockType.HEADING1, BlockType.HEADING2, BlockType.HEADING3,
    BlockType.HEADING4, BlockType.HEADING5, BlockType.HEADING6,
    BlockType.HEADING7, BlockType.HEADING8, BlockType.HEADING9,
    BlockType.BULLET, BlockType.ORDERED, BlockType.CODE, BlockType.QUOTE,
    BlockType.EQUATION, BlockType.TODO,
])


class InlineKind(Enum):
    """Variants of an inline text element."""
    TEXT_RUN = "text_run"
    MENTION_USER = "mention_user"
    MENTION_DOC = "mention_doc"
    EQUATION = "equation"
    UNKNOWN = "unknown"


@dataclass
class TextStyle:
    """Inline style flags of a text run."""

    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    inline_code: bool = False
    link_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'TextStyle':
        data = data or {}
        link = data.get('link') or {}
        return cls(
            bold=bool(data.get('bold', False)),
            italic=bool(data.get('italic', False)),
            strikethrough=bool(data.get('strikethrough', False)),
            underline=bool(data.get('underline', False)),
            inline_code=bool(data.get('inline_code', False)),
            link_url=link.get('url') or None
        )


@dataclass
class InlineElement:
    """One inline element of a text body."""

    kind: InlineKind
    content: str = ''
    style: TextStyle = field(default_factory=TextStyle)
    user_id: str = ''
    title: str = ''
    url: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InlineElement':
        """Build an element from its API representation.

        Exactly one of the variant keys is expected; unknown variants
        (reminders, inline files, ...) become UNKNOWN and render as nothing.
        """
        if data.get('text_run') is not None:
            run = data['text_run']
            return cls(
                kind=InlineKind.TEXT_RUN,
                content=run.get('content', '') or '',
                style=TextStyle.from_dict(run.get('text_element_style'))
            )
        if data.get('mention_user') is not None:
            return cls(kind=InlineKind.MENTION_USER, user_id=data['mention_user'].get('user_id', '') or '')
        if data.get('mention_doc') is not None:
            doc = data['mention_doc']
            return cls(
                kind=InlineKind.MENTION_DOC,
                title=doc.get('title', '') or '',
                url=doc.get('url', '') or ''
            )
        if data.get('equation') is not None:
            return cls(kind=InlineKind.EQUATION, content=data['equation'].get('content', '') or '')
        return cls(kind=InlineKind.UNKNOWN)


@dataclass
class TextBody:
    """Payload of text-bearing blocks."""

    elements: List[InlineElement] = field(default_factory=list)
    language: int = 0
    done: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'TextBody':
        data = data or {}
        style = data.get('style') or {}
        return cls(
            elements=[InlineElement.from_dict(e) for e in data.get('elements') or []],
            language=int(style.get('language', 0) or 0),
            done=bool(style.get('done', False))
        )

    def plain_text(self) -> str:
        """Concatenate raw element contents without any markup."""
        return ''.join(e.content for e in self.elements
                       if e.kind in (InlineKind.TEXT_RUN, InlineKind.EQUATION))


@dataclass
class MergeInfo:
    """Row/column span of a table cell."""

    row_span: int = 1
    col_span: int = 1

    def is_merged(self) -> bool:
        return self.row_span > 1 or self.col_span > 1


@dataclass
class TablePayload:
    """Table layout: grid size, cell block ids and sparse merge spans."""

    row_size: int = 0
    column_size: int = 0
    cells: List[str] = field(default_factory=list)
    merge_info: Dict[Tuple[int, int], MergeInfo] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'TablePayload':
        data = data or {}
        prop = data.get('property') or {}
        column_size = int(prop.get('column_size', 0) or 0)
        merge_info = {}
        if column_size > 0:
            for i, merge in enumerate(prop.get('merge_info') or []):
                if not merge:
                    continue
                merge_info[(i // column_size, i % column_size)] = MergeInfo(
                    row_span=max(1, int(merge.get('row_span', 1) or 1)),
                    col_span=max(1, int(merge.get('col_span', 1) or 1))
                )
        return cls(
            row_size=int(prop.get('row_size', 0) or 0),
            column_size=column_size,
            cells=list(data.get('cells') or []),
            merge_info=merge_info
        )


@dataclass
class ImagePayload:
    token: str = ''
    width: int = 0
    height: int = 0


@dataclass
class FilePayload:
    token: str = ''
    name: str = ''


@dataclass
class SheetPayload:
    token: str = ''


@dataclass
class BitablePayload:
    token: str = ''


@dataclass
class DiagramPayload:
    diagram_type: int = 0


@dataclass
class IframePayload:
    iframe_type: int = 0
    url: str = ''


def _parse_payload(block_type: BlockType, data: Optional[Dict[str, Any]]) -> Any:
    """Turn the raw payload of a block into its typed payload."""
    if block_type in TEXT_BLOCK_TYPES:
        return TextBody.from_dict(data)
    data = data or {}
    if block_type == BlockType.TABLE:
        return TablePayload.from_dict(data)
    if block_type == BlockType.IMAGE:
        return ImagePayload(
            token=data.get('token', '') or '',
            width=int(data.get('width', 0) or 0),
            height=int(data.get('height', 0) or 0)
        )
    if block_type == BlockType.FILE:
        return FilePayload(token=data.get('token', '') or '', name=data.get('name', '') or '')
    if block_type == BlockType.SHEET:
        return SheetPayload(token=data.get('token', '') or '')
    if block_type == BlockType.BITABLE:
        return BitablePayload(token=data.get('token', '') or '')
    if block_type == BlockType.DIAGRAM:
        return DiagramPayload(diagram_type=int(data.get('diagram_type', 0) or 0))
    if block_type == BlockType.IFRAME:
        component = data.get('component') or {}
        return IframePayload(
            iframe_type=int(component.get('iframe_type', 0) or 0),
            url=component.get('url', '') or ''
        )
    return None


@dataclass(frozen=True)
class Block:
    """One structural node of a remote document."""

    block_id: str
    block_type: BlockType
    parent_id: Optional[str] = None
    children: Tuple[str, ...] = ()
    payload: Any = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Block':
        """Build a block from a docx block API item."""
        block_type = BlockType.from_code(data.get('block_type'))
        if block_type == BlockType.UNDEFINED:
            logger.debug(f"Unknown block type {data.get('block_type')} for block {data.get('block_id')}")
        return cls(
            block_id=data.get('block_id', ''),
            block_type=block_type,
            parent_id=data.get('parent_id') or None,
            children=tuple(data.get('children') or ()),
            payload=_parse_payload(block_type, data.get(block_type.payload_key)),
            raw=data
        )


@dataclass
class DocumentMeta:
    """Descriptor of a docx document."""

    document_id: str
    revision_id: int = 0
    title: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DocumentMeta':
        return cls(
            document_id=data.get('document_id', ''),
            revision_id=int(data.get('revision_id', 0) or 0),
            title=data.get('title', '') or ''
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_id': self.document_id,
            'revision_id': self.revision_id,
            'title': self.title
        }


@dataclass
class BlockPage:
    """One page of a paginated block listing."""

    blocks: List[Block]
    page_token: str = ''
    has_more: bool = False


@dataclass
class WikiNode:
    """A node of a wiki space hierarchy."""

    space_id: str
    node_token: str
    obj_token: str
    obj_type: str
    title: str = ''
    parent_node_token: Optional[str] = None
    has_child: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WikiNode':
        return cls(
            space_id=data.get('space_id', '') or '',
            node_token=data.get('node_token', '') or '',
            obj_token=data.get('obj_token', '') or '',
            obj_type=data.get('obj_type', '') or '',
            title=data.get('title', '') or '',
            parent_node_token=data.get('parent_node_token') or None,
            has_child=bool(data.get('has_child', False))
        )


@dataclass
class DriveFile:
    """An entry of a drive folder listing."""

    token: str
    name: str
    type: str
    parent_token: Optional[str] = None
    url: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DriveFile':
        return cls(
            token=data.get('token', '') or '',
            name=data.get('name', '') or '',
            type=data.get('type', '') or '',
            parent_token=data.get('parent_token') or None,
            url=data.get('url', '') or ''
        )


@dataclass
class Resource:
    """Downloaded body of a media or drive file."""

    content: bytes
    filename: str = ''


@dataclass
class SavedResource:
    """A resource written to local disk."""

    path: str
    size: int


class JobKind(Enum):
    DOCUMENT = "document"
    FILE = "file"


# Object types downloaded as standalone files rather than rendered
FILE_OBJECT_TYPES = frozenset(['file', 'sheet', 'bitable', 'mindnote'])


@dataclass
class CrawlJob:
    """Unit of work created for every leaf discovered during a crawl."""

    kind: JobKind
    token: str
    title: str
    obj_type: str
    output_dir: str

    @property
    def label(self) -> str:
        return self.title or self.token


@dataclass
class RenderOptions:
    """Options consumed by the block renderer."""

    use_html_tags: bool = False
    indent_unit: str = '\t'

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'RenderOptions':
        return cls(
            use_html_tags=bool(get_nested(config, 'output.use_html_tags', False)),
            indent_unit=get_nested(config, 'output.indent_unit', '\t')
        )


@dataclass
class ExportOptions:
    """Options consumed by the document exporter."""

    image_dir: str = 'static'
    title_as_filename: bool = False
    skip_img_download: bool = False
    dump_json: bool = False
    web_base_url: str = 'https://www.feishu.cn'

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ExportOptions':
        return cls(
            image_dir=get_nested(config, 'output.image_dir', 'static'),
            title_as_filename=bool(get_nested(config, 'output.title_as_filename', False)),
            skip_img_download=bool(get_nested(config, 'output.skip_img_download', False)),
            dump_json=bool(get_nested(config, 'output.dump_json', False)),
            web_base_url=get_nested(config, 'output.web_base_url', 'https://www.feishu.cn')
        )


__all__ = [
    'BlockType',
    'TEXT_BLOCK_TYPES',
    'InlineKind',
    'TextStyle',
    'InlineElement',
    'TextBody',
    'MergeInfo',
    'TablePayload',
    'ImagePayload',
    'FilePayload',
    'SheetPayload',
    'BitablePayload',
    'DiagramPayload',
    'IframePayload',
    'Block',
    'DocumentMeta',
    'BlockPage',
    'WikiNode',
    'DriveFile',
    'Resource',
    'SavedResource',
    'JobKind',
    'FILE_OBJECT_TYPES',
    'CrawlJob',
    'RenderOptions',
    'ExportOptions'
]
