"""Rendering of inline text elements to Markdown."""

from typing import Sequence

from models import InlineElement, InlineKind, TextBody, TextStyle
from url_parser import unescape_url


class InlineStyler:
    """Converts inline elements (styled runs, mentions, equations) to Markdown.

    A styled run gets exactly one wrapper, picked in the order bold,
    italic, strikethrough, underline, inline code, link. Further flags on
    the same run are ignored.
    """

    def __init__(self, use_html_tags: bool = False):
        self.use_html_tags = use_html_tags

    def render_text(self, body: TextBody) -> str:
        """Render a whole text body followed by a newline."""
        return self.render(body.elements, len(body.elements) > 1) + '\n'

    def render(self, elements: Sequence[InlineElement], multi_element_context: bool = False) -> str:
        return ''.join(self.render_element(e, multi_element_context) for e in elements)

    def render_element(self, element: InlineElement, multi_element_context: bool = False) -> str:
        if element.kind == InlineKind.TEXT_RUN:
            return self._render_run(element.content, element.style)
        if element.kind == InlineKind.MENTION_USER:
            return element.user_id
        if element.kind == InlineKind.MENTION_DOC:
            return f"[{element.title}]({unescape_url(element.url)})"
        if element.kind == InlineKind.EQUATION:
            symbol = '$' if multi_element_context else '$$'
            content = element.content
            if content.endswith('\n'):
                content = content[:-1]
            return f"{symbol}{content}{symbol}"
        return ''

    def _render_run(self, content: str, style: TextStyle) -> str:
        if style.bold:
            prefix, suffix = ('<strong>', '</strong>') if self.use_html_tags else ('**', '**')
        elif style.italic:
            prefix, suffix = ('<em>', '</em>') if self.use_html_tags else ('_', '_')
        elif style.strikethrough:
            prefix, suffix = ('<del>', '</del>') if self.use_html_tags else ('~~', '~~')
        elif style.underline:
            prefix, suffix = '<u>', '</u>'
        elif style.inline_code:
            prefix, suffix = '`', '`'
        elif style.link_url:
            prefix, suffix = '[', f"]({unescape_url(style.link_url)})"
        else:
            return content
        return f"{prefix}{content}{suffix}"
