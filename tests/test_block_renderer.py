"""Tests for rendering block trees to Markdown."""

from builders import FakeFetcher, make_block, page_block, run, text_block
from converters import render_document
from converters.block_renderer import BlockRenderer, attachment_kind
from fetchers.base_fetcher import RemoteFetchError
from models import Block, BlockType, DocumentMeta, RenderOptions, SavedResource


def render(blocks, renderer=None, doc_id='doc'):
    renderer = renderer or BlockRenderer()
    return renderer.render_document(DocumentMeta(document_id=doc_id), blocks)


def document(children):
    """Page block 'doc' (empty title) followed by the given child blocks."""
    return [page_block('doc', children=[c.block_id for c in children if c.parent_id == 'doc'])] + list(children)


class TestDocumentStructure:
    """Tests for the page root and block nesting."""

    def test_heading_and_bullet(self):
        blocks = document([
            text_block('h1', BlockType.HEADING1, 'Title', 'doc'),
            text_block('b1', BlockType.BULLET, 'Item', 'doc'),
        ])
        assert render(blocks) == '# \n\n# Title\n\n- Item\n\n'

    def test_page_title(self):
        blocks = [page_block('doc', 'My Doc', ['t1']), text_block('t1', BlockType.TEXT, 'body', 'doc')]
        assert render(blocks) == '# My Doc\n\nbody\n\n'

    def test_nested_bullet_is_indented(self):
        blocks = document([
            text_block('b1', BlockType.BULLET, 'Parent', 'doc', ['b2']),
            text_block('b2', BlockType.BULLET, 'Child', 'b1', ['b3']),
            text_block('b3', BlockType.ORDERED, 'Grandchild', 'b2'),
        ])
        assert render(blocks) == '# \n\n- Parent\n\t- Child\n\t\t1. Grandchild\n\n'

    def test_custom_indent_unit(self):
        blocks = document([
            text_block('b1', BlockType.BULLET, 'Parent', 'doc', ['b2']),
            text_block('b2', BlockType.BULLET, 'Child', 'b1'),
        ])
        renderer = BlockRenderer(RenderOptions(indent_unit='  '))
        assert render(blocks, renderer) == '# \n\n- Parent\n  - Child\n\n'

    def test_heading_children_are_not_indented(self):
        blocks = document([
            text_block('h2', BlockType.HEADING2, 'Section', 'doc', ['t1']),
            text_block('t1', BlockType.TEXT, 'under', 'h2'),
        ])
        assert render(blocks) == '# \n\n## Section\nunder\n\n'

    def test_unknown_block_renders_children_only(self):
        blocks = document([
            Block.from_dict({'block_id': 'u', 'block_type': 777, 'parent_id': 'doc', 'children': ['t1']}),
            text_block('t1', BlockType.TEXT, 'inside', 'u'),
        ])
        assert render(blocks) == '# \n\ninside\n\n'

    def test_missing_child_is_skipped(self):
        blocks = [page_block('doc', children=['ghost', 't1']), text_block('t1', BlockType.TEXT, 'kept', 'doc')]
        assert render(blocks) == '# \n\nkept\n\n'

    def test_root_falls_back_to_first_parentless_block(self):
        blocks = [page_block('root', 'Root', ['t1']), text_block('t1', BlockType.TEXT, 'x', 'root')]
        assert render(blocks, doc_id='elsewhere') == '# Root\n\nx\n\n'

    def test_no_root(self):
        assert render([text_block('t1', BlockType.TEXT, 'x', 'p')], doc_id='doc') == ''


class TestOrderedNumbering:
    """Tests for ordered list numbering."""

    def test_numbering_restarts_after_other_block(self):
        blocks = document([
            text_block('o1', BlockType.ORDERED, 'A', 'doc'),
            text_block('o2', BlockType.ORDERED, 'B', 'doc'),
            text_block('t', BlockType.TEXT, 'mid', 'doc'),
            text_block('o3', BlockType.ORDERED, 'C', 'doc'),
        ])
        assert render(blocks) == '# \n\n1. A\n\n2. B\n\nmid\n\n1. C\n\n'

    def test_numbering_restarts_after_bullet(self):
        blocks = document([
            text_block('o1', BlockType.ORDERED, 'A', 'doc'),
            text_block('o2', BlockType.ORDERED, 'B', 'doc'),
            text_block('b', BlockType.BULLET, 'dot', 'doc'),
            text_block('o3', BlockType.ORDERED, 'C', 'doc'),
        ])
        assert render(blocks) == '# \n\n1. A\n\n2. B\n\n- dot\n\n1. C\n\n'

    def test_missing_parent_numbers_one(self):
        blocks = [text_block('o1', BlockType.ORDERED, 'A')]
        assert render(blocks, doc_id='o1') == '1. A\n'


class TestLeafBlocks:
    """Tests for individual block types."""

    def test_code_block(self):
        code = make_block('c', BlockType.CODE, 'doc', payload={
            'elements': [run('print(1)\n')],
            'style': {'language': 49}
        })
        assert render(document([code])) == '# \n\n```python\nprint(1)\n```\n\n'

    def test_code_block_plain_text_language(self):
        code = make_block('c', BlockType.CODE, 'doc', payload={'elements': [run('x')], 'style': {'language': 1}})
        assert render(document([code])) == '# \n\n```\nx\n```\n\n'

    def test_quote(self):
        assert render(document([text_block('q', BlockType.QUOTE, 'quoted', 'doc')])) == '# \n\n> quoted\n\n'

    def test_quote_container(self):
        blocks = document([
            make_block('qc', BlockType.QUOTE_CONTAINER, 'doc', ['t1', 't2']),
            text_block('t1', BlockType.TEXT, 'a', 'qc'),
            text_block('t2', BlockType.TEXT, 'b', 'qc'),
        ])
        assert render(blocks) == '# \n\n> a  \n> b  \n'

    def test_callout(self):
        blocks = document([
            make_block('co', BlockType.CALLOUT, 'doc', ['t1']),
            text_block('t1', BlockType.TEXT, 'tip text', 'co'),
        ])
        assert render(blocks) == '# \n\n>[!TIP] \ntip text\n\n'

    def test_divider(self):
        assert render(document([make_block('d', BlockType.DIVIDER, 'doc')])) == '# \n\n---\n\n'

    def test_equation_block(self):
        eq = make_block('e', BlockType.EQUATION, 'doc', payload={'elements': [{'equation': {'content': 'x^2\n'}}]})
        assert render(document([eq])) == '# \n\n$$\nx^2\n$$\n\n'

    def test_todo(self):
        blocks = document([
            make_block('t1', BlockType.TODO, 'doc', payload={'elements': [run('done')], 'style': {'done': True}}),
            make_block('t2', BlockType.TODO, 'doc', payload={'elements': [run('open')], 'style': {}}),
        ])
        assert render(blocks) == '# \n\n- [x] done\n\n- [ ] open\n\n'

    def test_grid_flattens_columns(self):
        blocks = document([
            make_block('g', BlockType.GRID, 'doc', ['col1', 'col2']),
            make_block('col1', BlockType.GRID_COLUMN, 'g', ['t1']),
            make_block('col2', BlockType.GRID_COLUMN, 'g', ['t2']),
            text_block('t1', BlockType.TEXT, 'left', 'col1'),
            text_block('t2', BlockType.TEXT, 'right', 'col2'),
        ])
        assert render(blocks) == '# \n\nleft\nright\n\n'

    def test_table(self):
        blocks = document([
            make_block('tbl', BlockType.TABLE, 'doc', ['c1', 'c2'], payload={
                'cells': ['c1', 'c2'],
                'property': {'row_size': 1, 'column_size': 2}
            }),
            make_block('c1', BlockType.TABLE_CELL, 'tbl', ['p1']),
            make_block('c2', BlockType.TABLE_CELL, 'tbl', ['p2']),
            text_block('p1', BlockType.TEXT, 'x', 'c1'),
            text_block('p2', BlockType.TEXT, 'y', 'c2'),
        ])
        assert render(blocks) == '# \n\n<table>\n<tr>\n<td>x<br/></td><td>y<br/></td></tr>\n</table>\n\n'


class TestImages:
    """Tests for image token collection."""

    def test_image_token_is_collected(self):
        renderer = BlockRenderer()
        blocks = document([make_block('i', BlockType.IMAGE, 'doc', payload={'token': 'imgTok'})])
        assert render(blocks, renderer) == '# \n\n![](imgTok)\n\n'
        assert renderer.img_tokens == ['imgTok']

    def test_rendering_twice_is_idempotent(self):
        renderer = BlockRenderer()
        blocks = document([
            make_block('i1', BlockType.IMAGE, 'doc', payload={'token': 'a'}),
            text_block('t', BlockType.TEXT, 'between', 'doc'),
            make_block('i2', BlockType.IMAGE, 'doc', payload={'token': 'b'}),
        ])
        first = render(blocks, renderer)
        first_tokens = list(renderer.img_tokens)
        second = render(blocks, renderer)

        assert first == second
        assert renderer.img_tokens == first_tokens == ['a', 'b']

    def test_render_document_helper(self):
        blocks = document([make_block('i', BlockType.IMAGE, 'doc', payload={'token': 'tok'})])
        markdown, tokens = render_document(DocumentMeta(document_id='doc'), blocks)
        assert markdown == '# \n\n![](tok)\n\n'
        assert tokens == ['tok']


class TestAttachments:
    """Tests for file blocks."""

    def test_attachment_kind(self):
        assert attachment_kind('clip.MP4') == 'video'
        assert attachment_kind('report.pdf') == 'PDF'
        assert attachment_kind('notes.docx') == 'Word document'
        assert attachment_kind('data.xlsx') == 'Excel spreadsheet'
        assert attachment_kind('archive.zip') == 'file'

    def test_saved_attachment(self):
        calls = []

        def saver(token, name):
            calls.append((token, name))
            return SavedResource(path='out/report.pdf', size=10)

        renderer = BlockRenderer(attachment_saver=saver)
        blocks = document([make_block('f', BlockType.FILE, 'doc', payload={'token': 'boxTok', 'name': 'report.pdf'})])
        markdown = render(blocks, renderer)

        assert calls == [('boxTok', 'report.pdf')]
        assert '**Attachment**: report.pdf (PDF)' in markdown
        assert '**Downloaded**: saved to `out/report.pdf` (size: 10 bytes)' in markdown
        assert 'File Token' not in markdown

    def test_attachment_without_saver(self):
        blocks = document([make_block('f', BlockType.FILE, 'doc', payload={'token': 'boxTok', 'name': 'a.zip'})])
        markdown = render(blocks)
        assert '**Attachment**: a.zip (file)' in markdown
        assert '**File Token**: `boxTok`' in markdown

    def test_failed_attachment_falls_back_to_placeholder(self):
        renderer = BlockRenderer(attachment_saver=lambda token, name: None)
        blocks = document([make_block('f', BlockType.FILE, 'doc', payload={'token': 'boxTok', 'name': 'v.mov'})])
        markdown = render(blocks, renderer)
        assert '**File Token**: `boxTok`' in markdown
        assert 'this video attachment was not downloaded' in markdown


class TestEmbeddedTables:
    """Tests for sheet and bitable blocks."""

    def sheet_doc(self, token='shtA_s1'):
        return document([make_block('s', BlockType.SHEET, 'doc', payload={'token': token})])

    def test_sheet_without_fetcher_is_placeholder(self):
        markdown = render(self.sheet_doc())
        assert '> **📊 Embedded sheet**' in markdown
        assert '> Token: `shtA_s1`' in markdown
        assert 'content unavailable' in markdown

    def test_sheet_rendered_as_pipe_table(self):
        fetcher = FakeFetcher()
        fetcher.sheets['shtA_s1'] = [['h1', 'h2'], ['a', 'b']]
        markdown = render(self.sheet_doc(), BlockRenderer(fetcher=fetcher))
        assert markdown == '# \n\n\n\n| h1 | h2 |\n| --- | --- |\n| a | b |\n\n\n'

    def test_sheet_fetch_failure(self):
        fetcher = FakeFetcher()
        fetcher.failing.add('shtA_s1')
        markdown = render(self.sheet_doc(), BlockRenderer(fetcher=fetcher))
        assert '*Failed to fetch table content: fetch_sheet_values failed for shtA_s1*' in markdown

    def test_sheet_token_without_separator(self):
        class BadTokenFetcher(FakeFetcher):
            def fetch_sheet_values(self, token):
                try:
                    raise ValueError('missing underscore')
                except ValueError as e:
                    raise RemoteFetchError(str(e)) from e

        markdown = render(self.sheet_doc('plain'), BlockRenderer(fetcher=BadTokenFetcher()))
        assert 'embedded in an unsupported way' in markdown

    def test_sheet_permission_error(self):
        class DeniedFetcher(FakeFetcher):
            def fetch_sheet_values(self, token):
                raise RemoteFetchError('Lark API error 91402 on sheets: NOTEXIST')

        markdown = render(self.sheet_doc(), BlockRenderer(fetcher=DeniedFetcher()))
        assert 'cannot be accessed' in markdown

    def test_empty_bitable(self):
        fetcher = FakeFetcher()
        fetcher.bitables['bas_tbl'] = []
        blocks = document([make_block('bt', BlockType.BITABLE, 'doc', payload={'token': 'bas_tbl'})])
        markdown = render(blocks, BlockRenderer(fetcher=fetcher))
        assert '> **📊 Embedded bitable**' in markdown
        assert 'the table is empty' in markdown


class TestOtherPlaceholders:
    """Tests for diagram and iframe placeholders."""

    def test_flowchart(self):
        blocks = document([make_block('dg', BlockType.DIAGRAM, 'doc', payload={'diagram_type': 1})])
        assert '**📈 Flowchart**' in render(blocks)

    def test_uml(self):
        blocks = document([make_block('dg', BlockType.DIAGRAM, 'doc', payload={'diagram_type': 2})])
        assert '**📈 UML diagram**' in render(blocks)

    def test_iframe_with_url(self):
        blocks = document([make_block('if', BlockType.IFRAME, 'doc', payload={
            'component': {'iframe_type': 15, 'url': 'https://youtu.be/x'}
        })])
        markdown = render(blocks)
        assert '**🔗 Embedded content**' in markdown
        assert '> Type: YouTube\n>\n> Link: https://youtu.be/x\n' in markdown

    def test_iframe_without_payload(self):
        blocks = document([make_block('if', BlockType.IFRAME, 'doc')])
        markdown = render(blocks)
        assert 'Type:' not in markdown
        assert 'open Feishu to view it' in markdown
