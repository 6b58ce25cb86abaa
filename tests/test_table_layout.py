"""Tests for HTML table layout with merged cells."""

from converters.table_layout import TableLayout
from models import MergeInfo


def identity(cell_id):
    return cell_id


class TestTableLayout:
    """Tests for TableLayout.render."""

    def test_plain_grid(self):
        html = TableLayout.render(2, ['a', 'b', 'c', 'd'], {}, identity)
        assert html == (
            '<table>\n'
            '<tr>\n<td>a</td><td>b</td></tr>\n'
            '<tr>\n<td>c</td><td>d</td></tr>\n'
            '</table>\n'
        )

    def test_rowspan_hides_covered_cell(self):
        html = TableLayout.render(2, ['a', 'b', 'c', 'd'], {(0, 0): MergeInfo(row_span=2)}, identity)
        assert html == (
            '<table>\n'
            '<tr>\n<td rowspan="2">a</td><td>b</td></tr>\n'
            '<tr>\n<td>d</td></tr>\n'
            '</table>\n'
        )

    def test_colspan_and_rowspan(self):
        merge = {(0, 0): MergeInfo(row_span=2, col_span=2)}
        html = TableLayout.render(3, list('abcdef'), merge, identity)
        assert '<td rowspan="2" colspan="2">a</td><td>c</td>' in html
        assert '<tr>\n<td>f</td></tr>\n' in html
        assert '>b<' not in html
        assert '>d<' not in html
        assert '>e<' not in html

    def test_one_by_one_merge_is_plain(self):
        html = TableLayout.render(1, ['a'], {(0, 0): MergeInfo()}, identity)
        assert html == '<table>\n<tr>\n<td>a</td></tr>\n</table>\n'

    def test_newlines_removed_from_content(self):
        html = TableLayout.render(1, ['x'], {}, lambda _: 'line1\nline2\n')
        assert '<td>line1line2</td>' in html

    def test_non_positive_column_count(self):
        html = TableLayout.render(0, ['a', 'b'], {}, identity)
        assert html == '<table>\n<tr>\n<td>a</td></tr>\n<tr>\n<td>b</td></tr>\n</table>\n'

    def test_empty_table(self):
        assert TableLayout.render(3, [], {}, identity) == '<table>\n</table>\n'
