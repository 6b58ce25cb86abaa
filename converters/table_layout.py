"""HTML table layout with merged cells."""

from typing import Callable, Dict, List, Sequence, Set, Tuple

from models import MergeInfo


class TableLayout:
    """Lays out a flat list of table cells as an HTML table.

    Cell i sits at row i // column_count, column i % column_count. Merged
    cells emit rowspan/colspan and hide the positions they cover.
    """

    @staticmethod
    def render(
        column_count: int,
        cell_ids: Sequence[str],
        merge_info: Dict[Tuple[int, int], MergeInfo],
        cell_renderer: Callable[[str], str]
    ) -> str:
        """
        Render the table.

        Args:
            column_count: Number of columns (non-positive counts as 1)
            cell_ids: Cell block ids in row-major order
            merge_info: Spans keyed by (row, col); absent means 1x1
            cell_renderer: Renders a cell id to its content

        Returns:
            HTML table string
        """
        if column_count <= 0:
            column_count = 1

        rows: List[List[str]] = []
        for i, cell_id in enumerate(cell_ids):
            row_index, col_index = divmod(i, column_count)
            while len(rows) <= row_index:
                rows.append([])
            row = rows[row_index]
            while len(row) <= col_index:
                row.append('')
            row[col_index] = cell_renderer(cell_id).replace('\n', '')

        parts = ['<table>\n']
        covered: Set[Tuple[int, int]] = set()

        for row_index, row in enumerate(rows):
            parts.append('<tr>\n')
            for col_index, content in enumerate(row):
                if (row_index, col_index) in covered:
                    continue

                merge = merge_info.get((row_index, col_index))
                if merge is not None and merge.is_merged():
                    attributes = ''
                    if merge.row_span > 1:
                        attributes += f' rowspan="{merge.row_span}"'
                    if merge.col_span > 1:
                        attributes += f' colspan="{merge.col_span}"'
                    parts.append(f'<td{attributes}>{content}</td>')
                    for r in range(row_index, row_index + merge.row_span):
                        for c in range(col_index, col_index + merge.col_span):
                            covered.add((r, c))
                else:
                    parts.append(f'<td>{content}</td>')
            parts.append('</tr>\n')

        parts.append('</table>\n')
        return ''.join(parts)
