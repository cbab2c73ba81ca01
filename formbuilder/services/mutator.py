"""Pure mutations of a field tree.

Every function returns new containers and leaves its arguments untouched;
branches that are not on the path to the change are shared with the input.
Nodes are matched by ``id`` depth-first in the order root list, section rows,
row columns, column fields.  When a tree carries duplicate ids only the first
match is touched.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Optional, Sequence, Union

from ..exceptions import FieldNotFoundError
from ..models import DEFAULT_COLUMN_WIDTH, Column, Field, RowLayout, Section, Tree

logger = logging.getLogger(__name__)

FULL_WIDTH = 100.0


@dataclass(frozen=True, slots=True)
class InsertionPoint:
    """Where :func:`add_field` places a new field.

    ``row_id=None`` means the root list.  Otherwise the field goes into column
    ``column`` of the row layout ``row_id``; ``section_id`` limits the row
    lookup to that section's rows.
    """

    row_id: Optional[str] = None
    column: int = 0
    section_id: Optional[str] = None


ROOT = InsertionPoint()


# ----------------------------------------------------------------------
# Width handling
# ----------------------------------------------------------------------
def parse_layout(text: str) -> list[str]:
    """Split ``"1/2 + 1/4 + 25%"`` into its column width descriptors."""

    return [part.strip() for part in (text or "").split("+") if part.strip()]


def width_percent(width: Union[str, int, float, None]) -> float:
    """Resolve a column width descriptor to a percentage.

    Fractions with a non-positive or non-numeric part, non-finite results and
    anything else that cannot be read fall back to full width.
    """

    percent = _raw_percent(width)
    if percent is None or not math.isfinite(percent) or percent <= 0:
        return FULL_WIDTH
    return percent


def _raw_percent(width: Union[str, int, float, None]) -> Optional[float]:
    if width is None or isinstance(width, bool):
        return None
    if isinstance(width, (int, float)):
        return float(width)
    text = str(width).strip()
    try:
        if "/" in text:
            numerator, _, denominator = text.partition("/")
            num = float(numerator)
            den = float(denominator)
            if num <= 0 or den <= 0:
                return None
            return num / den * 100
        return float(text[:-1] if text.endswith("%") else text)
    except ValueError:
        return None


# ----------------------------------------------------------------------
# Traversal
# ----------------------------------------------------------------------
def iter_fields(tree: Sequence[Field]) -> Iterator[Field]:
    """Yield every node of ``tree`` depth-first, containers before children."""

    for item in tree:
        yield item
        if isinstance(item, Section):
            for row in item.rows:
                yield from iter_fields([row])
        elif isinstance(item, RowLayout):
            for column in item.columns:
                yield from iter_fields(column.fields)


def find_field(tree: Sequence[Field], field_id: str) -> Optional[Field]:
    for item in iter_fields(tree):
        if item.id == field_id:
            return item
    return None


def find_duplicate_ids(tree: Sequence[Field]) -> list[str]:
    """Return ids that occur more than once anywhere in ``tree``."""

    seen: set[str] = set()
    duplicates: list[str] = []
    for item in iter_fields(tree):
        if item.id in seen and item.id not in duplicates:
            duplicates.append(item.id)
        seen.add(item.id)
    return duplicates


# ``_transform`` walks the tree with a callback that sees each node and returns
# ``None`` to leave it alone, ``[]`` to drop it or ``[node]`` to replace it.
# The second element of each return value reports whether the callback fired,
# which stops the walk after the first match.
_Visitor = Callable[[Field], Optional[list[Field]]]


def _transform_list(items: Sequence[Field], visit: _Visitor) -> tuple[list[Field], bool]:
    for index, item in enumerate(items):
        replacement = visit(item)
        if replacement is not None:
            return [*items[:index], *replacement, *items[index + 1 :]], True
        new_item, changed = _transform_children(item, visit)
        if changed:
            return [*items[:index], new_item, *items[index + 1 :]], True
    return list(items), False


def _transform_row(row: RowLayout, visit: _Visitor) -> tuple[RowLayout, bool]:
    for index, column in enumerate(row.columns):
        new_fields, changed = _transform_list(column.fields, visit)
        if changed:
            columns = list(row.columns)
            columns[index] = replace(column, fields=new_fields)
            return replace(row, columns=columns), True
    return row, False


def _transform_children(item: Field, visit: _Visitor) -> tuple[Field, bool]:
    if isinstance(item, RowLayout):
        return _transform_row(item, visit)
    if isinstance(item, Section):
        for index, row in enumerate(item.rows):
            replacement = visit(row)
            if replacement is not None:
                for new_row in replacement:
                    if not isinstance(new_row, RowLayout):
                        raise TypeError(
                            f"Section {item.id} can only hold row layouts, not {new_row.type!r} field {new_row.id}"
                        )
                rows = [*item.rows[:index], *replacement, *item.rows[index + 1 :]]
                return replace(item, rows=rows), True
            new_row, changed = _transform_row(row, visit)
            if changed:
                rows = list(item.rows)
                rows[index] = new_row
                return replace(item, rows=rows), True
    return item, False


# ----------------------------------------------------------------------
# Field operations
# ----------------------------------------------------------------------
def add_field(tree: Sequence[Field], new_field: Field, at: InsertionPoint = ROOT) -> Tree:
    """Return ``tree`` with ``new_field`` appended at ``at``."""

    if at.row_id is None:
        return [*tree, new_field]

    def _append(item: Field) -> Optional[list[Field]]:
        if not isinstance(item, RowLayout) or item.id != at.row_id:
            return None
        if not 0 <= at.column < len(item.columns):
            raise IndexError(f"Row {item.id} has no column {at.column}")
        columns = list(item.columns)
        target = columns[at.column]
        columns[at.column] = replace(target, fields=[*target.fields, new_field])
        return [replace(item, columns=columns)]

    if at.section_id is not None:

        def _in_section(item: Field) -> Optional[list[Field]]:
            if not isinstance(item, Section) or item.id != at.section_id:
                return None
            new_section, changed = _transform_children(item, _append)
            if not changed:
                raise FieldNotFoundError(at.row_id)
            return [new_section]

        new_tree, found = _transform_list(tree, _in_section)
        if not found:
            raise FieldNotFoundError(at.section_id)
        return new_tree

    new_tree, found = _transform_list(tree, _append)
    if not found:
        raise FieldNotFoundError(at.row_id)
    return new_tree


def update_field(tree: Sequence[Field], updated: Field) -> Tree:
    """Replace the first node whose id matches ``updated.id``."""

    def _swap(item: Field) -> Optional[list[Field]]:
        if item.id == updated.id:
            return [updated]
        return None

    new_tree, found = _transform_list(tree, _swap)
    if not found:
        logger.debug("update_field: no field with id %s", updated.id)
    return new_tree


def delete_field(tree: Sequence[Field], field_id: str) -> Tree:
    """Remove the node ``field_id`` (and its subtree) wherever it lives."""

    def _drop(item: Field) -> Optional[list[Field]]:
        if item.id == field_id:
            return []
        return None

    new_tree, found = _transform_list(tree, _drop)
    if not found:
        logger.debug("delete_field: no field with id %s", field_id)
    return new_tree


def move_field(tree: Sequence[Field], source: int, destination: int) -> Tree:
    """Move the root field at ``source`` to ``destination`` (drag and drop result)."""

    items = list(tree)
    if not 0 <= source < len(items):
        raise IndexError(f"No field at position {source}")
    moved = items.pop(source)
    items.insert(max(0, min(destination, len(items))), moved)
    return items


# ----------------------------------------------------------------------
# Row layout operations
# ----------------------------------------------------------------------
def add_column(row: RowLayout, width: str = DEFAULT_COLUMN_WIDTH) -> RowLayout:
    return replace(row, columns=[*row.columns, Column(width=width, fields=[])])


def remove_column(row: RowLayout, index: int) -> RowLayout:
    """Drop column ``index`` together with every field inside it."""

    if not 0 <= index < len(row.columns):
        raise IndexError(f"Row {row.id} has no column {index}")
    return replace(row, columns=[c for i, c in enumerate(row.columns) if i != index])


def set_column_width(row: RowLayout, index: int, width: str) -> RowLayout:
    if not 0 <= index < len(row.columns):
        raise IndexError(f"Row {row.id} has no column {index}")
    columns = list(row.columns)
    columns[index] = replace(columns[index], width=width)
    return replace(row, columns=columns)


def relayout(row: RowLayout, width_specs: Union[str, Sequence[str]]) -> RowLayout:
    """Rebuild the columns of ``row`` from new width descriptors.

    Fields stay with their column index; columns past the new count are
    discarded and new ones start empty.  No widths leaves ``row`` as is.
    """

    widths = parse_layout(width_specs) if isinstance(width_specs, str) else [str(w) for w in width_specs]
    if not widths:
        return row
    columns = []
    for index, width in enumerate(widths):
        fields = list(row.columns[index].fields) if index < len(row.columns) else []
        columns.append(Column(width=width, fields=fields))
    dropped = len(row.columns) - len(widths)
    if dropped > 0:
        logger.debug("relayout: row %s drops %d trailing column(s)", row.id, dropped)
    return replace(row, columns=columns)


__all__ = [
    "InsertionPoint",
    "ROOT",
    "parse_layout",
    "width_percent",
    "iter_fields",
    "find_field",
    "find_duplicate_ids",
    "add_field",
    "update_field",
    "delete_field",
    "move_field",
    "add_column",
    "remove_column",
    "set_column_width",
    "relayout",
]
