import copy

import pytest

from formbuilder.exceptions import FieldNotFoundError
from formbuilder.models import Column, InputField, RowLayout, Section
from formbuilder.services.mutator import (
    InsertionPoint,
    add_column,
    add_field,
    delete_field,
    find_duplicate_ids,
    find_field,
    iter_fields,
    move_field,
    parse_layout,
    relayout,
    remove_column,
    set_column_width,
    update_field,
    width_percent,
)
from tests.builders import nested_tree, row, text


@pytest.mark.parametrize("field_id", ["t1", "a", "r1", "deep", "b", "r3", "s1"])
def test_update_then_find_returns_the_update_at_every_depth(field_id):
    tree = nested_tree()
    original = find_field(tree, field_id)
    updated = copy.deepcopy(original)
    updated.label = "Changed"
    updated.required = True

    result = update_field(tree, updated)

    assert find_field(result, field_id) == updated
    assert find_field(tree, field_id) == original


def test_update_shares_untouched_branches():
    tree = nested_tree()
    result = update_field(tree, text("deep", "Renamed"))
    assert result[1] is tree[1]
    assert result[3] is tree[3]
    assert result[2] is not tree[2]


def test_update_with_unknown_id_keeps_content():
    tree = nested_tree()
    assert update_field(tree, text("missing")) == tree


def test_duplicate_ids_update_first_depth_first_match_only():
    tree = [row("r", [text("dup", "inner")]), text("dup", "outer")]
    assert find_duplicate_ids(tree) == ["dup"]
    result = update_field(tree, text("dup", "new"))
    assert result[0].columns[0].fields[0].label == "new"
    assert result[1].label == "outer"


def test_delete_nested_field_leaves_siblings_intact():
    tree = nested_tree()
    result = delete_field(tree, "deep")

    assert find_field(result, "deep") is None
    section = result[2]
    assert section.id == "s1"
    outer_row = section.rows[0]
    assert outer_row.id == "r1"
    assert outer_row.columns[0].fields == [text("a", "A")]
    inner = outer_row.columns[1].fields[0]
    assert inner.id == "r2"
    assert inner.columns[0].fields == []
    assert inner.columns[1].fields == [text("deep2", "Deep 2")]
    assert [item.id for item in result] == ["h", "t1", "s1", "r3"]
    assert find_field(tree, "deep") is not None


def test_delete_composite_removes_subtree():
    result = delete_field(nested_tree(), "s1")
    remaining = {item.id for item in iter_fields(result)}
    assert remaining == {"h", "t1", "r3", "b", "c"}


def test_delete_section_row():
    result = delete_field(nested_tree(), "r1")
    assert result[2].rows == []


def test_add_field_at_root_and_in_columns():
    tree = nested_tree()
    new = text("n", "New")

    at_root = add_field(tree, new)
    assert at_root[-1] == new
    assert len(tree) == 4

    in_row = add_field(tree, new, InsertionPoint(row_id="r3", column=1))
    assert [item.id for item in in_row[3].columns[1].fields] == ["c", "n"]

    in_section = add_field(tree, new, InsertionPoint(row_id="r2", column=0, section_id="s1"))
    assert [item.id for item in find_field(in_section, "r2").columns[0].fields] == ["deep", "n"]
    assert [item.id for item in find_field(tree, "r2").columns[0].fields] == ["deep"]


def test_add_field_rejects_missing_targets():
    tree = nested_tree()
    with pytest.raises(FieldNotFoundError):
        add_field(tree, text("n"), InsertionPoint(row_id="nope"))
    with pytest.raises(FieldNotFoundError):
        add_field(tree, text("n"), InsertionPoint(row_id="r3", section_id="s1"))
    with pytest.raises(IndexError):
        add_field(tree, text("n"), InsertionPoint(row_id="r3", column=5))


def test_move_field():
    tree = nested_tree()
    assert [item.id for item in move_field(tree, 0, 3)] == ["t1", "s1", "r3", "h"]


def test_column_add_remove_keep_layout_in_lockstep():
    layout = row("r", [text("x")], [text("y")])
    widened = add_column(layout)
    assert widened.layout == ["1/2", "1/2", "1/2"]
    assert len(widened.columns) == 3
    assert len(layout.columns) == 2

    narrowed = remove_column(widened, 0)
    assert narrowed.layout == ["1/2", "1/2"]
    assert narrowed.columns[0].fields == [text("y")]

    with pytest.raises(IndexError):
        remove_column(layout, 2)

    assert set_column_width(layout, 1, "25%").layout == ["1/2", "25%"]


def test_relayout_preserves_surviving_columns():
    layout = row("r", [text("1"), text("2"), text("3")], [text("4")])
    result = relayout(layout, "1/3 + 1/3 + 1/3")

    assert result.layout == ["1/3", "1/3", "1/3"]
    assert result.columns[0].fields == layout.columns[0].fields
    assert result.columns[1].fields == layout.columns[1].fields
    assert result.columns[2].fields == []


def test_relayout_drops_trailing_columns_and_ignores_empty_widths():
    layout = row("r", [text("1")], [text("2")], [text("3")], widths=["1/3", "1/3", "1/3"])
    result = relayout(layout, ["1/2", "1/2"])
    assert [len(column.fields) for column in result.columns] == [1, 1]
    assert relayout(layout, " + ") is layout


def test_parse_layout():
    assert parse_layout("1/2 + 25% +  1/4 +") == ["1/2", "25%", "1/4"]
    assert parse_layout("") == []


@pytest.mark.parametrize(
    "width, expected",
    [
        ("1/3", 100 / 3),
        ("1/2", 50.0),
        ("50%", 50.0),
        ("33", 33.0),
        (25, 25.0),
        ("0/0", 100.0),
        ("0/3", 100.0),
        ("-1/2", 100.0),
        ("a/b", 100.0),
        ("", 100.0),
        (None, 100.0),
        ("wide", 100.0),
        ("inf", 100.0),
        ("1e400%", 100.0),
        ("nan", 100.0),
        (float("inf"), 100.0),
        ("50 %", 50.0),
        (True, 100.0),
    ],
)
def test_width_percent(width, expected):
    assert width_percent(width) == pytest.approx(expected)


def test_iter_fields_visits_every_node_depth_first():
    ids = [item.id for item in iter_fields(nested_tree())]
    assert ids == ["h", "t1", "s1", "r1", "a", "r2", "deep", "deep2", "r3", "b", "c"]


def test_section_row_can_be_replaced():
    tree = nested_tree()
    replacement = RowLayout(id="r1", columns=[Column("1/1", [InputField(id="z", type="number")])])
    result = update_field(tree, replacement)
    assert isinstance(result[2], Section)
    assert result[2].rows == [replacement]


def test_section_row_replaced_by_a_leaf_raises():
    tree = nested_tree()
    with pytest.raises(TypeError):
        update_field(tree, text("r1", "Not a row"))
    assert find_field(tree, "r1").columns[0].fields == [text("a", "A")]


def test_deleting_a_section_row_keeps_the_other_rows():
    section = Section(id="s", rows=[row("r1", [text("a")]), row("r2", [text("b")])])
    result = delete_field([section], "r1")
    assert [r.id for r in result[0].rows] == ["r2"]
