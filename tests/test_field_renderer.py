import logging
from datetime import date

import pytest

from formbuilder.models import ChoiceField, InputField, Option, Section, StaticField, UnknownField
from formbuilder.services.renderer import REQUIRED_MESSAGE, normalize_tags, render, render_form, toggle
from tests.builders import nested_tree, row, text


def _options():
    return [Option("Red", "red"), Option("Blue", "blue"), Option("Green", "green")]


class _Recorder:
    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args if len(args) > 1 else args[0])


def test_static_text_falls_back_to_label_and_reports_edits():
    seen = _Recorder()
    node = render(StaticField(id="h", type="header", label="Welcome"), None, seen)
    assert node.kind == "editable-text"
    assert node.props["tag"] == "h4"
    assert node.props["text"] == "Welcome"

    node.on_change("Hello")
    node.on_change(None)
    assert seen.calls == ["Hello", ""]

    unnamed = render(StaticField(id="p", type="paragraph"))
    assert unnamed.props == {"tag": "p", "text": "Paragraph"}
    assert render(StaticField(id="l", type="label", label="x"), "edited").props["text"] == "edited"


def test_linebreak_renders_rule():
    assert render(StaticField(id="br", type="linebreak")).kind == "rule"


def test_input_fields():
    seen = _Recorder()
    node = render(InputField(id="n", type="number", label="Age"), "42", seen)
    assert node.kind == "input"
    assert node.props["input_type"] == "number"
    assert node.props["value"] == "42"
    node.on_change("43")
    assert seen.calls == ["43"]

    dated = render(InputField(id="d", type="date", label="Born"), None, today=date(2024, 5, 17))
    assert dated.props["max"] == "2024-05-17"
    assert dated.props["value"] == ""


def test_error_flag_adds_message():
    node = render(text("t", "Name", required=True), "", error=True)
    assert node.error is True
    assert node.props["error_message"] == REQUIRED_MESSAGE
    assert "error_message" not in render(text("t", "Name")).props


def test_dropdown_starts_with_placeholder():
    seen = _Recorder()
    node = render(ChoiceField(id="c", type="dropdown", label="Colour", options=_options()), "blue", seen)
    assert node.kind == "select"
    assert node.props["choices"][0] == ("", "Select...")
    assert node.props["choices"][2] == ("blue", "Blue")
    assert node.props["value"] == "blue"
    node.on_change(None)
    assert seen.calls == [""]


def test_multiple_choice_selects_clicked_option():
    seen = _Recorder()
    node = render(ChoiceField(id="m", type="multipleChoice", options=_options()), "red", seen)
    assert node.kind == "radio-group"
    assert [child.props["checked"] for child in node.children] == [True, False, False]
    assert node.children[0].props["value"] == "red"
    node.children[2].on_change()
    assert seen.calls == ["green"]


def test_checkbox_toggle_appends_and_removes():
    seen = _Recorder()
    node = render(ChoiceField(id="c", type="checkboxes", options=_options()), ["red"], seen)
    assert node.kind == "checkbox-group"
    assert [child.props["checked"] for child in node.children] == [True, False, False]

    node.children[2].on_change(True)
    node.children[0].on_change(False)
    node.children[0].on_change(True)
    assert seen.calls == [["red", "green"], [], ["red"]]


def test_tags_accept_list_or_wrapped_value():
    seen = _Recorder()
    field = ChoiceField(id="g", type="tags", options=_options())
    wrapped = render(field, {"value": ["blue"]}, seen)
    bare = render(field, ["blue"], seen)

    for node in (wrapped, bare):
        assert node.kind == "chips"
        assert [child.props["selected"] for child in node.children] == [False, True, False]

    wrapped.children[1].on_change()
    wrapped.children[0].on_change()
    assert seen.calls == [[], ["blue", "red"]]


def test_normalize_tags_and_toggle():
    assert normalize_tags({"value": ["a"]}) == ["a"]
    assert normalize_tags(["a", "b"]) == ["a", "b"]
    assert normalize_tags("a") == []
    assert normalize_tags(None) == []
    assert toggle(["a"], "a", True) == ["a"]
    assert toggle(["a", "b"], "a", False) == ["b"]


def test_unknown_type_renders_error_node(caplog):
    with caplog.at_level(logging.WARNING, logger="formbuilder.services.renderer"):
        node = render(UnknownField(id="u", type="signature", label="Sign"))
    assert node.kind == "error"
    assert node.props["text"] == "Unknown field type: signature"
    assert "signature" in caplog.text


def test_row_merges_child_change_into_row_value():
    seen = _Recorder()
    layout = row("r", [text("a", "A")], [text("b", "B", required=True)], widths=["1/3", "2/3"])
    node = render(layout, {"a": "x", "b": ""}, seen, {"b": True})

    assert node.kind == "row"
    assert [column.props["width_percent"] for column in node.children] == pytest.approx([100 / 3, 200 / 3])
    assert node.find("a").props["value"] == "x"
    assert node.find("b").error is True
    assert node.find("a").error is False

    node.find("b").on_change("y")
    assert seen.calls == [{"a": "x", "b": "y"}]


def test_section_merges_nested_row_values():
    seen = _Recorder()
    section = Section(id="s", label="Contact", rows=[row("r", [text("e", "Email")], [text("p", "Phone")])])
    node = render(section, {"r": {"e": "a@b.c"}}, seen)

    assert node.kind == "section"
    assert node.label == "Contact"
    assert node.find("e").props["value"] == "a@b.c"

    node.find("p").on_change("555")
    assert seen.calls == [{"r": {"e": "a@b.c", "p": "555"}}]


def test_deeply_nested_row_change_reaches_the_section_value():
    seen = _Recorder()
    section = nested_tree()[2]
    node = render(section, {"r1": {"a": "1", "r2": {"deep": "old"}}}, seen)

    node.find("deep2").on_change("new")
    assert seen.calls == [{"r1": {"a": "1", "r2": {"deep": "old", "deep2": "new"}}}]


def test_render_form_uses_flat_answers_for_top_level_rows():
    seen = _Recorder()
    form = render_form(
        nested_tree(),
        {"t1": "Ann", "b": "bee", "c": "one"},
        seen,
        {"t1": True, "r3": {"b": True}},
        today=date(2024, 1, 1),
    )

    assert [child.kind for child in form.children] == ["editable-text", "input", "section", "row"]
    assert form.find("t1").error is True
    assert form.find("b").props["value"] == "bee"
    assert form.find("b").error is True
    assert form.find("c").props["value"] == "one"

    form.find("b").on_change("buzz")
    form.find("t1").on_change("Bob")
    assert seen.calls == [("b", "buzz"), ("t1", "Bob")]


def test_render_form_short_form_hides_unflagged_fields():
    fields = [text("a", "A", short=True), text("b", "B")]
    form = render_form(fields, {}, short_form=True)
    assert [child.field_id for child in form.children] == ["a"]
