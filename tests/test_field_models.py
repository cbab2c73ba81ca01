from formbuilder.models import (
    ChoiceField,
    Column,
    FormSubmission,
    InputField,
    Option,
    RowLayout,
    Section,
    SubmittedTemplate,
    UnknownField,
    default_label,
    display_label,
    field_from_dict,
    field_to_dict,
    flat_key,
    new_field_id,
    to_field_options,
)


def test_leaf_fields_parse_into_variants():
    text = field_from_dict({"id": 5, "type": "text", "label": "Name", "required": True})
    assert isinstance(text, InputField)
    assert text.id == "5"
    assert text.required is True
    assert text.display_on_short_form is False

    choice = field_from_dict({"id": "c", "type": "tags", "options": ["Red", {"label": "Blue", "value": "blue"}]})
    assert isinstance(choice, ChoiceField)
    assert choice.options == [Option("Red", "Red"), Option("Blue", "blue")]


def test_legacy_layout_array_supplies_missing_column_widths():
    row = field_from_dict(
        {
            "id": "r",
            "type": "rowLayout",
            "layout": ["1/3", "2/3"],
            "columns": [{"fields": [{"id": "x", "type": "text"}]}, {"width": "50%", "fields": []}],
        }
    )
    assert isinstance(row, RowLayout)
    assert [column.width for column in row.columns] == ["1/3", "50%"]
    assert row.columns[0].fields[0].id == "x"


def test_row_layout_writes_both_width_encodings():
    row = RowLayout(id="r", columns=[Column("1/4"), Column("3/4")])
    payload = field_to_dict(row)
    assert payload["layout"] == ["1/4", "3/4"]
    assert [column["width"] for column in payload["columns"]] == ["1/4", "3/4"]
    assert len(payload["layout"]) == len(payload["columns"])


def test_section_round_trip_keeps_nested_rows():
    section = Section(
        id="s",
        label="Contact",
        rows=[RowLayout(id="r", columns=[Column("1/2", [InputField(id="e", type="text", label="Email")])])],
    )
    assert field_from_dict(field_to_dict(section)) == section


def test_unknown_type_is_preserved():
    payload = {"id": "u", "type": "signature", "label": "Sign", "pen": "blue"}
    parsed = field_from_dict(payload)
    assert isinstance(parsed, UnknownField)
    assert parsed.type == "signature"
    assert field_to_dict(parsed)["pen"] == "blue"


def test_labels():
    assert default_label("multipleChoice") == "MultipleChoice Field"
    assert default_label("rowLayout") == "Row Layout"
    unnamed = InputField(id="9", type="number")
    assert display_label(unnamed) == "Number Field"
    assert flat_key(unnamed) == "Field 9"


def test_to_field_options_normalises_values():
    options = to_field_options(["Web Development", "AI/ML"])
    assert [option.value for option in options] == ["web_development", "ai/ml"]


def test_new_field_ids_are_strictly_increasing():
    first = new_field_id()
    second = new_field_id()
    assert int(second) > int(first)


def test_submission_records_round_trip():
    submission = FormSubmission(
        id="1",
        title="T",
        timestamp="2024-01-01T00:00:00Z",
        responses={"Name": "x"},
        fields=[InputField(id="n", type="text", label="Name")],
        is_deleted=True,
        deleted_at=10,
    )
    payload = submission.to_dict()
    assert payload["isDeleted"] is True
    assert FormSubmission.from_dict(payload) == submission

    legacy = SubmittedTemplate.from_dict(
        {"id": 7, "title": "Survey", "submittedAt": "then", "responses": {"1": "a"}, "fields": [{"id": 1, "title": "Q"}]}
    )
    assert legacy.id == "7"
    assert legacy.timestamp == "then"
    assert legacy.fields == [{"id": "1", "label": "Q"}]
