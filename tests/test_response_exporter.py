import csv
import io
import json

import pytest
from openpyxl import load_workbook

from formbuilder.models import FormSubmission, SubmittedTemplate
from formbuilder.services.exporter import (
    SHEET_TITLE,
    ResponseExporter,
    field_label,
    stringify_value,
    suggested_filename,
)
from tests.builders import row, text

RESPONSES = {"Name": "Ann, \"Annie\"", "Colours": ["red", "blue"], "Extra": {"k": 1}, "Empty": None}


@pytest.fixture()
def exporter():
    return ResponseExporter()


def test_stringify_value():
    assert stringify_value(["a", "b"]) == "a, b"
    assert stringify_value({"k": 1}) == '{"k": 1}'
    assert stringify_value(None) == ""
    assert stringify_value(3) == "3"


def test_field_label_prefers_label_then_title_then_key():
    fields = [row("r", [text("a", "Alpha")]), {"id": 2, "title": "Beta"}, {"id": "3", "label": "Gamma"}]
    assert field_label("a", fields) == "Alpha"
    assert field_label("2", fields) == "Beta"
    assert field_label("3", fields) == "Gamma"
    assert field_label("Name", fields) == "Name"
    assert field_label("x") == "x"


def test_csv_quotes_every_cell(exporter):
    data = exporter.to_csv("T", RESPONSES).decode("utf-8")
    lines = data.splitlines()
    assert lines[0] == '"Name","Colours","Extra","Empty"'
    assert list(csv.reader(io.StringIO(data))) == [
        ["Name", "Colours", "Extra", "Empty"],
        ['Ann, "Annie"', "red, blue", '{"k": 1}', ""],
    ]


def test_xlsx_has_header_and_value_rows(exporter):
    workbook = load_workbook(io.BytesIO(exporter.to_xlsx("T", RESPONSES)))
    sheet = workbook.active
    assert sheet.title == SHEET_TITLE
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0] == ("Name", "Colours", "Extra", "Empty")
    assert rows[1][:3] == ('Ann, "Annie"', "red, blue", '{"k": 1}')


def test_pdf_output(exporter):
    data = exporter.to_pdf("Survey <results>", RESPONSES)
    assert data.startswith(b"%PDF")
    assert exporter.to_pdf("", {}).startswith(b"%PDF")


def test_json_export(exporter):
    payload = json.loads(exporter.export("json", "T", {"Name": "Ann"}))
    assert payload == {"title": "T", "responses": {"Name": "Ann"}}


def test_unknown_format(exporter):
    with pytest.raises(ValueError):
        exporter.export("docx", "T", {})


def test_template_record_uses_field_labels(exporter):
    record = SubmittedTemplate(
        id="9",
        title="Survey Form",
        timestamp="t",
        responses={"3": "google", "4": ["templates"]},
        fields=[{"id": "3", "label": "How did you find us?"}, {"id": "4", "label": "Which features did you use?"}],
    )
    rows = list(csv.reader(io.StringIO(exporter.export_record(record, "csv").decode("utf-8"))))
    assert rows[0] == ["How did you find us?", "Which features did you use?"]
    assert rows[1] == ["google", "templates"]

    payload = json.loads(exporter.export_record(record, "json"))
    assert payload["id"] == "9"
    assert payload["fields"][0]["label"] == "How did you find us?"


def test_suggested_filename():
    assert suggested_filename("Feedback", "csv") == "Feedback_responses.csv"
    assert suggested_filename("", "xlsx") == "form_responses.xlsx"
    assert suggested_filename("Feedback", "json") == "Feedback.json"


def test_write(exporter, tmp_path):
    record = FormSubmission(id="1", title="Feedback", timestamp="t", responses={"Name": "Ann"}, fields=[text("n", "Name")])
    path = exporter.write(record, "xlsx", tmp_path / "out")
    assert path == tmp_path / "out" / "Feedback_responses.xlsx"
    assert path.read_bytes()[:2] == b"PK"
