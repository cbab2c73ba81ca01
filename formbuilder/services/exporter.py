"""Export submitted answers as CSV, XLSX, PDF or JSON.

All formats share one layout: a header row of field labels followed by a
single row of answers.  Keys of the response map are either field labels
(flattened form submissions) or field ids (template submissions); ids are
resolved to labels through the supplied field definitions.
"""

from __future__ import annotations

import csv
import io
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Union
from xml.sax.saxutils import escape

from openpyxl import Workbook
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..models import FieldBase, FormSubmission, SubmittedTemplate
from .mutator import iter_fields

logger = logging.getLogger(__name__)

FORMATS = ("csv", "xlsx", "pdf", "json")
SHEET_TITLE = "Form Responses"

FieldRef = Union[FieldBase, Mapping[str, Any]]
ExportRecord = Union[FormSubmission, SubmittedTemplate]


def _iter_refs(fields: Iterable[FieldRef]) -> Iterable[FieldRef]:
    field_objects = [item for item in fields if isinstance(item, FieldBase)]
    yield from iter_fields(field_objects)
    for item in fields:
        if isinstance(item, Mapping):
            yield item


def field_label(key: str, fields: Optional[Sequence[FieldRef]] = None) -> str:
    """Label for a response key: the matching field's label, then title, then the key."""

    for item in _iter_refs(fields or []):
        if isinstance(item, Mapping):
            if str(item.get("id")) == str(key):
                return str(item.get("label") or item.get("title") or key)
        elif item.id == str(key):
            return item.label or key
    return str(key)


def stringify_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(value, ensure_ascii=False)
    if value is None:
        return ""
    return str(value)


def suggested_filename(title: str, fmt: str) -> str:
    base = title or "form"
    if fmt == "json":
        return f"{base}.json"
    return f"{base}_responses.{fmt}"


class ResponseExporter:
    """Turn a response map into file bytes in one of :data:`FORMATS`."""

    def rows(self, responses: Mapping[str, Any], fields: Optional[Sequence[FieldRef]] = None) -> tuple[list[str], list[str]]:
        headers = [field_label(key, fields) for key in responses]
        values = [stringify_value(value) for value in responses.values()]
        return headers, values

    # ------------------------------------------------------------------
    def to_csv(self, title: str, responses: Mapping[str, Any], fields: Optional[Sequence[FieldRef]] = None) -> bytes:
        headers, values = self.rows(responses, fields)
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(headers)
        writer.writerow(values)
        return buffer.getvalue().encode("utf-8")

    def to_xlsx(self, title: str, responses: Mapping[str, Any], fields: Optional[Sequence[FieldRef]] = None) -> bytes:
        headers, values = self.rows(responses, fields)
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = SHEET_TITLE
        sheet.append(headers)
        sheet.append(values)
        buffer = io.BytesIO()
        workbook.save(buffer)
        return buffer.getvalue()

    def to_pdf(self, title: str, responses: Mapping[str, Any], fields: Optional[Sequence[FieldRef]] = None) -> bytes:
        headers, values = self.rows(responses, fields)
        heading = title or SHEET_TITLE
        buffer = io.BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            title=heading,
            leftMargin=36,
            rightMargin=36,
            topMargin=54,
            bottomMargin=36,
        )
        styles = getSampleStyleSheet()
        elements: list[Any] = [Paragraph(escape(heading), styles["Heading2"]), Spacer(1, 12)]
        if headers:
            body_style = styles["BodyText"]
            table = Table(
                [
                    [Paragraph(escape(text), body_style) for text in headers],
                    [Paragraph(escape(text), body_style) for text in values],
                ],
                repeatRows=1,
            )
            table.setStyle(
                TableStyle(
                    [
                        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#2980ba")),
                        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                        ("VALIGN", (0, 0), (-1, -1), "TOP"),
                    ]
                )
            )
            elements.append(table)
        doc.build(elements)
        return buffer.getvalue()

    def to_json(self, record: Union[ExportRecord, Mapping[str, Any]]) -> bytes:
        payload = record.to_dict() if hasattr(record, "to_dict") else dict(record)
        return json.dumps(payload, ensure_ascii=False, indent=2).encode("utf-8")

    # ------------------------------------------------------------------
    def export(
        self,
        fmt: str,
        title: str,
        responses: Mapping[str, Any],
        fields: Optional[Sequence[FieldRef]] = None,
    ) -> bytes:
        """Export the answer row in ``fmt``; ``json`` serialises title and responses."""

        if fmt == "csv":
            return self.to_csv(title, responses, fields)
        if fmt == "xlsx":
            return self.to_xlsx(title, responses, fields)
        if fmt == "pdf":
            return self.to_pdf(title, responses, fields)
        if fmt == "json":
            return self.to_json({"title": title, "responses": dict(responses)})
        raise ValueError(f"Unsupported export format {fmt!r}; expected one of {FORMATS}")

    def export_record(self, record: ExportRecord, fmt: str) -> bytes:
        """Export a stored submission; ``json`` writes the full record."""

        if fmt == "json":
            return self.to_json(record)
        return self.export(fmt, record.title, record.responses, record.fields)

    def write(self, record: ExportRecord, fmt: str, out_dir: Path | str) -> Path:
        """Write ``record`` into ``out_dir`` under its suggested file name."""

        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / suggested_filename(record.title, fmt)
        path.write_bytes(self.export_record(record, fmt))
        logger.info("Exported %s as %s to %s", record.id, fmt, path)
        return path


__all__ = [
    "FORMATS",
    "SHEET_TITLE",
    "field_label",
    "stringify_value",
    "suggested_filename",
    "ResponseExporter",
]
