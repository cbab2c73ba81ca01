"""Datamodels for the form builder.

A form is an ordered list of :data:`Field` values.  Leaf fields carry a single
answer; :class:`RowLayout` and :class:`Section` nest further fields and make the
list a tree.  The dataclasses mirror the JSON documents kept in the key-value
store, and :func:`field_from_dict` / :func:`field_to_dict` translate between the
two using the camelCase keys of the stored payloads.

Trees are treated as values: the mutator builds new nodes with
:func:`dataclasses.replace` instead of assigning to attributes, so a stored
snapshot never changes underneath its owner.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Iterable, Literal, Optional, Union


logger = logging.getLogger(__name__)

FieldType = Literal[
    "header",
    "label",
    "paragraph",
    "linebreak",
    "text",
    "number",
    "date",
    "dropdown",
    "checkboxes",
    "multipleChoice",
    "tags",
    "rowLayout",
    "section",
]

STATIC_TYPES = frozenset({"header", "label", "paragraph", "linebreak"})
INPUT_TYPES = frozenset({"text", "number", "date"})
CHOICE_TYPES = frozenset({"dropdown", "checkboxes", "multipleChoice", "tags"})
ROW_LAYOUT = "rowLayout"
SECTION = "section"
FIELD_TYPES = STATIC_TYPES | INPUT_TYPES | CHOICE_TYPES | {ROW_LAYOUT, SECTION}

DEFAULT_COLUMN_WIDTH = "1/2"


@dataclass(slots=True)
class Option:
    """Selectable entry of a dropdown, checkbox group, radio group or tag list."""

    label: str
    value: str


@dataclass(slots=True)
class FieldBase:
    """Attributes shared by every field variant."""

    id: str
    label: str = ""
    required: bool = False
    display_on_short_form: bool = False


@dataclass(slots=True)
class StaticField(FieldBase):
    """Non-input text: ``header``, ``label``, ``paragraph`` or ``linebreak``."""

    type: str = "header"


@dataclass(slots=True)
class InputField(FieldBase):
    """Single line input holding one string: ``text``, ``number`` or ``date``."""

    type: str = "text"


@dataclass(slots=True)
class ChoiceField(FieldBase):
    """Field answered from ``options``: dropdown, checkboxes, radios or tags."""

    type: str = "dropdown"
    options: list[Option] = field(default_factory=list)


@dataclass(slots=True)
class Column:
    """One column of a row layout and the fields stacked inside it."""

    width: str = DEFAULT_COLUMN_WIDTH
    fields: list["Field"] = field(default_factory=list)


@dataclass(slots=True)
class RowLayout(FieldBase):
    """Horizontal group of columns, each holding nested fields."""

    type: ClassVar[str] = ROW_LAYOUT

    columns: list[Column] = field(default_factory=list)

    @property
    def layout(self) -> list[str]:
        """Column widths in the legacy parallel-array shape."""

        return [column.width for column in self.columns]


@dataclass(slots=True)
class Section(FieldBase):
    """Named grouping of one or more row layouts."""

    type: ClassVar[str] = SECTION

    rows: list[RowLayout] = field(default_factory=list)


@dataclass(slots=True)
class UnknownField(FieldBase):
    """Field whose ``type`` is not recognised.

    The stored payload is retained in ``raw`` so the document survives a
    load/save cycle untouched and the renderer can point at the bad type.
    """

    type: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


Field = Union[StaticField, InputField, ChoiceField, RowLayout, Section, UnknownField]
Tree = list[Field]


# ----------------------------------------------------------------------
# Identity and labels
# ----------------------------------------------------------------------
_last_id = 0


def new_field_id() -> str:
    """Return a millisecond timestamp id, strictly increasing in this process."""

    global _last_id
    candidate = int(time.time() * 1000)
    if candidate <= _last_id:
        candidate = _last_id + 1
    _last_id = candidate
    return str(candidate)


def type_display_name(field_type: str) -> str:
    if not field_type:
        return field_type
    return field_type[0].upper() + field_type[1:]


def default_label(field_type: str) -> str:
    """Label given to a freshly added field, e.g. ``"Text Field"``."""

    if field_type == ROW_LAYOUT:
        return "Row Layout"
    return f"{type_display_name(field_type)} Field"


def display_label(item: Field) -> str:
    return item.label or default_label(item.type)


def flat_key(item: Field) -> str:
    """Key used for ``item`` in flattened responses and exports."""

    return item.label or f"Field {item.id}"


def to_field_options(labels: Iterable[str]) -> list[Option]:
    """Build options whose values are the lower-cased, underscored labels."""

    return [Option(label=text, value="_".join(text.lower().split())) for text in labels]


# ----------------------------------------------------------------------
# Dictionary conversion
# ----------------------------------------------------------------------
def _option_from_value(value: Any) -> Option:
    if isinstance(value, dict):
        label = value.get("label")
        option_value = value.get("value")
        label = "" if label is None else str(label)
        option_value = "" if option_value is None else str(option_value)
        return Option(label=label, value=option_value)
    text = "" if value is None else str(value)
    return Option(label=text, value=text)


def _common(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(data.get("id", "")),
        "label": str(data.get("label") or ""),
        "required": bool(data.get("required", False)),
        "display_on_short_form": bool(data.get("displayOnShortForm", False)),
    }


def _column_from_dict(data: Any, legacy_width: Optional[str]) -> Column:
    if not isinstance(data, dict):
        data = {}
    width = data.get("width") or legacy_width or DEFAULT_COLUMN_WIDTH
    fields = [field_from_dict(item) for item in data.get("fields") or [] if isinstance(item, dict)]
    return Column(width=str(width), fields=fields)


def _row_from_dict(data: dict[str, Any]) -> RowLayout:
    layout = data.get("layout") or []
    columns_data = data.get("columns")
    if not isinstance(columns_data, list):
        columns_data = [{} for _ in layout]
    columns = []
    for index, column_data in enumerate(columns_data):
        legacy = layout[index] if index < len(layout) else None
        columns.append(_column_from_dict(column_data, str(legacy) if legacy else None))
    return RowLayout(columns=columns, **_common(data))


def field_from_dict(data: dict[str, Any]) -> Field:
    """Parse a stored field document into its dataclass variant."""

    field_type = data.get("type")
    common = _common(data)
    if field_type in STATIC_TYPES:
        return StaticField(type=field_type, **common)
    if field_type in INPUT_TYPES:
        return InputField(type=field_type, **common)
    if field_type in CHOICE_TYPES:
        options = [_option_from_value(item) for item in data.get("options") or []]
        return ChoiceField(type=field_type, options=options, **common)
    if field_type == ROW_LAYOUT:
        return _row_from_dict(data)
    if field_type == SECTION:
        rows = [
            _row_from_dict(item)
            for item in data.get("rows") or []
            if isinstance(item, dict)
        ]
        return Section(rows=rows, **common)
    logger.debug("Keeping field %s with unrecognised type %r", common["id"], field_type)
    return UnknownField(type="" if field_type is None else str(field_type), raw=dict(data), **common)


def _row_to_dict(row: RowLayout) -> dict[str, Any]:
    payload = _base_dict(row)
    payload["layout"] = row.layout
    payload["columns"] = [
        {"width": column.width, "fields": [field_to_dict(item) for item in column.fields]}
        for column in row.columns
    ]
    return payload


def _base_dict(item: Field) -> dict[str, Any]:
    return {
        "id": item.id,
        "type": item.type,
        "label": item.label,
        "required": item.required,
        "displayOnShortForm": item.display_on_short_form,
    }


def field_to_dict(item: Field) -> dict[str, Any]:
    """Serialise ``item`` to the JSON shape used by the store."""

    if isinstance(item, UnknownField):
        payload = dict(item.raw)
        payload.update(_base_dict(item))
        return payload
    if isinstance(item, RowLayout):
        return _row_to_dict(item)
    if isinstance(item, Section):
        payload = _base_dict(item)
        payload["rows"] = [_row_to_dict(row) for row in item.rows]
        return payload
    payload = _base_dict(item)
    if isinstance(item, ChoiceField):
        payload["options"] = [{"label": opt.label, "value": opt.value} for opt in item.options]
    return payload


def fields_from_dicts(items: Iterable[Any]) -> Tree:
    return [field_from_dict(item) for item in items if isinstance(item, dict)]


def fields_to_dicts(items: Iterable[Field]) -> list[dict[str, Any]]:
    return [field_to_dict(item) for item in items]


# ----------------------------------------------------------------------
# Stored records
# ----------------------------------------------------------------------
@dataclass(slots=True)
class FormSubmission:
    """Submitted form: flat answers plus a snapshot of the field tree."""

    id: str
    title: str
    timestamp: str
    responses: dict[str, Any] = field(default_factory=dict)
    fields: Tree = field(default_factory=list)
    is_deleted: bool = False
    deleted_at: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "timestamp": self.timestamp,
            "responses": dict(self.responses),
            "fields": fields_to_dicts(self.fields),
            "isDeleted": self.is_deleted,
        }
        if self.deleted_at is not None:
            payload["deletedAt"] = self.deleted_at
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FormSubmission":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            timestamp=str(data.get("timestamp") or ""),
            responses=dict(data.get("responses") or {}),
            fields=fields_from_dicts(data.get("fields") or []),
            is_deleted=bool(data.get("isDeleted", False)),
            deleted_at=data.get("deletedAt"),
        )


@dataclass(slots=True)
class SavedTemplate:
    """User-authored reusable field set."""

    id: str
    title: str
    fields: Tree = field(default_factory=list)
    is_deleted: bool = False
    deleted_at: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "fields": fields_to_dicts(self.fields),
            "isDeleted": self.is_deleted,
        }
        if self.deleted_at is not None:
            payload["deletedAt"] = self.deleted_at
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SavedTemplate":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            fields=fields_from_dicts(data.get("fields") or []),
            is_deleted=bool(data.get("isDeleted", False)),
            deleted_at=data.get("deletedAt"),
        )


@dataclass(slots=True)
class SubmittedTemplate:
    """Answers to a template-based form, keyed by field id.

    Only ``{id, label}`` pairs of the template fields are kept, which is
    enough to label the answers when viewing or exporting them.
    """

    id: str
    title: str
    timestamp: str
    responses: dict[str, Any] = field(default_factory=dict)
    fields: list[dict[str, str]] = field(default_factory=list)
    is_deleted: bool = False
    deleted_at: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "timestamp": self.timestamp,
            "responses": dict(self.responses),
            "fields": [dict(item) for item in self.fields],
            "isDeleted": self.is_deleted,
        }
        if self.deleted_at is not None:
            payload["deletedAt"] = self.deleted_at
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubmittedTemplate":
        fields = [
            {"id": str(item.get("id", "")), "label": str(item.get("label") or item.get("title") or "")}
            for item in data.get("fields") or []
            if isinstance(item, dict)
        ]
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            timestamp=str(data.get("timestamp") or data.get("submittedAt") or ""),
            responses=dict(data.get("responses") or {}),
            fields=fields,
            is_deleted=bool(data.get("isDeleted", False)),
            deleted_at=data.get("deletedAt"),
        )


__all__ = [
    "FieldType",
    "STATIC_TYPES",
    "INPUT_TYPES",
    "CHOICE_TYPES",
    "FIELD_TYPES",
    "ROW_LAYOUT",
    "SECTION",
    "DEFAULT_COLUMN_WIDTH",
    "Option",
    "FieldBase",
    "StaticField",
    "InputField",
    "ChoiceField",
    "Column",
    "RowLayout",
    "Section",
    "UnknownField",
    "Field",
    "Tree",
    "FormSubmission",
    "SavedTemplate",
    "SubmittedTemplate",
    "new_field_id",
    "type_display_name",
    "default_label",
    "display_label",
    "flat_key",
    "to_field_options",
    "field_from_dict",
    "field_to_dict",
    "fields_from_dicts",
    "fields_to_dicts",
]
