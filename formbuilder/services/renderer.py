"""Toolkit independent rendering of fields.

:func:`render` turns a field, its current value and its validation flag into a
:class:`RenderNode` tree.  Nothing here touches a widget toolkit: each node
names the control to build (``kind``), carries what the control shows in
``props`` and exposes ``on_change`` which the toolkit calls with the single
argument described per kind below.  The Qt preview in :mod:`formbuilder.ui`
is one consumer; tests drive the callbacks directly.

``on_change`` arguments by kind:

``editable-text``  new text (call on focus loss)
``input``          new string
``select``         selected option value, ``""`` for none
``checkbox``       ``True``/``False`` checked state
``radio``          ignored, selecting the radio is the event
``chip``           ignored, a click toggles the chip
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from ..models import (
    CHOICE_TYPES,
    INPUT_TYPES,
    STATIC_TYPES,
    ChoiceField,
    Field,
    RowLayout,
    Section,
    type_display_name,
)
from .mutator import width_percent

logger = logging.getLogger(__name__)

REQUIRED_MESSAGE = "This field is required."

ChangeHandler = Callable[[Any], None]
ErrorFlag = Union[bool, Mapping[str, Any]]

_STATIC_TAGS = {"header": "h4", "label": "label", "paragraph": "p"}


@dataclass(slots=True)
class RenderNode:
    """One element of the display tree."""

    kind: str
    field_id: Optional[str] = None
    label: str = ""
    props: dict[str, Any] = field(default_factory=dict)
    children: list["RenderNode"] = field(default_factory=list)
    error: bool = False
    on_change: Optional[Callable[[Any], None]] = None

    def find(self, field_id: str) -> Optional["RenderNode"]:
        """Return the first node below (or at) this one rendering ``field_id``."""

        if self.field_id == field_id:
            return self
        for child in self.children:
            found = child.find(field_id)
            if found is not None:
                return found
        return None


# ----------------------------------------------------------------------
# Value helpers
# ----------------------------------------------------------------------
def normalize_tags(value: Any) -> list[Any]:
    """Accept tags as a bare list or as ``{"value": [...]}``."""

    if isinstance(value, Mapping) and "value" in value:
        value = value["value"]
    if isinstance(value, (list, tuple)):
        return list(value)
    return []


def toggle(selected: Sequence[Any], option_value: Any, checked: bool) -> list[Any]:
    """Return ``selected`` with ``option_value`` appended or removed."""

    current = list(selected)
    if checked:
        if option_value not in current:
            current.append(option_value)
        return current
    return [item for item in current if item != option_value]


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _emit(on_change: Optional[ChangeHandler], value: Any) -> None:
    if on_change is not None:
        on_change(value)


# ----------------------------------------------------------------------
# Leaf renderers
# ----------------------------------------------------------------------
def _leaf(kind: str, item: Field, error: ErrorFlag, **props: Any) -> RenderNode:
    flagged = error is True
    if flagged:
        props["error_message"] = REQUIRED_MESSAGE
    return RenderNode(kind=kind, field_id=item.id, label=item.label, props=props, error=flagged)


def _render_static(item: Field, value: Any, on_change: Optional[ChangeHandler], error: ErrorFlag) -> RenderNode:
    if item.type == "linebreak":
        return RenderNode(kind="rule", field_id=item.id)
    text = _as_text(value) or item.label or type_display_name(item.type)
    node = _leaf("editable-text", item, error, tag=_STATIC_TAGS[item.type], text=text)
    node.on_change = lambda new_text: _emit(on_change, new_text or "")
    return node


def _render_input(
    item: Field,
    value: Any,
    on_change: Optional[ChangeHandler],
    error: ErrorFlag,
    today: Optional[date],
) -> RenderNode:
    props: dict[str, Any] = {"input_type": item.type, "value": _as_text(value)}
    if item.type == "date":
        props["max"] = (today or date.today()).isoformat()
    node = _leaf("input", item, error, **props)
    node.on_change = lambda new_value: _emit(on_change, new_value)
    return node


def _option_node(kind: str, option_value: Any, option_label: str, handler: Callable[[Any], None], **props: Any) -> RenderNode:
    return RenderNode(
        kind=kind,
        label=option_label,
        props={"value": option_value, **props},
        on_change=handler,
    )


def _render_choice(item: ChoiceField, value: Any, on_change: Optional[ChangeHandler], error: ErrorFlag) -> RenderNode:
    if item.type == "dropdown":
        choices = [("", "Select...")] + [(opt.value, opt.label) for opt in item.options]
        node = _leaf("select", item, error, value=_as_text(value), choices=choices)
        node.on_change = lambda new_value: _emit(on_change, new_value or "")
        return node

    if item.type == "multipleChoice":
        current = _as_text(value)
        node = _leaf("radio-group", item, error, value=current, group=f"field-{item.id}")
        for opt in item.options:
            node.children.append(
                _option_node(
                    "radio",
                    opt.value,
                    opt.label,
                    lambda _event=None, chosen=opt.value: _emit(on_change, chosen),
                    checked=current == opt.value,
                )
            )
        return node

    if item.type == "checkboxes":
        selected = list(value) if isinstance(value, (list, tuple)) else []
        node = _leaf("checkbox-group", item, error, value=selected)
        for opt in item.options:
            node.children.append(
                _option_node(
                    "checkbox",
                    opt.value,
                    opt.label,
                    lambda checked, val=opt.value: _emit(on_change, toggle(selected, val, bool(checked))),
                    checked=opt.value in selected,
                )
            )
        return node

    selected = normalize_tags(value)
    node = _leaf("chips", item, error, value=selected)
    for opt in item.options:
        is_selected = opt.value in selected
        node.children.append(
            _option_node(
                "chip",
                opt.value,
                opt.label,
                lambda _event=None, val=opt.value, was=is_selected: _emit(on_change, toggle(selected, val, not was)),
                selected=is_selected,
            )
        )
    return node


def _render_unknown(item: Field) -> RenderNode:
    logger.warning("Cannot render field %s: unknown type %r", item.id, item.type)
    return RenderNode(
        kind="error",
        field_id=item.id,
        label=item.label,
        props={"text": f"Unknown field type: {item.type}", "type": item.type},
        error=True,
    )


# ----------------------------------------------------------------------
# Composite renderers
# ----------------------------------------------------------------------
def _render_row(
    row: RowLayout,
    values: Mapping[str, Any],
    on_child_change: Optional[Callable[[str, Any], None]],
    error: ErrorFlag,
    today: Optional[date],
) -> RenderNode:
    nested_errors = _as_mapping(error)
    node = RenderNode(kind="row", field_id=row.id, label=row.label, error=error is True)
    for index, column in enumerate(row.columns):
        column_node = RenderNode(
            kind="column",
            props={"index": index, "width": column.width, "width_percent": width_percent(column.width)},
        )
        for child in column.fields:
            child_change = None
            if on_child_change is not None:
                child_change = lambda new_value, child_id=child.id: on_child_change(child_id, new_value)
            column_node.children.append(
                render(child, values.get(child.id), child_change, nested_errors.get(child.id, False), today=today)
            )
        node.children.append(column_node)
    return node


def _merge_into(current: Mapping[str, Any], on_change: Optional[ChangeHandler]) -> Optional[Callable[[str, Any], None]]:
    if on_change is None:
        return None

    def _merge(key: str, new_value: Any) -> None:
        on_change({**current, key: new_value})

    return _merge


def _render_section(
    section: Section,
    value: Any,
    on_change: Optional[ChangeHandler],
    error: ErrorFlag,
    today: Optional[date],
) -> RenderNode:
    current = _as_mapping(value)
    row_errors = _as_mapping(error)
    merge = _merge_into(current, on_change)
    node = RenderNode(
        kind="section",
        field_id=section.id,
        label=section.label or "Section Field",
        error=error is True,
    )
    for row in section.rows:
        row_value = _as_mapping(current.get(row.id))
        row_change = None
        if merge is not None:
            row_change = lambda new_row_value, row_id=row.id: merge(row_id, new_row_value)
        node.children.append(
            _render_row(row, row_value, _merge_into(row_value, row_change), row_errors.get(row.id, False), today)
        )
    return node


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------
def render(
    item: Field,
    value: Any = None,
    on_change: Optional[ChangeHandler] = None,
    error: ErrorFlag = False,
    *,
    today: Optional[date] = None,
) -> RenderNode:
    """Render ``item`` with ``value``.

    Row layouts expect ``value`` to map child ids to child values and report
    changes as the whole updated mapping; sections map row ids to such row
    mappings.  ``error`` is ``True`` for a failed leaf or a mapping of child
    ids for composites.  An unrecognised type renders an ``error`` node.
    """

    if isinstance(item, RowLayout):
        current = _as_mapping(value)
        return _render_row(item, current, _merge_into(current, on_change), error, today)
    if isinstance(item, Section):
        return _render_section(item, value, on_change, error, today)
    if isinstance(item, ChoiceField) and item.type in CHOICE_TYPES:
        return _render_choice(item, value, on_change, error)
    if item.type in STATIC_TYPES:
        return _render_static(item, value, on_change, error)
    if item.type in INPUT_TYPES:
        return _render_input(item, value, on_change, error, today)
    return _render_unknown(item)


def render_form(
    fields: Sequence[Field],
    responses: Mapping[str, Any],
    on_change: Optional[Callable[[str, Any], None]] = None,
    errors: Optional[Mapping[str, Any]] = None,
    *,
    short_form: bool = False,
    today: Optional[date] = None,
) -> RenderNode:
    """Render the top level of a form against its flat ``responses`` map.

    Children of a top-level row layout keep their answers directly under their
    own id in ``responses``, which is where the extractor reads them.  Every
    change is reported as ``on_change(field_id, value)``.
    """

    errors = errors or {}
    node = RenderNode(kind="form")
    for item in fields:
        if short_form and not item.display_on_short_form:
            continue
        if isinstance(item, RowLayout):
            node.children.append(_render_row(item, responses, on_change, errors.get(item.id, False), today))
            continue
        field_change = None
        if on_change is not None:
            field_change = lambda new_value, field_id=item.id: on_change(field_id, new_value)
        node.children.append(render(item, responses.get(item.id), field_change, errors.get(item.id, False), today=today))
    return node


__all__ = [
    "REQUIRED_MESSAGE",
    "RenderNode",
    "normalize_tags",
    "toggle",
    "render",
    "render_form",
]
