"""Live preview of a form built from the display tree.

The widget asks :func:`~formbuilder.services.renderer.render_form` for a
:class:`RenderNode` tree and turns each node into Qt controls.  Answers are
kept in :attr:`FormPreview.responses`, keyed by field id exactly as the
extractor expects, and the submit button hands them to
:class:`~formbuilder.services.forms.FormService`.

Choice groups, tags and nested composites carry the value they were rendered
with, so after one of them changes the widget rebuilds itself on the next
event loop turn.  Text inputs commit on ``editingFinished``.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from PySide6.QtCore import QDate, Qt, QTimer, Signal
from PySide6.QtGui import QDoubleValidator, QFont
from PySide6.QtWidgets import (
    QButtonGroup,
    QCheckBox,
    QComboBox,
    QDateEdit,
    QFrame,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLayout,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QRadioButton,
    QVBoxLayout,
    QWidget,
)

from ..exceptions import PersistenceError
from ..models import ChoiceField, Field, RowLayout, Section
from ..services.forms import FormService
from ..services.renderer import RenderNode, render_form

logger = logging.getLogger(__name__)

BANNER_TIMEOUT_MS = 3000
MAX_COLUMN_STRETCH = 10000
_EMPTY_DATE = QDate(1900, 1, 1)
_ERROR_STYLE = "color: #d32f2f;"


def _stateful_ids(fields: Sequence[Field]) -> set[str]:
    """Ids whose change must trigger a rebuild of the preview."""

    ids: set[str] = set()

    def _visit(items: Sequence[Field], top_level: bool) -> None:
        for item in items:
            if isinstance(item, Section):
                ids.add(item.id)
            elif isinstance(item, RowLayout):
                if not top_level:
                    ids.add(item.id)
                for column in item.columns:
                    _visit(column.fields, False)
            elif isinstance(item, ChoiceField) and item.type in {"checkboxes", "tags"}:
                ids.add(item.id)

    _visit(fields, True)
    return ids


class FormPreview(QWidget):
    """Interactive preview with validation and submit."""

    submitted = Signal(dict)
    responsesChanged = Signal(dict)

    def __init__(self, form_service: FormService, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.form_service = form_service
        self.title = ""
        self.fields: list[Field] = []
        self.responses: dict[str, Any] = {}
        self.errors: dict[str, Any] = {}
        self.short_form = False
        self._stateful: set[str] = set()
        self._rebuild_pending = False

        outer = QVBoxLayout(self)
        self.title_label = QLabel("", self)
        title_font = QFont(self.title_label.font())
        title_font.setBold(True)
        title_font.setPointSize(title_font.pointSize() + 2)
        self.title_label.setFont(title_font)
        outer.addWidget(self.title_label)

        self.short_form_toggle = QCheckBox("Show Short Form", self)
        self.short_form_toggle.toggled.connect(self.set_short_form)
        outer.addWidget(self.short_form_toggle)

        self.body = QVBoxLayout()
        outer.addLayout(self.body)

        self.submit_button = QPushButton("Submit", self)
        self.submit_button.clicked.connect(self.submit)
        outer.addWidget(self.submit_button)

        self.banner = QLabel("Form submitted successfully!", self)
        self.banner.setStyleSheet("background: #e8f5e9; color: #1b5e20; padding: 6px;")
        self.banner.hide()
        outer.addWidget(self.banner)
        outer.addStretch(1)

    # ------------------------------------------------------------------
    def set_form(self, title: str, fields: Sequence[Field]) -> None:
        """Show ``fields`` and forget previous answers and errors."""

        self.title = title
        self.fields = list(fields)
        self.responses = {}
        self.errors = {}
        self.title_label.setText(title)
        self.rebuild()

    def set_short_form(self, enabled: bool) -> None:
        self.short_form = bool(enabled)
        if self.short_form_toggle.isChecked() != self.short_form:
            self.short_form_toggle.setChecked(self.short_form)
        self.rebuild()

    # ------------------------------------------------------------------
    def rebuild(self) -> None:
        """Throw away the current controls and build them from a fresh render."""

        self._rebuild_pending = False
        _clear_layout(self.body)
        self._stateful = _stateful_ids(self.fields)
        tree = render_form(
            self.fields,
            self.responses,
            self._on_field_changed,
            self.errors,
            short_form=self.short_form,
        )
        for child in tree.children:
            self.body.addWidget(self._build(child))

    def _schedule_rebuild(self) -> None:
        if self._rebuild_pending:
            return
        self._rebuild_pending = True
        QTimer.singleShot(0, self.rebuild)

    def _on_field_changed(self, field_id: str, value: Any) -> None:
        self.responses[field_id] = value
        had_error = self._clear_error(field_id)
        self.responsesChanged.emit(dict(self.responses))
        if had_error or field_id in self._stateful:
            self._schedule_rebuild()

    def _clear_error(self, field_id: str) -> bool:
        """Drop the error for ``field_id``, also when it sits under its row."""

        if self.errors.pop(field_id, None) is not None:
            return True
        for row_id, nested in list(self.errors.items()):
            if isinstance(nested, dict) and field_id in nested:
                remaining = {key: flag for key, flag in nested.items() if key != field_id}
                if remaining:
                    self.errors[row_id] = remaining
                else:
                    del self.errors[row_id]
                return True
        return False

    # ------------------------------------------------------------------
    def submit(self) -> bool:
        """Validate and store the answers; returns True when stored."""

        try:
            result = self.form_service.submit(
                self.title,
                self.fields,
                self.responses,
                short_form=self.short_form,
            )
        except PersistenceError as exc:
            logger.error("Failed to save submission: %s", exc)
            QMessageBox.critical(self, "Submit", f"Failed to save the form.\n{exc}")
            return False

        self.errors = dict(result.errors)
        self.rebuild()
        if not result.ok:
            return False
        self.banner.show()
        QTimer.singleShot(BANNER_TIMEOUT_MS, self.banner.hide)
        self.submitted.emit(result.submission.to_dict())
        return True

    # ------------------------------------------------------------------
    # Node builders
    # ------------------------------------------------------------------
    def _build(self, node: RenderNode) -> QWidget:
        builder = getattr(self, f"_build_{node.kind.replace('-', '_')}", None)
        if builder is None:
            logger.warning("No Qt builder for render node kind %r", node.kind)
            return QLabel(f"Cannot display {node.kind}", self)
        widget = builder(node)
        if node.field_id is not None:
            widget.setObjectName(f"field-{node.field_id}")
        return widget

    def _wrap(self, node: RenderNode, control: QWidget, *, title: bool = True) -> QWidget:
        box = QWidget(self)
        layout = QVBoxLayout(box)
        layout.setContentsMargins(0, 0, 0, 8)
        if title and node.label:
            layout.addWidget(QLabel(node.label, box))
        layout.addWidget(control)
        message = node.props.get("error_message")
        if message:
            error_label = QLabel(message, box)
            error_label.setObjectName("error-message")
            error_label.setStyleSheet(_ERROR_STYLE)
            layout.addWidget(error_label)
        return box

    def _build_editable_text(self, node: RenderNode) -> QWidget:
        editor = QLineEdit(node.props.get("text", ""), self)
        editor.setFrame(False)
        font = QFont(editor.font())
        if node.props.get("tag") == "h4":
            font.setPointSize(font.pointSize() + 4)
            font.setBold(True)
        elif node.props.get("tag") == "label":
            font.setBold(True)
        editor.setFont(font)
        editor.editingFinished.connect(lambda: node.on_change(editor.text()))
        return self._wrap(node, editor, title=False)

    def _build_rule(self, node: RenderNode) -> QWidget:
        line = QFrame(self)
        line.setFrameShape(QFrame.Shape.HLine)
        line.setFrameShadow(QFrame.Shadow.Sunken)
        return line

    def _build_input(self, node: RenderNode) -> QWidget:
        if node.props.get("input_type") == "date":
            return self._wrap(node, self._date_editor(node))
        editor = QLineEdit(node.props.get("value", ""), self)
        if node.props.get("input_type") == "number":
            editor.setValidator(QDoubleValidator(editor))
        if node.error:
            editor.setStyleSheet("border: 1px solid #d32f2f;")
        editor.editingFinished.connect(lambda: node.on_change(editor.text()))
        return self._wrap(node, editor)

    def _date_editor(self, node: RenderNode) -> QDateEdit:
        editor = QDateEdit(self)
        editor.setCalendarPopup(True)
        editor.setDisplayFormat("yyyy-MM-dd")
        editor.setMinimumDate(_EMPTY_DATE)
        editor.setSpecialValueText(" ")
        maximum = QDate.fromString(node.props.get("max", ""), Qt.DateFormat.ISODate)
        if maximum.isValid():
            editor.setMaximumDate(maximum)
        current = QDate.fromString(node.props.get("value", ""), Qt.DateFormat.ISODate)
        editor.setDate(current if current.isValid() else _EMPTY_DATE)

        def _changed(value: QDate) -> None:
            node.on_change("" if value == _EMPTY_DATE else value.toString(Qt.DateFormat.ISODate))

        editor.dateChanged.connect(_changed)
        return editor

    def _build_select(self, node: RenderNode) -> QWidget:
        combo = QComboBox(self)
        for value, label in node.props.get("choices", []):
            combo.addItem(label, value)
        index = combo.findData(node.props.get("value", ""))
        combo.setCurrentIndex(max(index, 0))
        combo.currentIndexChanged.connect(lambda idx: node.on_change(combo.itemData(idx) or ""))
        return self._wrap(node, combo)

    def _build_radio_group(self, node: RenderNode) -> QWidget:
        container = QWidget(self)
        layout = QVBoxLayout(container)
        layout.setContentsMargins(0, 0, 0, 0)
        group = QButtonGroup(container)
        group.setExclusive(True)
        for child in node.children:
            button = QRadioButton(child.label, container)
            button.setChecked(bool(child.props.get("checked")))
            button.toggled.connect(lambda checked, handler=child.on_change: checked and handler(None))
            group.addButton(button)
            layout.addWidget(button)
        return self._wrap(node, container)

    def _build_checkbox_group(self, node: RenderNode) -> QWidget:
        container = QWidget(self)
        layout = QVBoxLayout(container)
        layout.setContentsMargins(0, 0, 0, 0)
        for child in node.children:
            box = QCheckBox(child.label, container)
            box.setChecked(bool(child.props.get("checked")))
            box.toggled.connect(child.on_change)
            layout.addWidget(box)
        return self._wrap(node, container)

    def _build_chips(self, node: RenderNode) -> QWidget:
        container = QWidget(self)
        layout = QHBoxLayout(container)
        layout.setContentsMargins(0, 0, 0, 0)
        for child in node.children:
            chip = QPushButton(child.label, container)
            chip.setCheckable(True)
            chip.setChecked(bool(child.props.get("selected")))
            chip.clicked.connect(lambda _checked=False, handler=child.on_change: handler(None))
            layout.addWidget(chip)
        layout.addStretch(1)
        return self._wrap(node, container)

    def _build_row(self, node: RenderNode) -> QWidget:
        frame = QFrame(self)
        frame.setFrameShape(QFrame.Shape.StyledPanel)
        if node.error:
            frame.setStyleSheet("QFrame { border: 1px solid #d32f2f; }")
        outer = QVBoxLayout(frame)
        if node.label:
            heading = QLabel(node.label, frame)
            heading.setStyleSheet("font-weight: 600;")
            outer.addWidget(heading)
        columns = QHBoxLayout()
        for column in node.children:
            holder = QWidget(frame)
            holder_layout = QVBoxLayout(holder)
            holder_layout.setContentsMargins(0, 0, 0, 0)
            for child in column.children:
                holder_layout.addWidget(self._build(child))
            holder_layout.addStretch(1)
            columns.addWidget(holder, _stretch(column.props.get("width_percent", 100)))
        outer.addLayout(columns)
        return frame

    def _build_section(self, node: RenderNode) -> QWidget:
        group = QGroupBox(node.label, self)
        layout = QVBoxLayout(group)
        for row in node.children:
            layout.addWidget(self._build(row))
        return group

    def _build_error(self, node: RenderNode) -> QWidget:
        label = QLabel(node.props.get("text", "Unknown field type"), self)
        label.setStyleSheet(_ERROR_STYLE)
        return label


def _stretch(percent: float) -> int:
    """Layout stretch factor for a column width percentage."""

    return max(1, round(min(float(MAX_COLUMN_STRETCH), percent)))


def _clear_layout(layout: QLayout) -> None:
    while layout.count():
        item = layout.takeAt(0)
        widget = item.widget()
        if widget is not None:
            widget.setParent(None)
            widget.deleteLater()
        elif item.layout() is not None:
            _clear_layout(item.layout())


__all__ = ["FormPreview"]
