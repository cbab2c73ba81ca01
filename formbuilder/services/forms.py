"""High level service API for building and submitting forms.

The :class:`FormService` ties the pure tree functions to the repository: it
creates fields with their palette defaults, runs validation before anything is
persisted and stores submissions and templates.  It contains no Qt code so the
preview widget, command line helpers and tests share the same workflow.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from ..models import (
    CHOICE_TYPES,
    FIELD_TYPES,
    INPUT_TYPES,
    ROW_LAYOUT,
    SECTION,
    STATIC_TYPES,
    ChoiceField,
    Column,
    Field,
    FormSubmission,
    InputField,
    Option,
    RowLayout,
    SavedTemplate,
    Section,
    StaticField,
    SubmittedTemplate,
    default_label,
    new_field_id,
)
from .extractor import extract, is_empty
from .mutator import iter_fields
from .repository import FormRepository
from .templates import get_template_fields

logger = logging.getLogger(__name__)

DEFAULT_FORM_TITLE = "My Custom Form"
DEFAULT_TEMPLATE_TITLE = "Untitled Template"


def default_options() -> list[Option]:
    return [Option(label="Option 1", value="option_1"), Option(label="Option 2", value="option_2")]


def new_row(row_id: Optional[str] = None, label: str = "") -> RowLayout:
    """Two empty half-width columns."""

    return RowLayout(
        id=row_id or new_field_id(),
        label=label,
        columns=[Column(width="1/2"), Column(width="1/2")],
    )


def new_field(field_type: str, field_id: Optional[str] = None) -> Field:
    """Create a field of ``field_type`` with the palette defaults."""

    if field_type not in FIELD_TYPES:
        raise ValueError(f"Unknown field type {field_type!r}")
    field_id = field_id or new_field_id()
    label = default_label(field_type)
    if field_type == ROW_LAYOUT:
        return new_row(field_id, label)
    if field_type == SECTION:
        return Section(id=field_id, label=label, rows=[new_row()])
    if field_type in CHOICE_TYPES:
        return ChoiceField(id=field_id, type=field_type, label=label, options=default_options())
    if field_type in INPUT_TYPES:
        return InputField(id=field_id, type=field_type, label=label)
    if field_type in STATIC_TYPES:
        return StaticField(id=field_id, type=field_type, label=label)
    raise ValueError(f"Unknown field type {field_type!r}")


def _timestamp(now: Optional[datetime]) -> str:
    moment = now or datetime.now(timezone.utc)
    return moment.isoformat().replace("+00:00", "Z")


@dataclass(slots=True)
class SubmitResult:
    """Outcome of a submit: either a stored record or the error map."""

    errors: dict[str, Any] = field(default_factory=dict)
    submission: Optional[FormSubmission] = None

    @property
    def ok(self) -> bool:
        return not self.errors and self.submission is not None


class FormService:
    """Service facade over the repository for the builder and preview."""

    def __init__(self, repository: FormRepository) -> None:
        self.repository = repository

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------
    def submit(
        self,
        title: str,
        fields: Sequence[Field],
        responses: Mapping[str, Any],
        *,
        short_form: bool = False,
        now: Optional[datetime] = None,
    ) -> SubmitResult:
        """Validate and store a filled form.

        Nothing is written when a required field is empty; the returned
        ``errors`` are meant for the renderer.  A failing store write raises
        :class:`~formbuilder.exceptions.PersistenceError`.
        """

        result = extract(fields, responses, short_form=short_form)
        if result.errors:
            logger.info("Submission of %r blocked by %d empty required field(s)", title, len(result.errors))
            return SubmitResult(errors=result.errors)

        submission = FormSubmission(
            id=new_field_id(),
            title=title or DEFAULT_FORM_TITLE,
            timestamp=_timestamp(now),
            responses=result.flat,
            fields=copy.deepcopy(list(fields)),
        )
        self.repository.add_form(submission)
        logger.info("Stored submission %s for %r", submission.id, submission.title)
        return SubmitResult(submission=submission)

    def submit_template(
        self,
        template_id: str,
        title: str,
        fields: Sequence[Field],
        responses: Mapping[str, Any],
        *,
        now: Optional[datetime] = None,
    ) -> SubmitResult:
        """Validate and store answers to a template-based form.

        Answers stay keyed by field id, including those of fields nested in
        row layouts.  The record goes to the submitted templates list and a
        labelled copy to the recent forms.
        """

        errors: dict[str, Any] = {}
        for item in fields:
            if item.required and is_empty(responses.get(item.id)):
                errors[item.id] = True
        if errors:
            return SubmitResult(errors=errors)

        timestamp = _timestamp(now)
        answerable = [item for item in iter_fields(fields) if not isinstance(item, RowLayout)]
        answers = {item.id: responses[item.id] for item in answerable if item.id in responses}
        record = SubmittedTemplate(
            id=new_field_id(),
            title=title or template_id,
            timestamp=timestamp,
            responses=answers,
            fields=[{"id": item.id, "label": item.label or f"Field {item.id}"} for item in answerable],
        )
        self.repository.add_submitted_template(record)
        submission = FormSubmission(
            id=record.id,
            title=record.title,
            timestamp=timestamp,
            responses=extract(fields, responses).flat,
            fields=copy.deepcopy(list(fields)),
        )
        self.repository.add_form(submission)
        logger.info("Stored template submission %s from %s", record.id, template_id)
        return SubmitResult(submission=submission)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------
    def save_template(self, title: str, fields: Sequence[Field], *, template_id: Optional[str] = None) -> SavedTemplate:
        if not fields:
            raise ValueError("Cannot save an empty template.")
        template = SavedTemplate(
            id=template_id or new_field_id(),
            title=title.strip() or DEFAULT_TEMPLATE_TITLE,
            fields=copy.deepcopy(list(fields)),
        )
        self.repository.save_template(template)
        return template

    def load_template_fields(self, template_id: str) -> list[Field]:
        """Fields to fill for ``template_id``; sections are left out."""

        return [item for item in get_template_fields(template_id, self.repository) if not isinstance(item, Section)]

    def template_title(self, fields: Sequence[Field], fallback: str = "Template Form") -> str:
        for item in fields:
            if item.type == "header" and item.label:
                return item.label
        return fallback


__all__ = [
    "DEFAULT_FORM_TITLE",
    "DEFAULT_TEMPLATE_TITLE",
    "default_options",
    "new_row",
    "new_field",
    "SubmitResult",
    "FormService",
]
