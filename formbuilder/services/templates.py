"""Built-in form templates and template lookup."""

from __future__ import annotations

import copy
from typing import Optional

from ..models import ChoiceField, Field, InputField, StaticField, Tree, to_field_options
from .repository import FormRepository


BUILTIN_TEMPLATES: tuple[tuple[str, str], ...] = (
    ("feedback", "Feedback Form"),
    ("registration", "Registration Form"),
    ("survey", "Survey Form"),
)

_CATALOG: dict[str, Tree] = {
    "feedback": [
        StaticField(id="1", type="header", label="Feedback Form"),
        StaticField(id="2", type="paragraph", label="We value your feedback. Please answer the following:"),
        InputField(id="3", type="text", label="Your Name", required=True),
        ChoiceField(
            id="4",
            type="dropdown",
            label="How was your experience?",
            required=True,
            options=to_field_options(["Excellent", "Good", "Average", "Poor"]),
        ),
        ChoiceField(
            id="5",
            type="multipleChoice",
            label="Would you recommend us?",
            required=True,
            options=to_field_options(["Yes", "No"]),
        ),
    ],
    "registration": [
        StaticField(id="1", type="header", label="Registration Form"),
        InputField(id="2", type="text", label="Full Name", required=True),
        InputField(id="3", type="text", label="Email Address", required=True),
        InputField(id="4", type="date", label="Date of Birth", required=True),
        ChoiceField(
            id="5",
            type="dropdown",
            label="Select Course",
            required=True,
            options=to_field_options(["Web Development", "Data Science", "AI/ML", "Cybersecurity"]),
        ),
    ],
    "survey": [
        StaticField(id="1", type="header", label="Survey Form"),
        StaticField(id="2", type="paragraph", label="Please help us improve by answering a few questions."),
        ChoiceField(
            id="3",
            type="multipleChoice",
            label="How did you find us?",
            required=True,
            options=to_field_options(["Google", "Friend", "Advertisement", "Other"]),
        ),
        ChoiceField(
            id="4",
            type="checkboxes",
            label="Which features did you use?",
            options=to_field_options(["Form Builder", "Live Preview", "Templates", "Theme Switcher"]),
        ),
        InputField(id="5", type="text", label="Any additional comments?"),
    ],
}


def is_builtin(template_id: str) -> bool:
    return template_id in _CATALOG


def get_template_fields(template_id: str, repository: Optional[FormRepository] = None) -> list[Field]:
    """Return a fresh copy of the fields of ``template_id``.

    Built-in ids win; anything else is looked up among the saved templates
    (trashed ones included, so a form opened from the trash still loads).
    Unknown ids give an empty list.
    """

    if template_id in _CATALOG:
        return copy.deepcopy(_CATALOG[template_id])
    if repository is None:
        return []
    saved = repository.get_template(template_id)
    return list(saved.fields) if saved is not None else []


__all__ = ["BUILTIN_TEMPLATES", "is_builtin", "get_template_fields"]
