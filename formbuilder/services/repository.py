"""Record level access to the key-value store.

The repository reads whole lists, changes them and writes them back.  There is
no locking: two writers racing on the same key keep whichever wrote last.
Ids are compared as strings because older records stored numeric ids.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, TypeVar

from ..models import FormSubmission, SavedTemplate, SubmittedTemplate
from .store import (
    RECENT_FORMS_KEY,
    SUBMITTED_TEMPLATES_KEY,
    TEMPLATES_KEY,
    THEME_KEY,
    KeyValueStore,
)

logger = logging.getLogger(__name__)

THEMES = ("light", "dark")
DEFAULT_THEME = "light"

RecordT = TypeVar("RecordT")


def _now_ms() -> int:
    return int(time.time() * 1000)


class FormRepository:
    """Recent forms, saved templates, template submissions and the theme."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Recent forms
    # ------------------------------------------------------------------
    def list_forms(self, *, include_deleted: bool = False) -> list[FormSubmission]:
        """Return submissions newest first, hiding trashed ones by default."""

        return self._load(RECENT_FORMS_KEY, FormSubmission.from_dict, include_deleted)

    def list_trashed_forms(self) -> list[FormSubmission]:
        return [form for form in self.list_forms(include_deleted=True) if form.is_deleted]

    def get_form(self, form_id: str) -> Optional[FormSubmission]:
        return self._get(RECENT_FORMS_KEY, FormSubmission.from_dict, form_id)

    def add_form(self, submission: FormSubmission) -> None:
        self._prepend(RECENT_FORMS_KEY, submission.to_dict())

    def soft_delete_form(self, form_id: str, *, now: Optional[int] = None) -> bool:
        return self._set_deleted(RECENT_FORMS_KEY, form_id, True, now)

    def restore_form(self, form_id: str) -> bool:
        return self._set_deleted(RECENT_FORMS_KEY, form_id, False, None)

    def purge_form(self, form_id: str) -> bool:
        return self._purge(RECENT_FORMS_KEY, form_id)

    # ------------------------------------------------------------------
    # Saved templates
    # ------------------------------------------------------------------
    def list_templates(self, *, include_deleted: bool = False) -> list[SavedTemplate]:
        return self._load(TEMPLATES_KEY, SavedTemplate.from_dict, include_deleted)

    def list_trashed_templates(self) -> list[SavedTemplate]:
        return [template for template in self.list_templates(include_deleted=True) if template.is_deleted]

    def get_template(self, template_id: str) -> Optional[SavedTemplate]:
        return self._get(TEMPLATES_KEY, SavedTemplate.from_dict, template_id)

    def save_template(self, template: SavedTemplate) -> None:
        """Replace the template with the same id, or add it at the front."""

        records = self._records(TEMPLATES_KEY)
        payload = template.to_dict()
        for index, record in enumerate(records):
            if str(record.get("id")) == template.id:
                records[index] = payload
                self.store.put(TEMPLATES_KEY, records)
                return
        self.store.put(TEMPLATES_KEY, [payload, *records])

    def soft_delete_template(self, template_id: str, *, now: Optional[int] = None) -> bool:
        return self._set_deleted(TEMPLATES_KEY, template_id, True, now)

    def restore_template(self, template_id: str) -> bool:
        return self._set_deleted(TEMPLATES_KEY, template_id, False, None)

    def purge_template(self, template_id: str) -> bool:
        return self._purge(TEMPLATES_KEY, template_id)

    # ------------------------------------------------------------------
    # Submitted templates
    # ------------------------------------------------------------------
    def list_submitted_templates(self, *, include_deleted: bool = False) -> list[SubmittedTemplate]:
        return self._load(SUBMITTED_TEMPLATES_KEY, SubmittedTemplate.from_dict, include_deleted)

    def get_submitted_template(self, submission_id: str) -> Optional[SubmittedTemplate]:
        return self._get(SUBMITTED_TEMPLATES_KEY, SubmittedTemplate.from_dict, submission_id)

    def add_submitted_template(self, submission: SubmittedTemplate) -> None:
        self._prepend(SUBMITTED_TEMPLATES_KEY, submission.to_dict())

    def soft_delete_submitted_template(self, submission_id: str, *, now: Optional[int] = None) -> bool:
        return self._set_deleted(SUBMITTED_TEMPLATES_KEY, submission_id, True, now)

    def restore_submitted_template(self, submission_id: str) -> bool:
        return self._set_deleted(SUBMITTED_TEMPLATES_KEY, submission_id, False, None)

    # ------------------------------------------------------------------
    # Theme
    # ------------------------------------------------------------------
    def get_theme(self) -> str:
        theme = self.store.get_value(THEME_KEY, DEFAULT_THEME)
        if theme not in THEMES:
            logger.warning("Ignoring unknown stored theme %r", theme)
            return DEFAULT_THEME
        return theme

    def set_theme(self, theme: str) -> None:
        if theme not in THEMES:
            raise ValueError(f"Unknown theme {theme!r}; expected one of {THEMES}")
        self.store.put_value(THEME_KEY, theme)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _records(self, key: str) -> list[dict[str, Any]]:
        records = []
        for record in self.store.get(key):
            if isinstance(record, dict):
                records.append(record)
            else:
                logger.warning("Skipping malformed %s entry: %r", key, record)
        return records

    def _load(
        self,
        key: str,
        factory: Callable[[dict[str, Any]], RecordT],
        include_deleted: bool,
    ) -> list[RecordT]:
        items: list[RecordT] = []
        for record in self._records(key):
            if not include_deleted and record.get("isDeleted"):
                continue
            try:
                items.append(factory(record))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable %s entry: %s", key, exc)
        return items

    def _get(self, key: str, factory: Callable[[dict[str, Any]], RecordT], record_id: str) -> Optional[RecordT]:
        for record in self._records(key):
            if str(record.get("id")) == str(record_id):
                try:
                    return factory(record)
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning("Unreadable %s entry %s: %s", key, record_id, exc)
                    return None
        return None

    def _prepend(self, key: str, payload: dict[str, Any]) -> None:
        self.store.put(key, [payload, *self._records(key)])

    def _set_deleted(self, key: str, record_id: str, deleted: bool, now: Optional[int]) -> bool:
        records = self._records(key)
        found = False
        for record in records:
            if str(record.get("id")) != str(record_id):
                continue
            record["isDeleted"] = deleted
            if deleted:
                record["deletedAt"] = now if now is not None else _now_ms()
            else:
                record.pop("deletedAt", None)
            found = True
        if found:
            self.store.put(key, records)
        else:
            logger.debug("No %s entry with id %s", key, record_id)
        return found

    def _purge(self, key: str, record_id: str) -> bool:
        records = self._records(key)
        remaining = [record for record in records if str(record.get("id")) != str(record_id)]
        if len(remaining) == len(records):
            return False
        self.store.put(key, remaining)
        return True


__all__ = ["THEMES", "DEFAULT_THEME", "FormRepository"]
