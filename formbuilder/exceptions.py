"""Custom exceptions for the form builder."""
from __future__ import annotations


class FormBuilderError(RuntimeError):
    """Base exception for form builder operations."""


class FieldNotFoundError(FormBuilderError):
    """Raised when a mutation targets a field id that is not in the tree."""

    def __init__(self, field_id: str) -> None:
        super().__init__(f"Field {field_id} not found")
        self.field_id = field_id


class PersistenceError(FormBuilderError):
    """Raised when the key-value store cannot be written."""


__all__ = [
    "FormBuilderError",
    "FieldNotFoundError",
    "PersistenceError",
]
