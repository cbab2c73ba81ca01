"""Service helpers for the form builder."""

from .forms import FormService, new_field
from .repository import FormRepository
from .store import MemoryStore, SQLiteStore

__all__ = ["FormService", "FormRepository", "MemoryStore", "SQLiteStore", "new_field"]
