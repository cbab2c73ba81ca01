"""Flatten form answers and collect required-field errors."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Sequence

from ..models import Field, RowLayout, flat_key

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExtractionResult:
    """Label-keyed answers and the per-field error map.

    ``errors`` maps a field id to ``True``, or for a row layout whose own
    answers are present, to a ``{child_id: True}`` mapping naming the empty
    required children.
    """

    flat: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def __iter__(self) -> Iterator[dict[str, Any]]:
        yield self.flat
        yield self.errors


def is_empty(value: Any) -> bool:
    """``None``, ``""``, an empty list or an empty mapping count as unanswered."""

    if value is None or value == "":
        return True
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    if isinstance(value, Mapping):
        return len(value) == 0
    return False


def _put(flat: dict[str, Any], key: str, value: Any) -> None:
    if key in flat:
        logger.debug("Flattened key %r overwritten by a later field", key)
    flat[key] = value


def extract(
    fields: Sequence[Field],
    raw_responses: Mapping[str, Any],
    *,
    short_form: bool = False,
) -> ExtractionResult:
    """Flatten ``raw_responses`` (keyed by field id) against ``fields``.

    Children of top-level row layouts are lifted to the top level and the row
    itself gets no key.  Every field is checked; validation never stops at the
    first failure.  When two fields share a label the later answer wins.
    """

    result = ExtractionResult()
    for item in fields:
        if short_form and not item.display_on_short_form:
            continue

        if isinstance(item, RowLayout):
            aggregate: dict[str, Any] = {}
            child_errors: dict[str, bool] = {}
            for column in item.columns:
                for child in column.fields:
                    value = raw_responses.get(child.id, "")
                    if value is None:
                        value = ""
                    aggregate[flat_key(child)] = value
                    _put(result.flat, flat_key(child), value)
                    if child.required and is_empty(value):
                        child_errors[child.id] = True
            if item.required and is_empty(aggregate):
                result.errors[item.id] = True
            elif child_errors:
                result.errors[item.id] = child_errors
            continue

        value = raw_responses.get(item.id, "")
        if value is None:
            value = ""
        _put(result.flat, flat_key(item), value)
        if item.required and is_empty(value):
            result.errors[item.id] = True

    if result.errors:
        logger.debug("Validation failed for %d field(s): %s", len(result.errors), sorted(result.errors))
    return result


__all__ = ["ExtractionResult", "is_empty", "extract"]
