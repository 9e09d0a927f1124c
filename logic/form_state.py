"""Item form state as one immutable value with a reducer.

User edits always win: analysis suggestions only fill fields that are still
empty and that the user has not touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from models.taxonomy import CATEGORIES, OCCASIONS, SEASONS, normalise_tags

LIST_FIELDS = {"season", "occasion"}


@dataclass(frozen=True)
class ItemFormState:
    item_id: Optional[str] = None
    name: str = ""
    category: str = ""
    color: str = ""
    brand: str = ""
    style: str = ""
    material: str = ""
    description: str = ""
    image_path: str = ""
    visibility: str = "private"
    season: Tuple[str, ...] = ()
    occasion: Tuple[str, ...] = ()
    purchase_price: str = ""
    purchase_date: str = ""
    size: str = ""
    brand_url: str = ""
    edited: FrozenSet[str] = frozenset()

    def to_payload(self) -> Dict[str, Any]:
        """Dispatcher payload containing only the filled-in fields."""

        payload: Dict[str, Any] = {}
        for name in FORM_FIELDS:
            value = getattr(self, name)
            if name in LIST_FIELDS:
                if value:
                    payload[name] = list(value)
            elif isinstance(value, str) and value.strip():
                payload[name] = value.strip()
        if self.item_id:
            payload["item_id"] = self.item_id
        return payload


FORM_FIELDS: Tuple[str, ...] = tuple(
    f.name for f in fields(ItemFormState) if f.name not in {"item_id", "edited"}
)


@dataclass(frozen=True)
class SetField:
    field: str
    value: Any


@dataclass(frozen=True)
class ApplySuggestions:
    suggestions: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Populate:
    record: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Reset:
    pass


FormAction = Union[SetField, ApplySuggestions, Populate, Reset]


def _coerce(name: str, value: Any) -> Any:
    if name in LIST_FIELDS:
        if value is None:
            return ()
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",")]
        allowed = SEASONS if name == "season" else OCCASIONS
        return tuple(normalise_tags(value, allowed))
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(part) for part in value if str(part).strip())
    return str(value)


def _is_empty(value: Any) -> bool:
    return value in ("", (), None)


def reduce_form(state: ItemFormState, action: FormAction) -> ItemFormState:
    """Return the next form state for ``action``. Never mutates ``state``."""

    if isinstance(action, SetField):
        if action.field not in FORM_FIELDS:
            raise ValueError(f"Unknown form field '{action.field}'")
        return replace(
            state,
            **{action.field: _coerce(action.field, action.value)},
            edited=state.edited | {action.field},
        )

    if isinstance(action, ApplySuggestions):
        changes: Dict[str, Any] = {}
        for name, value in action.suggestions.items():
            if name not in FORM_FIELDS or name in state.edited:
                continue
            if not _is_empty(getattr(state, name)):
                continue
            if name == "category" and value not in CATEGORIES:
                continue
            coerced = _coerce(name, value)
            if not _is_empty(coerced):
                changes[name] = coerced
        return replace(state, **changes) if changes else state

    if isinstance(action, Populate):
        values = {
            name: _coerce(name, action.record.get(name))
            for name in FORM_FIELDS
            if action.record.get(name) is not None
        }
        return ItemFormState(item_id=action.record.get("item_id"), **values)

    if isinstance(action, Reset):
        return ItemFormState()

    raise ValueError(f"Unsupported form action {action!r}")


__all__ = [
    "ApplySuggestions",
    "FORM_FIELDS",
    "FormAction",
    "ItemFormState",
    "Populate",
    "Reset",
    "SetField",
    "reduce_form",
]
