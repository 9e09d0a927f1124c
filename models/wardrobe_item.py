"""Wardrobe item data model and helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union

from models.taxonomy import (
    OCCASIONS,
    SEASONS,
    normalise_tags,
    validate_category,
    validate_visibility,
)

# Columns accepted by the hosted ``wardrobe`` table. Anything else is dropped
# before a write so unknown keys never reach the remote schema.
KNOWN_FIELDS: List[str] = [
    "item_id",
    "user_id",
    "name",
    "category",
    "color",
    "brand",
    "style",
    "material",
    "image_path",
    "created_at",
    "description",
    "visibility",
    "brand_url",
    "wear_count",
    "purchase_date",
    "purchase_price",
    "size",
    "last_worn",
    "season",
    "occasion",
    "featured",
    "metadata",
]
IDENTITY_FIELDS = {"item_id", "user_id", "created_at"}

TextOrList = Union[str, List[str], None]


def _ensure_list(value: Any) -> List[Any]:
    """Coerce a scalar or iterable into a list."""

    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _clean_text_or_list(value: TextOrList) -> TextOrList:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    cleaned = [str(v).strip() for v in _ensure_list(value) if str(v).strip()]
    return cleaned or None


def _to_price(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Invalid purchase price {value!r}") from exc
    if not price.is_finite():
        raise ValueError(f"Invalid purchase price {value!r}")
    if price < 0:
        raise ValueError("Purchase price cannot be negative")
    return price


def _to_wear_count(value: Any) -> int:
    if value is None or isinstance(value, bool):
        raise ValueError(f"Invalid wear count {value!r}")
    try:
        count = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid wear count {value!r}") from exc
    if count < 0:
        raise ValueError("Wear count cannot be negative")
    return count


def sanitize_payload(payload: Dict[str, Any], allow_identity: bool = True) -> Dict[str, Any]:
    """Keep only columns the remote table knows about."""

    allowed = set(KNOWN_FIELDS)
    if not allow_identity:
        allowed -= IDENTITY_FIELDS
    return {key: value for key, value in payload.items() if key in allowed}


@dataclass
class WardrobeItem:
    """Represents one cataloged garment."""

    item_id: str
    user_id: str
    name: str
    category: str
    color: TextOrList = None
    brand: TextOrList = None
    style: TextOrList = None
    material: TextOrList = None
    description: Optional[str] = None
    image_path: Optional[str] = None
    visibility: str = "private"
    season: List[str] = field(default_factory=list)
    occasion: List[str] = field(default_factory=list)
    purchase_price: Optional[Decimal] = None
    purchase_date: Optional[str] = None
    size: Optional[str] = None
    brand_url: Optional[str] = None
    featured: bool = False
    wear_count: int = 0
    last_worn: Optional[str] = None
    created_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.name = (self.name or "").strip()
        if not self.name:
            raise ValueError("Item name is required")
        if not self.category:
            raise ValueError("Item category is required")
        self.category = validate_category(self.category)
        self.visibility = validate_visibility(self.visibility or "private")
        self.color = _clean_text_or_list(self.color)
        self.brand = _clean_text_or_list(self.brand)
        self.style = _clean_text_or_list(self.style)
        self.material = _clean_text_or_list(self.material)
        self.season = normalise_tags(_ensure_list(self.season), SEASONS)
        self.occasion = normalise_tags(_ensure_list(self.occasion), OCCASIONS)
        self.purchase_price = _to_price(self.purchase_price)
        self.wear_count = _to_wear_count(self.wear_count or 0)
        self.metadata = dict(self.metadata or {})

    def to_record(self) -> Dict[str, Any]:
        """Serialise into a JSON-friendly row for the remote table."""

        record = asdict(self)
        if self.purchase_price is not None:
            record["purchase_price"] = float(self.purchase_price)
        return record


def from_record(record: Dict[str, Any]) -> WardrobeItem:
    """Factory to build a :class:`WardrobeItem` from a loose row or payload."""

    required_fields = ["item_id", "user_id", "name", "category"]
    missing = [key for key in required_fields if not record.get(key)]
    if missing:
        raise ValueError(f"Missing required fields for WardrobeItem: {missing}")

    values = sanitize_payload(record)
    values["season"] = _ensure_list(values.get("season"))
    values["occasion"] = _ensure_list(values.get("occasion"))
    values["featured"] = bool(values.get("featured") or False)
    values["metadata"] = values.get("metadata") or {}
    return WardrobeItem(**values)


def validate_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a partial update the same way a full item would be."""

    sanitized = sanitize_payload(updates, allow_identity=False)
    if "name" in sanitized and not str(sanitized["name"] or "").strip():
        raise ValueError("Item name is required")
    if "category" in sanitized:
        if not sanitized["category"]:
            raise ValueError("Item category is required")
        sanitized["category"] = validate_category(str(sanitized["category"]))
    if "visibility" in sanitized:
        sanitized["visibility"] = validate_visibility(str(sanitized["visibility"]))
    if "season" in sanitized:
        sanitized["season"] = normalise_tags(_ensure_list(sanitized["season"]), SEASONS)
    if "occasion" in sanitized:
        sanitized["occasion"] = normalise_tags(_ensure_list(sanitized["occasion"]), OCCASIONS)
    if "purchase_price" in sanitized:
        price = _to_price(sanitized["purchase_price"])
        sanitized["purchase_price"] = float(price) if price is not None else None
    if "wear_count" in sanitized:
        sanitized["wear_count"] = _to_wear_count(sanitized["wear_count"])
    return sanitized


__all__ = [
    "IDENTITY_FIELDS",
    "KNOWN_FIELDS",
    "WardrobeItem",
    "from_record",
    "sanitize_payload",
    "validate_updates",
]
