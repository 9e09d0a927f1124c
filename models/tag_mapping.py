"""Mapping logic from free-text analysis tags to structured item fields."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from models.taxonomy import (
    BRANDS,
    CATEGORY_KEYWORDS,
    COLOR_NAMES,
    MATERIALS,
    OCCASION_KEYWORDS,
    SEASON_KEYWORDS,
)

logger = logging.getLogger(__name__)

_LEADING_BULLET = re.compile(r"^\s*(?:(?:\d+[.)]|[-*•])\s*)+")
_LEADING_ARTICLE = re.compile(r"^(?:a|an|the)\s+", re.IGNORECASE)


@dataclass
class MappedFields:
    """Structured fields derived from tags. Empty means "no evidence"."""

    name: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    brand: Optional[str] = None
    material: Optional[str] = None
    description: Optional[str] = None
    season: Set[str] = field(default_factory=set)
    occasion: Set[str] = field(default_factory=set)

    def as_suggestions(self) -> Dict[str, Any]:
        """Return only the populated fields, ready to merge into a form."""

        values: Dict[str, Any] = {
            "name": self.name,
            "category": self.category,
            "color": self.color,
            "brand": self.brand,
            "material": self.material,
            "description": self.description,
            "season": sorted(self.season),
            "occasion": sorted(self.occasion),
        }
        return {key: value for key, value in values.items() if value}


def _flatten_text(tags: Iterable[str], labels: Iterable[str]) -> str:
    parts = [str(tag).lower() for tag in tags if str(tag).strip()]
    parts.extend(str(label).lower() for label in labels if str(label).strip())
    return " ".join(parts)


def _first_keyword_match(text: str, keywords_by_key: Dict[str, List[str]]) -> Optional[str]:
    for key, keywords in keywords_by_key.items():
        if any(keyword in text for keyword in keywords):
            return key
    return None


def _all_keyword_matches(text: str, keywords_by_key: Dict[str, List[str]]) -> Set[str]:
    return {key for key, keywords in keywords_by_key.items() if any(k in text for k in keywords)}


def _infer_color(text: str) -> Optional[str]:
    return next((color for color in COLOR_NAMES if color in text), None)


def _collect_materials(text: str) -> Optional[str]:
    found = [material for material in MATERIALS if material in text]
    return ", ".join(found) if found else None


def _infer_brand(text: str) -> Optional[str]:
    return next((display for key, display in BRANDS.items() if key in text), None)


def _name_from_tag(tag: str) -> Optional[str]:
    cleaned = _LEADING_BULLET.sub("", tag).strip()
    cleaned = _LEADING_ARTICLE.sub("", cleaned)
    cleaned = cleaned.split(",", 1)[0].strip()
    if not cleaned:
        return None
    return cleaned[0].upper() + cleaned[1:]


def map_tags(tags: Sequence[str], provider_labels: Optional[Sequence[str]] = None) -> MappedFields:
    """Derive structured item fields from provider tags and labels.

    Deterministic and side-effect free. Labels only widen the keyword search;
    name and description come from the tags themselves.
    """

    tag_list = [str(tag).strip() for tag in tags or [] if str(tag).strip()]
    labels = list(provider_labels or [])
    text = _flatten_text(tag_list, labels)
    if not text:
        return MappedFields()

    mapped = MappedFields(
        name=_name_from_tag(tag_list[0]) if tag_list else None,
        category=_first_keyword_match(text, CATEGORY_KEYWORDS),
        color=_infer_color(text),
        brand=_infer_brand(text),
        material=_collect_materials(text),
        description=". ".join(tag_list[:3]) or None,
        season=_all_keyword_matches(text, SEASON_KEYWORDS),
        occasion=_all_keyword_matches(text, OCCASION_KEYWORDS),
    )
    logger.debug(
        "Mapped analysis tags to fields",
        extra={
            "tag_count": len(tag_list),
            "label_count": len(labels),
            "category": mapped.category,
            "color": mapped.color,
        },
    )
    return mapped


__all__ = ["MappedFields", "map_tags"]
