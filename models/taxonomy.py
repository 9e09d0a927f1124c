"""Canonical vocabularies for wardrobe items.

This module centralises the canonical labels for categories, seasons,
occasions and visibility along with the keyword lists the tag mapper and the
filename heuristic scan. Ordering matters: the mappers walk these structures
in declaration order and the first match wins for single-valued fields.
"""

from typing import Dict, Iterable, List


def _normalize_key(value: str) -> str:
    """Normalise a free-form string into a taxonomy key."""

    return value.strip().lower().replace(" ", "_")


CATEGORIES: List[str] = [
    "top",
    "bottom",
    "dress",
    "outerwear",
    "shoes",
    "accessories",
    "bags",
    "other",
]

CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "top": ["t-shirt", "tshirt", "shirt", "blouse", "tee", "polo", "sweater", "hoodie", "cardigan", "tank", "top"],
    "bottom": ["jeans", "pants", "trousers", "shorts", "skirt", "leggings", "chinos", "joggers"],
    "dress": ["dress", "gown", "jumpsuit", "romper"],
    "outerwear": ["jacket", "coat", "blazer", "parka", "trench", "windbreaker", "puffer", "vest"],
    "shoes": ["shoe", "sneaker", "boot", "sandal", "heels", "loafer", "trainer", "slipper"],
    "accessories": ["hat", "cap", "scarf", "belt", "watch", "sunglasses", "glasses", "jewelry", "necklace", "bracelet", "earring", "tie", "gloves"],
    "bags": ["handbag", "backpack", "bag", "purse", "tote", "clutch", "wallet"],
}

COLOR_NAMES: List[str] = [
    "black",
    "white",
    "gray",
    "grey",
    "navy",
    "blue",
    "red",
    "green",
    "yellow",
    "orange",
    "purple",
    "pink",
    "brown",
    "beige",
    "cream",
    "khaki",
    "olive",
    "maroon",
    "burgundy",
    "teal",
    "gold",
    "silver",
]

SEASONS: List[str] = ["spring", "summer", "fall", "winter"]

SEASON_KEYWORDS: Dict[str, List[str]] = {
    "spring": ["spring"],
    "summer": ["summer", "linen", "sandal", "swim"],
    "fall": ["fall", "autumn"],
    "winter": ["winter", "wool", "puffer", "parka", "fleece", "knit"],
}

OCCASIONS: List[str] = ["casual", "formal", "work", "party", "sport", "travel"]

OCCASION_KEYWORDS: Dict[str, List[str]] = {
    "casual": ["casual", "everyday", "relaxed", "weekend"],
    "formal": ["formal", "suit", "tuxedo", "gown", "elegant"],
    "work": ["work", "office", "business"],
    "party": ["party", "evening", "cocktail", "sequin"],
    "sport": ["sport", "athletic", "gym", "running", "yoga", "training"],
    "travel": ["travel", "vacation"],
}

MATERIALS: List[str] = [
    "cotton",
    "linen",
    "wool",
    "denim",
    "leather",
    "silk",
    "polyester",
    "cashmere",
    "nylon",
    "suede",
    "velvet",
    "satin",
    "fleece",
    "spandex",
]

BRANDS: Dict[str, str] = {
    "nike": "Nike",
    "adidas": "Adidas",
    "zara": "Zara",
    "h&m": "H&M",
    "uniqlo": "Uniqlo",
    "levi's": "Levi's",
    "levis": "Levi's",
    "gucci": "Gucci",
    "prada": "Prada",
    "puma": "Puma",
    "ralph lauren": "Ralph Lauren",
    "the north face": "The North Face",
    "patagonia": "Patagonia",
}

VISIBILITY: List[str] = ["private", "public", "community"]


def validate_category(value: str) -> str:
    """Validate and normalise a category value.

    Raises a :class:`ValueError` if the category is not part of the canonical
    taxonomy.
    """

    key = _normalize_key(value)
    if key not in CATEGORIES:
        raise ValueError(f"Unsupported category '{value}'. Allowed: {CATEGORIES}")
    return key


def validate_visibility(value: str) -> str:
    key = _normalize_key(value)
    if key not in VISIBILITY:
        raise ValueError(f"Unsupported visibility '{value}'. Allowed: {VISIBILITY}")
    return key


def normalise_tags(values: Iterable[str], allowed: List[str]) -> List[str]:
    """Normalise and deduplicate tags against an allowed set.

    Unknown tags are dropped and the result follows the order of ``allowed``.
    """

    keys = {_normalize_key(str(value)) for value in values}
    if "autumn" in keys:
        keys.add("fall")
    return [tag for tag in allowed if tag in keys]


__all__ = [
    "BRANDS",
    "CATEGORIES",
    "CATEGORY_KEYWORDS",
    "COLOR_NAMES",
    "MATERIALS",
    "OCCASIONS",
    "OCCASION_KEYWORDS",
    "SEASONS",
    "SEASON_KEYWORDS",
    "VISIBILITY",
    "validate_category",
    "validate_visibility",
    "normalise_tags",
]
