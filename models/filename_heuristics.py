"""Local fallback that guesses item fields from a photo's file name."""

from __future__ import annotations

import re
from pathlib import Path

from models.tag_mapping import MappedFields
from models.taxonomy import CATEGORY_KEYWORDS, COLOR_NAMES

_SEPARATORS = re.compile(r"[\s_\-.]+")
_NOISE_TOKENS = {"img", "image", "photo", "pic", "dsc", "copy", "final", "edited"}


def _clean_tokens(filename: str) -> list[str]:
    stem = Path(filename or "").stem.lower()
    tokens = []
    for token in _SEPARATORS.split(stem):
        token = re.sub(r"\d+", "", token)
        if token and token not in _NOISE_TOKENS:
            tokens.append(token)
    return tokens


def infer_from_filename(filename: str) -> MappedFields:
    """Guess category, color and a display name from a file name.

    Used when every analysis provider failed. It never raises: a name with no
    recognisable words simply yields empty fields.
    """

    tokens = _clean_tokens(filename)
    if not tokens:
        return MappedFields()

    text = " ".join(tokens)
    category = next(
        (cat for cat, keywords in CATEGORY_KEYWORDS.items() if any(k in text for k in keywords)),
        None,
    )
    color = next((c for c in COLOR_NAMES if c in tokens), None)
    return MappedFields(
        name=" ".join(token.capitalize() for token in tokens),
        category=category,
        color=color,
    )


__all__ = ["infer_from_filename"]
