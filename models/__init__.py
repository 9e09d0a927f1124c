"""Model package exports."""

from models.taxonomy import *  # noqa: F401,F403
from models.image_file import ImageFile, validate_image_file
from models.tag_mapping import MappedFields, map_tags
from models.wardrobe_item import WardrobeItem, from_record

__all__ = [
    "ImageFile",
    "MappedFields",
    "WardrobeItem",
    "from_record",
    "map_tags",
    "validate_image_file",
]
