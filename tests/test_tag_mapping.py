"""Tag-to-field mapping and filename heuristic tests."""

from models.filename_heuristics import infer_from_filename
from models.tag_mapping import MappedFields, map_tags


def test_map_tags_empty_input_yields_empty_fields() -> None:
    assert map_tags([]) == MappedFields()
    assert map_tags([]).as_suggestions() == {}


def test_map_tags_derives_fields_from_descriptive_tags() -> None:
    mapped = map_tags(["1. A navy wool coat, double breasted", "Zara label", "office wear"])

    assert mapped.name == "Navy wool coat"
    assert mapped.category == "outerwear"
    assert mapped.color == "navy"
    assert mapped.brand == "Zara"
    assert mapped.material == "wool"
    assert mapped.season == {"winter"}
    assert mapped.occasion == {"work"}
    assert mapped.description == "1. A navy wool coat, double breasted. Zara label. office wear"


def test_map_tags_plain_product_title() -> None:
    mapped = map_tags(["Blue Cotton T-Shirt, casual wear"])

    assert mapped.name == "Blue Cotton T-Shirt"
    assert mapped.category == "top"
    assert mapped.color == "blue"
    assert mapped.material == "cotton"
    assert mapped.occasion == {"casual"}


def test_map_tags_first_declared_category_wins() -> None:
    mapped = map_tags(["white shirt under a denim jacket"])

    assert mapped.category == "top"
    assert mapped.material == "denim"


def test_map_tags_collects_multiple_materials_and_seasons() -> None:
    mapped = map_tags(["linen and cotton shorts for summer", "autumn layering"])

    assert mapped.material == "cotton, linen"
    assert mapped.season == {"summer", "fall"}
    assert mapped.category == "bottom"


def test_map_tags_uses_provider_labels_for_keywords_only() -> None:
    mapped = map_tags(["Something stylish"], provider_labels=["sneaker"])

    assert mapped.category == "shoes"
    assert mapped.name == "Something stylish"
    assert mapped.description == "Something stylish"


def test_map_tags_is_deterministic() -> None:
    tags = ["- red silk dress", "party"]
    assert map_tags(tags) == map_tags(tags)


def test_map_tags_leaves_unmatched_fields_empty() -> None:
    mapped = map_tags(["something unusual"])

    assert mapped.category is None
    assert mapped.color is None
    assert mapped.material is None
    assert mapped.as_suggestions() == {"name": "Something unusual", "description": "something unusual"}


def test_infer_from_filename_jacket() -> None:
    mapped = infer_from_filename("black-leather-jacket.jpg")

    assert mapped.category == "outerwear"
    assert mapped.color == "black"
    assert mapped.name == "Black Leather Jacket"
    assert mapped.material is None


def test_infer_from_filename_drops_digits_and_noise() -> None:
    mapped = infer_from_filename("IMG_2043_blue_jeans.png")

    assert mapped.name == "Blue Jeans"
    assert mapped.category == "bottom"
    assert mapped.color == "blue"


def test_infer_from_filename_never_raises() -> None:
    assert infer_from_filename("") == MappedFields()
    assert infer_from_filename("12345.jpg") == MappedFields()
