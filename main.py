"""Simple entrypoint to catalog a photo with the local Closet pipeline."""

import argparse
import json

from closet_app.app import ClosetApp
from logic.form_state import ItemFormState, SetField, reduce_form
from models.image_file import ImageFile


def main() -> None:
    parser = argparse.ArgumentParser(description="Add a clothing photo to your wardrobe")
    parser.add_argument("photo", help="Path to an image file")
    parser.add_argument("--name", help="Use this name instead of the suggested one")
    args = parser.parse_args()

    form = ItemFormState()
    if args.name:
        form = reduce_form(form, SetField("name", args.name))

    app = ClosetApp()
    app.load_items()
    record = app.ingestion.ingest(ImageFile.from_path(args.photo), form)
    print(json.dumps(record, indent=2, default=str))


if __name__ == "__main__":
    main()
