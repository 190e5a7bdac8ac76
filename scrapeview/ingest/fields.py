from collections.abc import Mapping
from typing import Any

# Alias tables, one per Item field. Order is priority: canonical snake_case
# first, then PascalCase/camelCase variants, then domain synonyms.
ID_ALIASES = ("id", "ID", "Id", "_id", "identity")
TITLE_ALIASES = ("title", "Title", "name", "Name", "headline")
DESCRIPTION_ALIASES = ("description", "Description", "desc", "summary", "Summary")
URL_ALIASES = ("url", "URL", "Url", "link", "Link", "href")
IMAGE_URL_ALIASES = ("image_url", "ImageURL", "ImageUrl", "imageUrl", "image", "Image", "img", "thumbnail")
PRICE_ALIASES = ("price", "Price", "cost", "Cost", "amount")
SCRAPED_AT_ALIASES = (
    "scraped_at",
    "ScrapedAt",
    "scrapedAt",
    "created_at",
    "CreatedAt",
    "createdAt",
    "timestamp",
    "date",
)
METADATA_ALIASES = ("metadata", "Metadata", "meta", "Meta", "extra", "attributes")

ITEM_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "id": ID_ALIASES,
    "title": TITLE_ALIASES,
    "description": DESCRIPTION_ALIASES,
    "url": URL_ALIASES,
    "image_url": IMAGE_URL_ALIASES,
    "price": PRICE_ALIASES,
    "scraped_at": SCRAPED_AT_ALIASES,
    "metadata": METADATA_ALIASES,
}

_MISSING = object()


def resolve(record: Any, aliases: tuple[str, ...] | list[str], default: Any = None) -> Any:
    """Value of the first alias present in record with a non-null value, else default."""
    if not isinstance(record, Mapping):
        return default
    for alias in aliases:
        try:
            value = record.get(alias, _MISSING)
        except Exception:
            continue
        if value is not _MISSING and value is not None:
            return value
    return default
