from scrapeview.ingest.fields import ITEM_FIELD_ALIASES, resolve
from scrapeview.ingest.items import normalize_item, normalize_items
from scrapeview.ingest.pages import extract_item, extract_page
from scrapeview.ingest.status import extract_stats, parse_job_status

__all__ = [
    "ITEM_FIELD_ALIASES",
    "extract_item",
    "extract_page",
    "extract_stats",
    "normalize_item",
    "normalize_items",
    "parse_job_status",
    "resolve",
]
