from scrapeview.api.client import ApiClient
from scrapeview.api.schemas import ApiResponse, ScrapeRequest

__all__ = ["ApiClient", "ApiResponse", "ScrapeRequest"]
