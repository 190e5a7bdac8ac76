# --- Backend ---

DEFAULT_API_URL = "http://localhost:8080"
DEFAULT_API_PREFIX = "/api/v1"

SCRAPE_PATH = "/scrape"
SCRAPE_STATUS_PATH = "/scrape/status"
DATA_PATH = "/data"
DATA_STATS_PATH = "/data/stats"
DATA_SEARCH_PATH = "/data/search"
HEALTH_PATH = "/health"

MIN_SCRAPE_DEPTH = 1
MAX_SCRAPE_DEPTH = 5


# --- Pagination ---

DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 1000
SORT_FIELDS = frozenset({"scraped_at", "title", "price", "id"})
SORT_ORDERS = frozenset({"asc", "desc"})


# --- Polling ---

DEFAULT_POLL_INTERVAL = 2.0
# Give up on a job never seen running after this many idle polls
DEFAULT_MAX_IDLE_POLLS = 5
# Hard cap on status queries per job: 2 minutes at the default interval
DEFAULT_MAX_POLLS = 60


# --- HTTP ---

REQUEST_TIMEOUT = 10.0
RETRY_ATTEMPTS = 3
RETRY_INITIAL_WAIT = 0.5
RETRY_MAX_WAIT = 8
RETRYABLE_STATUS_CODES = frozenset({408, 425, 429})


# --- Item defaults ---

DEFAULT_TITLE = "Untitled"
DEFAULT_URL = "#"
LOCAL_ID_PREFIX = "local-"
