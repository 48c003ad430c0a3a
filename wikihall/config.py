import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str) -> List[str]:
    value = os.getenv(name, "")
    return [item.strip() for item in value.split(",") if item.strip()]


# -----------------------------
# Wikipedia
# -----------------------------
WIKI_API = os.getenv("WIKIHALL_API_URL", "https://en.wikipedia.org/w/api.php")
WIKI_REST_API = os.getenv("WIKIHALL_REST_URL", "https://en.wikipedia.org/api/rest_v1")
USER_AGENT = os.getenv("WIKIHALL_USER_AGENT", "WikiHallway/1.0 (procedural wiki hallway explorer)")

HTTP_TIMEOUT_S = int(os.getenv("WIKIHALL_HTTP_TIMEOUT", "20"))

# -----------------------------
# Hallway layout
# -----------------------------
# Physical display slots per location; also the content-sufficiency threshold for doors.
WALL_COUNT = int(os.getenv("WIKIHALL_WALL_COUNT", "6"))
MIN_IMAGE_REQUEST = 6
DOOR_COUNT = 2

# -----------------------------
# Door candidate search
# -----------------------------
MAX_ROUNDS = 4
LINK_FETCH_COUNT = 300
MAX_CANDIDATES_TO_TEST = 400

# -----------------------------
# Starting page(s)
# -----------------------------
FALLBACK_START_TITLE = "Virtual reality"
START_ARTICLE_TITLE = os.getenv("WIKIHALL_START_TITLE", FALLBACK_START_TITLE)
STARTING_TITLES = _env_list("WIKIHALL_STARTING_TITLES")
PICK_RANDOM_START = _env_bool("WIKIHALL_PICK_RANDOM_START", True)

LOG_DEBUG = _env_bool("WIKIHALL_DEBUG", False)
