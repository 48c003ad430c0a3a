def normalize_title(raw: str) -> str:
    """
    Canonical form of an article title: trimmed, underscores as spaces.
    Blank or missing input normalizes to an empty string.
    """
    if raw is None:
        return ""
    return raw.strip().replace("_", " ").strip()


def title_key(raw: str) -> str:
    """Case-insensitive lookup key used by every title-keyed store."""
    return normalize_title(raw).casefold()


def titles_equal(a: str, b: str) -> bool:
    return title_key(a) == title_key(b)
