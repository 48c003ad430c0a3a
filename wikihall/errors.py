class ContentSourceError(Exception):
    """Base class for failures reported by a content source."""


class NotFoundError(ContentSourceError):
    """The requested title does not exist upstream."""


class FetchError(ContentSourceError):
    """Transport, service or decoding failure."""


class InsufficientContentError(Exception):
    """A door candidate exposes fewer usable images than the hallway has walls."""

    def __init__(self, title: str, found: int, required: int):
        super().__init__(f"'{title}' has {found} usable images, {required} required")
        self.title = title
        self.found = found
        self.required = required
