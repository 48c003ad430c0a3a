from typing import Any, Dict, List, Optional, Sequence, Tuple

from wikihall.models import DoorTarget, copy_door_targets
from wikihall.titles import title_key


class ContentCache:
    """
    Per-experience memo tables. Title-keyed tables are case-insensitive on the
    normalized title; the URL table is shared by every title.

    Writes are last-writer-wins. Determinism comes from the engine writing each
    title once after it resolves, not from this class.
    """

    def __init__(self):
        self._image_urls: Dict[str, List[str]] = {}
        self._images: Dict[str, List[Any]] = {}
        self._door_options: Dict[str, Tuple[DoorTarget, ...]] = {}
        self._images_by_url: Dict[str, Any] = {}

    # image URLs per title
    def get_image_urls(self, title: str) -> Optional[List[str]]:
        urls = self._image_urls.get(title_key(title))
        return list(urls) if urls is not None else None

    def set_image_urls(self, title: str, urls: Sequence[str]) -> None:
        self._image_urls[title_key(title)] = list(urls)

    # decoded wall images per title
    def get_images(self, title: str) -> Optional[List[Any]]:
        images = self._images.get(title_key(title))
        return list(images) if images is not None else None

    def set_images(self, title: str, images: Sequence[Any]) -> None:
        self._images[title_key(title)] = list(images)

    # frozen door pair per title
    def get_door_options(self, title: str) -> Optional[Tuple[DoorTarget, ...]]:
        frozen = self._door_options.get(title_key(title))
        return copy_door_targets(frozen) if frozen is not None else None

    def freeze_door_options(self, title: str, targets: Sequence[DoorTarget]) -> None:
        self._door_options[title_key(title)] = copy_door_targets(targets)

    # decoded images by URL
    def get_image_by_url(self, url: str) -> Optional[Any]:
        return self._images_by_url.get(url)

    def set_image_by_url(self, url: str, image: Any) -> None:
        self._images_by_url[url] = image

    def clear_all(self) -> None:
        self._image_urls.clear()
        self._images.clear()
        self._door_options.clear()
        self._images_by_url.clear()

    def __contains__(self, title: str) -> bool:
        key = title_key(title)
        return key in self._image_urls or key in self._images or key in self._door_options
