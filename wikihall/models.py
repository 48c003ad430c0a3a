from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple


@dataclass
class DoorTarget:
    """
    One destination offered by a door: the article title, its validated image URLs,
    and whatever images prefetching has already decoded (aligned by position, None
    where a URL has not resolved). Preloaded images are not part of equality.
    """
    title: str
    image_urls: List[str] = field(default_factory=list)
    preloaded_images: List[Any] = field(default_factory=list, compare=False)

    def copy(self) -> "DoorTarget":
        return DoorTarget(
            title=self.title,
            image_urls=list(self.image_urls),
            preloaded_images=list(self.preloaded_images),
        )

    def first_preloaded(self) -> Optional[Any]:
        for image in self.preloaded_images:
            if image is not None:
                return image
        return None


def copy_door_targets(targets: Sequence[DoorTarget], limit: int = 2) -> Tuple[DoorTarget, ...]:
    return tuple(target.copy() for target in list(targets)[:limit])


@dataclass(frozen=True)
class ArticleSnapshot:
    """Everything needed to put a hallway back exactly as it was when the player left it."""
    title: str
    image_urls: Optional[Tuple[str, ...]]
    images: Optional[Tuple[Any, ...]]
    return_door_index: int
    options: Optional[Tuple[DoorTarget, ...]]

    def first_image(self) -> Optional[Any]:
        for image in self.images or ():
            if image is not None:
                return image
        return None
