import asyncio
import logging
import random
from enum import Enum
from typing import Any, Callable, Coroutine, List, Optional, Sequence, Set

from wikihall.cache import ContentCache
from wikihall.config import (
    DOOR_COUNT,
    FALLBACK_START_TITLE,
    MIN_IMAGE_REQUEST,
    PICK_RANDOM_START,
    START_ARTICLE_TITLE,
    STARTING_TITLES,
    WALL_COUNT,
)
from wikihall.errors import ContentSourceError
from wikihall.history import HistoryStack
from wikihall.models import ArticleSnapshot, DoorTarget, copy_door_targets
from wikihall.selector import CandidateSelector
from wikihall.source import ContentSource
from wikihall.titles import title_key

logger = logging.getLogger(__name__)

Listener = Callable[[str, "NavigationEngine"], None]


class NavigationState(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    RESTORING = "restoring"


class NavigationEngine:
    """
    Drives the hallway: which article is on the walls, which two doors are offered,
    and how a backtrack puts a previous hallway back exactly as it was.

    All work runs as asyncio tasks on one event loop. Each top-level action
    (begin_experience, choose_door, backtrack) cancels every running task before
    starting its own. Cancelled tasks leave their cache writes in place.
    """

    def __init__(self, source: ContentSource,
                 cache: Optional[ContentCache] = None,
                 history: Optional[HistoryStack] = None,
                 selector: Optional[CandidateSelector] = None,
                 wall_count: int = WALL_COUNT,
                 starting_titles: Optional[Sequence[str]] = None,
                 pick_random_start: bool = PICK_RANDOM_START,
                 default_title: str = START_ARTICLE_TITLE,
                 rng: Optional[random.Random] = None):
        self.source = source
        self.cache = cache if cache is not None else ContentCache()
        self.history = history if history is not None else HistoryStack()
        self.rng = rng or random.Random()
        self.selector = selector or CandidateSelector(source, wall_count=wall_count, rng=self.rng)
        self.wall_count = wall_count
        self.starting_titles = list(STARTING_TITLES if starting_titles is None else starting_titles)
        self.pick_random_start = pick_random_start
        self.default_title = default_title

        # title keys seen this experience; only biases door selection
        self.visited: Set[str] = set()

        self.state = NavigationState.IDLE
        self.current_title: Optional[str] = None
        self.current_image_urls: Optional[List[str]] = None
        self.wall_images: List[Any] = [None] * wall_count
        self.door_targets: List[DoorTarget] = []
        self.door_previews: List[Any] = [None] * DOOR_COUNT
        self.return_preview: Any = None
        self.backtrack_available = False
        # door the player used to leave the hallway restored by the last backtrack
        self.return_door_index: Optional[int] = None

        self._tasks: Set[asyncio.Task] = set()
        self._listeners: List[Listener] = []

    # ------------------------------- Observers -------------------------------

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self, event: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception:
                logger.exception("Listener failed on %s event", event)

    def _set_state(self, state: NavigationState) -> None:
        self.state = state
        self._notify("state")

    # ------------------------------- Public API -------------------------------

    def begin_experience(self, title: Optional[str] = None) -> asyncio.Task:
        """
        Reset history, visited titles and every cache, then load `title` (or the
        configured start title when blank).
        """
        self.cancel_all()

        if not title or not title.strip():
            title = self.choose_start_title()

        self.door_targets = []
        self._clear_door_previews()
        self.current_title = None
        self.current_image_urls = None
        self.return_door_index = None
        self.visited.clear()
        self.history.clear()
        self.cache.clear_all()
        self._update_backtrack_availability()

        return self._spawn(self._load_location(title.strip()), "load")

    def choose_door(self, door_index: int) -> Optional[asyncio.Task]:
        """
        Walk through door 0 or 1. Snapshot the current hallway first so backtrack
        can restore it. Ignored while fewer than two doors are available.
        """
        if len(self.door_targets) < DOOR_COUNT:
            logger.info("No valid door targets at the moment; ignoring door %s", door_index)
            return None

        self.cancel_all()

        door_index = min(max(door_index, 0), DOOR_COUNT - 1)
        chosen = self.door_targets[door_index].copy()

        self._push_snapshot(door_index)
        self._set_return_preview_from_target(chosen)
        self.door_targets = []

        logger.info("Chosen door %d -> %s", door_index, chosen.title)
        return self._spawn(self._load_location(chosen.title, chosen), "load")

    def backtrack(self) -> Optional[asyncio.Task]:
        """Return to the hallway on top of the history stack."""
        snapshot = self.history.peek()
        if snapshot is None:
            logger.info("Backtrack requested but no history available")
            return None

        self.cancel_all()

        self.history.pop()
        self.return_door_index = snapshot.return_door_index
        self._update_backtrack_availability()
        self.door_targets = []

        logger.info("Backtracking to %s", snapshot.title)
        return self._spawn(self._restore_snapshot(snapshot), "restore")

    def choose_start_title(self) -> str:
        pool = [t.strip() for t in self.starting_titles if t and t.strip()]
        if pool and self.pick_random_start:
            return self.rng.choice(pool)
        if pool:
            return pool[0]
        if self.default_title and self.default_title.strip():
            return self.default_title.strip()
        return FALLBACK_START_TITLE

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    async def wait_idle(self) -> None:
        """Wait until no load, restore or prefetch task is outstanding."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def image_request_count(self) -> int:
        return max(MIN_IMAGE_REQUEST, self.wall_count)

    # ------------------------------- Task bookkeeping -------------------------------

    def _spawn(self, coro: Coroutine, name: str) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug("Task %s cancelled", task.get_name())
            return
        error = task.exception()
        if error is not None:
            logger.error("Task %s failed", task.get_name(), exc_info=error)

    # ------------------------------- Core flow -------------------------------

    async def _load_location(self, title: str, via: Optional[DoorTarget] = None) -> None:
        self._set_state(NavigationState.LOADING)
        self.current_title = title
        self.visited.add(title_key(title))
        self.door_targets = []
        self._clear_door_previews()
        logger.info("Loading article: %s", title)

        # 1) walls
        cached_images = self.cache.get_images(title)
        if _has_any(cached_images):
            self.current_image_urls = self.cache.get_image_urls(title)
            self._show_walls(cached_images)
        elif via is not None and self._count_usable(via.preloaded_images) >= self.wall_count:
            self.current_image_urls = list(via.image_urls)
            self._show_walls([image for image in via.preloaded_images if image is not None])
        elif via is not None and via.image_urls:
            self.current_image_urls = list(via.image_urls)
            await self._show_walls_from_urls(via.image_urls)
        else:
            cached_urls = self.cache.get_image_urls(title)
            if cached_urls is not None:
                self.current_image_urls = cached_urls
                await self._show_walls_from_urls(cached_urls)
            else:
                await self._fetch_and_show_walls(title)

        self._persist_current(title)

        # 2) doors
        await self._resolve_door_targets(title)

        # 3) previews run on their own
        self._start_prefetch()
        self._set_state(NavigationState.READY)

    async def _restore_snapshot(self, snapshot: ArticleSnapshot) -> None:
        self._set_state(NavigationState.RESTORING)
        title = snapshot.title
        self.current_title = title
        self.door_targets = []
        self._clear_door_previews()

        if _has_any(snapshot.images):
            self.current_image_urls = list(snapshot.image_urls) if snapshot.image_urls is not None else None
            self._show_walls(list(snapshot.images))
        elif snapshot.image_urls:
            self.current_image_urls = list(snapshot.image_urls)
            await self._show_walls_from_urls(snapshot.image_urls)
        else:
            await self._fetch_and_show_walls(title)

        self._persist_current(title)

        if snapshot.options is not None and len(snapshot.options) >= DOOR_COUNT:
            self.door_targets = list(copy_door_targets(snapshot.options))
            self.cache.freeze_door_options(title, self.door_targets)
        else:
            await self._resolve_door_targets(title)

        self._start_prefetch()
        self._set_return_preview_from_snapshot(snapshot)
        self._set_state(NavigationState.READY)

    async def _resolve_door_targets(self, title: str) -> None:
        frozen = self.cache.get_door_options(title)
        if frozen is not None and len(frozen) >= DOOR_COUNT:
            logger.debug("Reusing frozen doors for %s", title)
            self.door_targets = list(frozen)
            return

        targets = await self.selector.select_door_targets(title, visited=frozenset(self.visited))
        self.door_targets = list(targets)
        self.cache.freeze_door_options(title, self.door_targets)

    def _persist_current(self, title: str) -> None:
        if self.current_image_urls is not None:
            self.cache.set_image_urls(title, self.current_image_urls)
        if _has_any(self.wall_images):
            self.cache.set_images(title, self.wall_images)

    # ------------------------------- Walls -------------------------------

    async def _fetch_and_show_walls(self, title: str) -> None:
        try:
            urls = await self.source.fetch_image_urls(title, self.image_request_count)
        except ContentSourceError as e:
            logger.warning("Image fetch failed for '%s': %s", title, e)
            self.current_image_urls = None
            self._clear_walls()
            return

        self.current_image_urls = list(urls)
        await self._show_walls_from_urls(urls)

    async def _show_walls_from_urls(self, urls: Sequence[str]) -> None:
        images = []
        for url in urls:
            if len(images) >= self.wall_count:
                break
            if not url:
                continue
            image = await self._resolve_image(url)
            if image is not None:
                images.append(image)
        self._show_walls(images)

    def _show_walls(self, images: Sequence[Any]) -> None:
        images = list(images)[:self.wall_count]
        self.wall_images = images + [None] * (self.wall_count - len(images))
        self._notify("walls")

    def _clear_walls(self) -> None:
        self._show_walls([])

    async def _resolve_image(self, url: str) -> Optional[Any]:
        cached = self.cache.get_image_by_url(url)
        if cached is not None:
            return cached
        try:
            image = await self.source.download_image(url)
        except ContentSourceError as e:
            logger.debug("Download failed for %s: %s", url, e)
            return None
        if image is not None:
            self.cache.set_image_by_url(url, image)
        return image

    def _count_usable(self, images: Sequence[Any]) -> int:
        return sum(1 for image in images if image is not None)

    # ------------------------------- Door previews -------------------------------

    def _start_prefetch(self) -> None:
        for door_index, target in enumerate(self.door_targets[:DOOR_COUNT]):
            self._spawn(self._prefetch_door(door_index, target), f"prefetch-{door_index}")

    async def _prefetch_door(self, door_index: int, target: DoorTarget) -> None:
        """
        Decode every image of a door target in order. The first one to resolve
        becomes the door preview; the rest are kept for walking through later.
        """
        if not target.image_urls:
            self._set_door_preview(door_index, None)
            return

        while len(target.preloaded_images) < len(target.image_urls):
            target.preloaded_images.append(None)

        preview_set = False
        for i, url in enumerate(target.image_urls):
            if not url:
                continue
            if target.preloaded_images[i] is None:
                target.preloaded_images[i] = await self._resolve_image(url)

            if not preview_set and target.preloaded_images[i] is not None:
                self._set_door_preview(door_index, target.preloaded_images[i])
                preview_set = True

        if not preview_set:
            self._set_door_preview(door_index, None)

    def _set_door_preview(self, door_index: int, image: Any) -> None:
        self.door_previews[door_index] = image
        self._notify("door_preview")

    def _clear_door_previews(self) -> None:
        self.door_previews = [None] * DOOR_COUNT
        self._notify("door_preview")

    # ------------------------------- History -------------------------------

    def _push_snapshot(self, return_door_index: int) -> None:
        if not self.current_title:
            return

        snapshot = ArticleSnapshot(
            title=self.current_title,
            image_urls=tuple(self.current_image_urls) if self.current_image_urls is not None else None,
            images=tuple(self.wall_images),
            return_door_index=return_door_index,
            options=copy_door_targets(self.door_targets) if len(self.door_targets) >= DOOR_COUNT else None,
        )
        self.history.push(snapshot)
        self._update_backtrack_availability()

        # keep revisits of this hallway identical to what was just left
        if snapshot.image_urls is not None:
            self.cache.set_image_urls(snapshot.title, snapshot.image_urls)
        if _has_any(snapshot.images):
            self.cache.set_images(snapshot.title, snapshot.images)
        if snapshot.options is not None:
            self.cache.freeze_door_options(snapshot.title, snapshot.options)

    def _update_backtrack_availability(self) -> None:
        self.backtrack_available = bool(self.history)
        if not self.backtrack_available:
            self._set_return_preview(None)
        self._notify("backtrack")

    # ------------------------------- Return door -------------------------------

    def _set_return_preview(self, image: Any) -> None:
        self.return_preview = image
        self._notify("return_preview")

    def _set_return_preview_from_target(self, target: DoorTarget) -> None:
        preloaded = target.first_preloaded()
        if preloaded is not None:
            self._set_return_preview(preloaded)
            return
        self._set_return_preview_from_urls(target.image_urls)

    def _set_return_preview_from_snapshot(self, snapshot: ArticleSnapshot) -> None:
        image = snapshot.first_image()
        if image is not None:
            self._set_return_preview(image)
            return
        self._set_return_preview_from_urls(snapshot.image_urls or ())

    def _set_return_preview_from_urls(self, urls: Sequence[str]) -> None:
        for url in urls:
            if not url:
                continue
            cached = self.cache.get_image_by_url(url)
            if cached is not None:
                self._set_return_preview(cached)
                return

        if any(urls):
            self._spawn(self._fetch_return_preview(list(urls)), "return-preview")
        else:
            self._set_return_preview(None)

    async def _fetch_return_preview(self, urls: List[str]) -> None:
        for url in urls:
            if not url:
                continue
            image = await self._resolve_image(url)
            if image is not None:
                self._set_return_preview(image)
                return


def _has_any(images: Optional[Sequence[Any]]) -> bool:
    return images is not None and any(image is not None for image in images)
