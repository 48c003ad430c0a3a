import asyncio
from typing import Dict, Iterable, List, Optional

import pytest

from wikihall.errors import FetchError, NotFoundError
from wikihall.source import ContentSource
from wikihall.titles import title_key


def urls_for(title: str, count: int) -> List[str]:
    slug = title.replace(" ", "_")
    return [f"https://upload.example.org/{slug}/{i}.jpg" for i in range(count)]


def image_for(url: str) -> str:
    return f"image:{url}"


class FakeSource(ContentSource):
    """
    In-memory wiki. `pages` maps title -> number of images, `links` maps title ->
    outbound titles. Unknown titles raise NotFoundError. Downloads can be failed
    by URL or held open with an asyncio.Event gate.
    """

    def __init__(self, pages: Dict[str, int], links: Dict[str, List[str]],
                 failing_urls: Iterable[str] = (), broken_links: Iterable[str] = ()):
        self.image_urls = {title_key(t): urls_for(t, n) for t, n in pages.items()}
        self.links = {title_key(t): list(v) for t, v in links.items()}
        self.failing_urls = set(failing_urls)
        self.broken_links = {title_key(t) for t in broken_links}
        self.gates: Dict[str, asyncio.Event] = {}

        self.image_url_calls: List[str] = []
        self.image_url_counts: List[int] = []
        self.link_calls: List[str] = []
        self.download_calls: List[str] = []

    async def fetch_image_urls(self, title: str, max_count: int) -> List[str]:
        self.image_url_calls.append(title)
        self.image_url_counts.append(max_count)
        await asyncio.sleep(0)
        urls = self.image_urls.get(title_key(title))
        if urls is None:
            raise NotFoundError(f"Page not found (404): {title}")
        return list(urls[:max_count])

    async def fetch_linked_titles(self, title: str, max_count: int) -> List[str]:
        self.link_calls.append(title)
        await asyncio.sleep(0)
        key = title_key(title)
        if key in self.broken_links:
            raise FetchError(f"Service unavailable: {title}")
        if key not in self.links and key not in self.image_urls:
            raise NotFoundError(f"Page not found (404): {title}")
        return list(self.links.get(key, [])[:max_count])

    async def download_image(self, url: str) -> str:
        self.download_calls.append(url)
        gate = self.gates.get(url)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        if url in self.failing_urls:
            raise FetchError(f"HTTP 500 for {url}")
        return image_for(url)

    def link_calls_for(self, title: str) -> int:
        return sum(1 for t in self.link_calls if title_key(t) == title_key(title))


HALLWAY_PAGES = {
    "Virtual reality": 6,
    "Augmented reality": 6,
    "Headset": 7,
    "Haptic technology": 8,
    "Stub article": 2,
    "Tiny article": 1,
    "Smartphone": 6,
    "Loudspeaker": 9,
    "Vibration": 6,
}

HALLWAY_LINKS = {
    "Virtual reality": ["Augmented reality", "Headset", "Stub article", "Virtual_reality", "Haptic technology"],
    "Augmented reality": ["Smartphone", "Virtual reality", "Tiny article", "Headset"],
    "Headset": ["Loudspeaker", "Tiny article", "Smartphone"],
    "Haptic technology": ["Vibration", "Smartphone", "Stub article"],
    "Smartphone": ["Loudspeaker", "Vibration"],
    "Loudspeaker": ["Smartphone", "Vibration"],
    "Vibration": ["Loudspeaker", "Haptic technology"],
}


@pytest.fixture
def make_source():
    def _make(pages: Optional[Dict[str, int]] = None, links: Optional[Dict[str, List[str]]] = None, **kwargs):
        return FakeSource(HALLWAY_PAGES if pages is None else pages,
                          HALLWAY_LINKS if links is None else links,
                          **kwargs)
    return _make


@pytest.fixture
def source(make_source):
    return make_source()
