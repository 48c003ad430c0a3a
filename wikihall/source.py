import asyncio
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from wikihall.wikipedia import WikipediaClient


class ContentSource(ABC):
    """
    Async request/response access to article imagery and links. Implementations
    hold no cache and never retry; failures are raised as ContentSourceError
    subclasses (NotFoundError, FetchError).
    """

    @abstractmethod
    async def fetch_image_urls(self, title: str, max_count: int) -> List[str]:
        ...

    @abstractmethod
    async def fetch_linked_titles(self, title: str, max_count: int) -> List[str]:
        ...

    @abstractmethod
    async def download_image(self, url: str) -> Any:
        ...


class WikipediaContentSource(ContentSource):
    """
    Runs the blocking WikipediaClient in a worker thread. Only the HTTP call leaves
    the event loop; results come back to the loop before anyone touches shared state.
    """

    def __init__(self, client: Optional[WikipediaClient] = None):
        self.client = client or WikipediaClient()

    async def fetch_image_urls(self, title: str, max_count: int) -> List[str]:
        return await asyncio.to_thread(self.client.get_image_urls, title, max_count)

    async def fetch_linked_titles(self, title: str, max_count: int) -> List[str]:
        return await asyncio.to_thread(self.client.get_linked_titles, title, max_count)

    async def download_image(self, url: str) -> Any:
        return await asyncio.to_thread(self.client.download_image, url)
