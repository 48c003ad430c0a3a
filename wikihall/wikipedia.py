import io
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ValidationError

from wikihall.config import HTTP_TIMEOUT_S, USER_AGENT, WIKI_API, WIKI_REST_API
from wikihall.errors import FetchError, NotFoundError

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png")


# -----------------------------
# Payload models
# -----------------------------
class MediaSource(BaseModel):
    source: Optional[str] = None


class SrcsetEntry(BaseModel):
    src: Optional[str] = None


class MediaItem(BaseModel):
    type: Optional[str] = None
    original: Optional[MediaSource] = None
    thumbnail: Optional[MediaSource] = None
    srcset: List[SrcsetEntry] = []
    src: Optional[str] = None

    @property
    def best_url(self) -> Optional[str]:
        """
        Full resolution original first, then the thumbnail, then the largest srcset
        entry, then the bare src.
        """
        if self.original is not None and self.original.source:
            return normalize_wiki_url(self.original.source)
        if self.thumbnail is not None and self.thumbnail.source:
            return normalize_wiki_url(self.thumbnail.source)
        if self.srcset and self.srcset[-1].src:
            return normalize_wiki_url(self.srcset[-1].src)
        return normalize_wiki_url(self.src)


class MediaList(BaseModel):
    items: List[MediaItem] = []


class LinkEntry(BaseModel):
    title: Optional[str] = None


class PageLinks(BaseModel):
    title: Optional[str] = None
    links: List[LinkEntry] = []


class LinksQuery(BaseModel):
    pages: Dict[str, PageLinks] = {}


class LinksResponse(BaseModel):
    query: Optional[LinksQuery] = None


def normalize_wiki_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    if url.startswith("//"):
        return "https:" + url
    if url.startswith("http://"):
        return "https://" + url[len("http://"):]
    return url


def is_supported_image_url(url: str) -> bool:
    lower = url.lower()
    # Rasterized SVG thumbnails end in .png but are diagrams, not photos
    if ".svg" in lower and lower.endswith(".png"):
        return False
    return lower.endswith(SUPPORTED_IMAGE_SUFFIXES)


class WikipediaClient:
    def __init__(self, api_url: str = WIKI_API,
                 rest_url: str = WIKI_REST_API,
                 user_agent: str = USER_AGENT,
                 timeout: int = HTTP_TIMEOUT_S,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url
        self.rest_url = rest_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_image_urls(self, page_title: str, max_count: int) -> List[str]:
        """
        Get up to max_count displayable image URLs for a page, in article order.
        Raises NotFoundError when the page does not exist.
        """
        url = f"{self.rest_url}/page/media-list/{quote(page_title.replace(' ', '_'), safe='')}"
        data = self._get_json(url)

        try:
            media = MediaList.model_validate(data)
        except ValidationError as e:
            raise FetchError(f"Unexpected media-list payload for '{page_title}': {e}")

        urls = []
        for item in media.items:
            if len(urls) >= max_count:
                break
            if item.type != "image":
                continue

            best = item.best_url
            if not best:
                continue
            if not is_supported_image_url(best):
                logger.debug("Skipping unsupported image %s", best)
                continue
            urls.append(best)

        return urls

    def get_linked_titles(self, page_title: str, max_count: int) -> List[str]:
        """
        Get up to max_count article (namespace 0) titles linked from a page, in API order.
        """
        params = {
            "action": "query",
            "format": "json",
            "prop": "links",
            "plnamespace": 0,
            "pllimit": max(2, max_count),
            "titles": page_title,
        }
        data = self._make_api_request(params)

        try:
            response = LinksResponse.model_validate(data)
        except ValidationError as e:
            raise FetchError(f"Unexpected links payload for '{page_title}': {e}")

        titles = []
        if response.query is None:
            return titles

        for page in response.query.pages.values():
            for link in page.links:
                if len(titles) >= max_count:
                    return titles
                if link.title:
                    titles.append(link.title)

        return titles

    def download_image(self, url: str) -> Image.Image:
        """
        Download and decode an image. Pixel data is loaded eagerly so a truncated
        file fails here rather than when it is first drawn.
        """
        response = self._get(url)
        try:
            image = Image.open(io.BytesIO(response.content))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise FetchError(f"Could not decode image {url}: {e}")
        return image

    def _make_api_request(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Make a GET request to the MediaWiki API using a dictionary of parameters. Returns the JSON response.
        """
        return self._get_json(self.api_url, params=params)

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self._get(url, params=params)
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON from {url}: {e}")

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        headers = {
            "User-Agent": self.user_agent
        }

        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.Timeout:
            raise FetchError(f"Request to {url} timed out")
        except requests.RequestException as e:
            raise FetchError(f"Error making request to {url}: {e}")

        if response.status_code == 404:
            raise NotFoundError(f"Not found (404): {url}")
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise FetchError(f"Error making request to {url}: {e}")
        return response
