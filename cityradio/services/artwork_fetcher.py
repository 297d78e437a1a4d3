"""Artwork lookup via a public song search API.

Two sequential requests per lookup: search (limit 1) then image download. Every failure
(transport, timeout, unexpected response shape, undecodable bytes) resolves to the
placeholder artwork; nothing is raised to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from dataclasses import field
from io import BytesIO

import httpx
from PIL import Image

from cityradio.exceptions import ArtworkLookupError
from cityradio.settings import settings

logger = logging.getLogger(__name__)

LOW_RES_SIZE_TOKEN = "100x100"
LOW_RES_PATH_TOKEN = "/100x"


@dataclass(frozen=True)
class Artwork:
    """Resolved artwork: a decoded image, or the placeholder when ``image`` is None."""

    image: Image.Image | None = field(default=None, compare=False)
    url: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.image is None


PLACEHOLDER_ARTWORK = Artwork()


def build_search_term(artist: str | None, title: str) -> str:
    """Build the search term: "artist title", or just the title when artist is unknown."""
    if not artist or not artist.strip():
        return title.strip()
    return f"{artist.strip()} {title.strip()}"


def upgrade_artwork_url(url: str, size: int) -> str:
    """Rewrite a 100px thumbnail URL to request a larger variant (best effort)."""
    return url.replace(LOW_RES_SIZE_TOKEN, f"{size}x{size}").replace(LOW_RES_PATH_TOKEN, f"/{size}x")


def extract_thumbnail_url(payload: object) -> str:
    """Pull ``results[0].artworkUrl100`` out of a search response.

    :raises ArtworkLookupError: If the payload doesn't have the expected shape
    """
    if not isinstance(payload, dict):
        raise ArtworkLookupError("Search response is not a JSON object")
    results = payload.get("results")
    if not isinstance(results, list):
        raise ArtworkLookupError("Search response has no results array")
    if not results:
        raise ArtworkLookupError("Search returned no results")
    first = results[0]
    if not isinstance(first, dict):
        raise ArtworkLookupError("Search result is not an object")
    thumbnail = first.get("artworkUrl100")
    if not isinstance(thumbnail, str) or not thumbnail.strip():
        raise ArtworkLookupError("Search result has no artworkUrl100")
    return thumbnail.strip()


def parse_artwork_url(url: str) -> httpx.URL:
    """Validate the (rewritten) artwork URL.

    :raises ArtworkLookupError: If the string is not an absolute http(s) URL
    """
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise ArtworkLookupError(f"Invalid artwork URL {url!r}: {e}")
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ArtworkLookupError(f"Invalid artwork URL {url!r}")
    return parsed


def decode_image(image_bytes: bytes) -> Image.Image:
    """Decode raw bytes into a fully loaded Pillow image (CPU-bound, run in a thread).

    :raises ArtworkLookupError: If the bytes are not a decodable image
    """
    if not image_bytes:
        raise ArtworkLookupError("Empty image body")
    try:
        image = Image.open(BytesIO(image_bytes))
        image.load()
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise ArtworkLookupError(f"Could not decode image: {e}")
    return image


class ArtworkFetcher:
    """Resolves artwork for an (artist, title) pair."""

    def __init__(
        self,
        search_url: str = settings.ARTWORK_SEARCH_URL,
        timeout: float = settings.ARTWORK_TIMEOUT_SECONDS,
        image_size: int = settings.ARTWORK_IMAGE_SIZE,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize artwork fetcher.

        Args:
            search_url: Song search endpoint
            timeout: Upper bound in seconds for each of the two requests
            image_size: Edge length requested when upgrading the thumbnail URL
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.search_url = search_url
        self.timeout = timeout
        self.image_size = image_size
        self.transport = transport

    async def fetch(self, artist: str | None, title: str) -> Artwork:
        """Resolve artwork, falling back to the placeholder on any failure."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
                follow_redirects=True,
                headers={"User-Agent": "CityRadio/1.0"},
            ) as client:
                thumbnail_url = await self._search(client, artist, title)
                artwork_url = parse_artwork_url(upgrade_artwork_url(thumbnail_url, self.image_size))
                image_bytes = await self._get(client, artwork_url)
            image = await asyncio.to_thread(decode_image, image_bytes)
        except ArtworkLookupError as e:
            logger.warning(f"Artwork lookup failed for {build_search_term(artist, title)!r}: {e}")
            return PLACEHOLDER_ARTWORK
        except Exception as e:
            logger.error(f"Unexpected error during artwork lookup: {e}", exc_info=True)
            return PLACEHOLDER_ARTWORK

        logger.info(f"Resolved artwork for {build_search_term(artist, title)!r}: {artwork_url}")
        return Artwork(image=image, url=str(artwork_url))

    async def _search(self, client: httpx.AsyncClient, artist: str | None, title: str) -> str:
        params = {"term": build_search_term(artist, title), "entity": "song", "limit": 1}
        response = await self._request(client, self.search_url, params=params)
        try:
            payload = response.json()
        except ValueError as e:
            raise ArtworkLookupError(f"Search response is not JSON: {e}")
        return extract_thumbnail_url(payload)

    async def _get(self, client: httpx.AsyncClient, url: httpx.URL) -> bytes:
        response = await self._request(client, url)
        return response.content

    async def _request(self, client: httpx.AsyncClient, url: str | httpx.URL, params: dict | None = None) -> httpx.Response:
        try:
            response = await asyncio.wait_for(client.get(url, params=params), timeout=self.timeout)
            response.raise_for_status()
        except (TimeoutError, httpx.TimeoutException):
            raise ArtworkLookupError(f"Request timeout ({self.timeout}s): {url}")
        except httpx.HTTPStatusError as e:
            raise ArtworkLookupError(f"HTTP {e.response.status_code} from {url}")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ArtworkLookupError(f"{type(e).__name__}: {e}")
        return response
