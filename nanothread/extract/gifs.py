"""GIF service links resolved to direct image URLs."""

import re

import httpx
from loguru import logger

from nanothread.extract.base import IMAGE_EXT_RE, Extractor
from nanothread.models.blocks import Block, ImageBlock

TENOR_POSTS_URL = "https://tenor.googleapis.com/v2/posts"
GIPHY_GIFS_URL = "https://api.giphy.com/v1/gifs/{gif_id}"


class _GifExtractor(Extractor):
    """GIF providers need an API key and a model that accepts images."""

    def __init__(self, api_key: str = ""):
        self.api_key = api_key

    def enabled(self, allow_inline: bool) -> bool:
        return bool(self.api_key) and allow_inline


class TenorExtractor(_GifExtractor):
    """``tenor.com/view/...-<id>`` links, resolved through the Tenor posts API."""

    name = "tenor"
    pattern = re.compile(r"https?://tenor\.com/view/\S+", re.IGNORECASE)
    _post_id = re.compile(r"-(\d+)(?:$|\?)")

    async def resolve(self, link: str, client: httpx.AsyncClient) -> list[Block]:
        match = self._post_id.search(link)
        if not match:
            logger.debug(f"No Tenor post id in {link}")
            return []
        resp = await client.get(TENOR_POSTS_URL, params={"ids": match.group(1), "key": self.api_key})
        resp.raise_for_status()
        results = resp.json().get("results") or []
        url = results[0].get("media_formats", {}).get("gif", {}).get("url") if results else None
        if not url:
            return []
        logger.debug(f"Tenor GIF added: {url}")
        return [ImageBlock(url)]


class GiphyExtractor(_GifExtractor):
    """``*.giphy.com/gifs/...-<id>`` links, resolved through the Giphy API."""

    name = "giphy"
    pattern = re.compile(r"https?://\S+\.giphy\.com/gifs/\S+", re.IGNORECASE)

    async def resolve(self, link: str, client: httpx.AsyncClient) -> list[Block]:
        gif_id = link.split("-")[-1]
        if not gif_id:
            return []
        resp = await client.get(GIPHY_GIFS_URL.format(gif_id=gif_id), params={"api_key": self.api_key})
        resp.raise_for_status()
        url = resp.json()["data"]["images"]["original"]["url"]
        if not IMAGE_EXT_RE.search(url):
            return []
        logger.debug(f"Giphy GIF added: {url}")
        return [ImageBlock(url)]
