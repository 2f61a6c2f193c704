"""Social media links: oEmbed lookups for Twitter/X and YouTube, bare links otherwise."""

import re
from html.parser import HTMLParser

import httpx
from loguru import logger

from nanothread.extract.base import IMAGE_EXT_RE, Extractor
from nanothread.models.blocks import Block, ImageBlock, TextBlock

TWITTER_OEMBED_URL = "https://publish.twitter.com/oembed"
YOUTUBE_OEMBED_URL = "https://www.youtube.com/oembed"

_HTML_URL_RE = re.compile(r"https?://[^\"\s<]+", re.IGNORECASE)
_PARAGRAPH_RE = re.compile(r"<p[^>]*>(.*?)</p>", re.IGNORECASE)


class _TextOnly(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []

    def handle_data(self, data: str) -> None:
        self.parts.append(data)


def strip_tags(html: str) -> str:
    """Plain text of an HTML fragment, entities decoded."""
    parser = _TextOnly()
    parser.feed(html)
    parser.close()
    return "".join(parser.parts).strip()


class SocialExtractor(Extractor):
    """
    A social provider link.

    Links that are themselves image files become image blocks. The base
    behaviour for everything else is the bare link as text.
    """

    def __init__(self, name: str = "", pattern: str | re.Pattern | None = None):
        if name:
            self.name = name
        if pattern is not None:
            self.pattern = re.compile(pattern, re.IGNORECASE) if isinstance(pattern, str) else pattern

    async def resolve(self, link: str, client: httpx.AsyncClient) -> list[Block]:
        if IMAGE_EXT_RE.search(link):
            return [ImageBlock(link)]
        return await self.embed(link, client)

    async def embed(self, link: str, client: httpx.AsyncClient) -> list[Block]:
        return [TextBlock(link)]


class TwitterExtractor(SocialExtractor):
    """Tweet images and text from the Twitter oEmbed HTML."""

    name = "twitter"
    pattern = re.compile(r"https?://(?:www\.)?(?:twitter|x)\.com/\S+/status/\d+", re.IGNORECASE)

    async def embed(self, link: str, client: httpx.AsyncClient) -> list[Block]:
        resp = await client.get(TWITTER_OEMBED_URL, params={"url": link})
        resp.raise_for_status()
        html = resp.json().get("html") or ""

        blocks: list[Block] = [ImageBlock(u) for u in _HTML_URL_RE.findall(html) if IMAGE_EXT_RE.search(u)]

        text = link
        match = _PARAGRAPH_RE.search(html)
        if match and match.group(1):
            text = strip_tags(match.group(1)) or link
        blocks.append(TextBlock(text))
        logger.debug(f"Tweet {link}: {len(blocks) - 1} image(s), text={text[:60]!r}")
        return blocks


class YouTubeExtractor(SocialExtractor):
    """Video thumbnail and title from the YouTube oEmbed endpoint."""

    name = "youtube"
    pattern = re.compile(r"https?://(?:youtu\.be/|www\.youtube\.com/watch\?v=)\S+", re.IGNORECASE)

    async def embed(self, link: str, client: httpx.AsyncClient) -> list[Block]:
        resp = await client.get(YOUTUBE_OEMBED_URL, params={"url": link})
        resp.raise_for_status()
        data = resp.json()

        blocks: list[Block] = []
        thumbnail = data.get("thumbnail_url")
        if thumbnail and IMAGE_EXT_RE.search(thumbnail):
            blocks.append(ImageBlock(thumbnail))
        title = (data.get("title") or "").strip()
        blocks.append(TextBlock(title or link))
        return blocks


def social_extractors() -> list[SocialExtractor]:
    """Social providers in match order."""
    return [
        TwitterExtractor(),
        YouTubeExtractor(),
        SocialExtractor("reddit", r"https?://(?:www\.)?reddit\.com/r/\S+/comments/\S+"),
        SocialExtractor("instagram", r"https?://(?:www\.)?(?:instagram|instagr\.am)/[pr]eels?/\S+"),
        SocialExtractor("tiktok", r"https?://(?:[\w.-]+\.)?tiktok\.com/\S+"),
    ]
