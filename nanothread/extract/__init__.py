"""Normalize an inbound message into model content blocks.

Passes run in a fixed order: stickers, attachments, inline images, GIF
providers, social embeds. Whatever URLs remain afterwards are returned as
generic links for the prompt to mention as text.
"""

import re
from typing import Optional

import httpx
from loguru import logger

from nanothread.extract.base import ExtractionContext, ExtractionResult, Extractor
from nanothread.extract.gifs import GiphyExtractor, TenorExtractor
from nanothread.extract.inline_images import extract_inline_images
from nanothread.extract.platform import extract_attachments, extract_stickers
from nanothread.extract.social import social_extractors
from nanothread.models.chat import InboundMessage
from nanothread.utils.helpers import strip_query

_URL_RE = re.compile(r"https?://\S+", re.IGNORECASE)


def collect_generic_urls(content: str, seen: set[str], skip: set[str]) -> list[str]:
    """URLs in ``content`` whose query-stripped form is in neither set."""
    generic = []
    for url in _URL_RE.findall(content):
        key = strip_query(url)
        if key not in seen and key not in skip:
            generic.append(url)
    return generic


def default_extractors(tenor_api_key: str = "", giphy_api_key: str = "") -> list[Extractor]:
    return [
        TenorExtractor(tenor_api_key),
        GiphyExtractor(giphy_api_key),
        *social_extractors(),
    ]


class ContentExtractor:
    """
    Turns stickers, attachments and links in a message into blocks.

    Args:
        client: HTTP client for every outbound fetch.
        tenor_api_key: Enables Tenor resolution when set.
        giphy_api_key: Enables Giphy resolution when set.
        allow_inline: False for text-only models; disables inline images
            and GIF providers.
        extractors: Link providers in run order; defaults to GIF providers
            followed by social embeds.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        tenor_api_key: str = "",
        giphy_api_key: str = "",
        allow_inline: bool = True,
        extractors: Optional[list[Extractor]] = None,
    ):
        self.client = client
        self.allow_inline = allow_inline
        self.extractors = extractors if extractors is not None else default_extractors(tenor_api_key, giphy_api_key)

    async def extract(self, message: InboundMessage) -> ExtractionResult:
        ctx = ExtractionContext()

        extract_stickers(message, ctx)
        await extract_attachments(message, ctx, self.client)
        if self.allow_inline:
            await extract_inline_images(message.content, ctx, self.client)

        for extractor in self.extractors:
            if extractor.enabled(self.allow_inline):
                await extractor.run(message.content, ctx, self.client)

        generic = collect_generic_urls(message.content, ctx.seen, ctx.skip)
        logger.debug(f"Extraction for {message.id}: blocks={len(ctx.blocks)}, generic_urls={len(generic)}")
        return ExtractionResult(blocks=ctx.blocks, generic_urls=generic)


__all__ = [
    "ContentExtractor",
    "ExtractionContext",
    "ExtractionResult",
    "Extractor",
    "collect_generic_urls",
    "default_extractors",
]
