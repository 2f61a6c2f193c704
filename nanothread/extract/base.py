"""Extraction primitives shared by every content extractor."""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx
from loguru import logger

from nanothread.models.blocks import Block, ImageBlock
from nanothread.utils.helpers import strip_query

# Image file extension at the end of a URL path
IMAGE_EXT_RE = re.compile(r"\.(png|jpe?g|webp|gif)(?:\?|$)", re.IGNORECASE)


@dataclass
class ExtractionContext:
    """
    Mutable state threaded through one extraction pass.

    ``seen`` holds query-stripped keys of media already emitted as blocks.
    ``skip`` holds query-stripped source links that were handled by a
    provider and must not come back as generic URLs.
    """

    blocks: list[Block] = field(default_factory=list)
    seen: set[str] = field(default_factory=set)
    skip: set[str] = field(default_factory=set)

    def add(self, block: Block) -> None:
        self.blocks.append(block)
        if isinstance(block, ImageBlock) and not block.url.startswith("data:"):
            self.seen.add(strip_query(block.url))


@dataclass
class ExtractionResult:
    blocks: list[Block]
    generic_urls: list[str]


class Extractor(ABC):
    """
    A link-driven content provider (GIF services, social embeds).

    Subclasses set ``name`` and ``pattern`` and implement ``resolve``. Every
    matched link is added to ``skip`` before it is resolved, so a failed
    resolution still keeps the link out of the generic URL list.
    """

    name: str = ""
    pattern: re.Pattern

    def enabled(self, allow_inline: bool) -> bool:
        """Whether this extractor runs for the current model."""
        return True

    def matches(self, text: str) -> list[str]:
        return self.pattern.findall(text)

    @abstractmethod
    async def resolve(self, link: str, client: httpx.AsyncClient) -> list[Block]:
        """
        Turn one matched link into blocks.

        May raise on network or payload errors; ``run`` logs and moves on.
        """
        pass

    async def run(self, text: str, ctx: ExtractionContext, client: httpx.AsyncClient) -> None:
        for link in self.matches(text):
            ctx.skip.add(strip_query(link))
            logger.debug(f"Processing {self.name} link: {link}")
            try:
                blocks = await self.resolve(link, client)
            except Exception as e:
                logger.warning(f"{self.name} lookup failed for {link}: {e}")
                continue
            for block in blocks:
                ctx.add(block)
