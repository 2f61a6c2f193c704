"""Direct image links in message text."""

import base64
import re
from urllib.parse import urlsplit

import httpx
from loguru import logger

from nanothread.extract.base import ExtractionContext
from nanothread.models.blocks import ImageBlock
from nanothread.utils.helpers import strip_query

INLINE_IMAGE_RE = re.compile(r"https?://\S+\.(?:png|jpe?g|webp|gif)(?:\?\S*)?", re.IGNORECASE)

# Hosts whose image URLs the model provider can fetch itself
TRUSTED_IMAGE_HOSTS = frozenset({
    "cdn.discordapp.com",
    "media.tenor.com",
    "media.giphy.com",
})


async def _inline(url: str, client: httpx.AsyncClient) -> str:
    resp = await client.get(url)
    resp.raise_for_status()
    content_type = resp.headers.get("content-type", "")
    b64 = base64.b64encode(resp.content).decode("ascii")
    return f"data:{content_type};base64,{b64}"


async def extract_inline_images(text: str, ctx: ExtractionContext, client: httpx.AsyncClient) -> None:
    """
    Add an image block for every image URL in ``text`` not already seen.

    Trusted hosts are referenced by URL. Other hosts are downloaded and
    inlined as data URIs; if that fails the bare URL is used instead.
    """
    for raw_url in INLINE_IMAGE_RE.findall(text):
        key = strip_query(raw_url)
        if key in ctx.seen:
            continue
        host = urlsplit(raw_url).hostname or ""
        logger.debug(f"Found inline image: {raw_url}")

        if host in TRUSTED_IMAGE_HOSTS:
            ctx.blocks.append(ImageBlock(raw_url))
        else:
            try:
                ctx.blocks.append(ImageBlock(await _inline(raw_url, client)))
                logger.debug(f"Inlined untrusted image: {raw_url}")
            except httpx.HTTPError as e:
                logger.warning(f"Failed to inline {raw_url}, using raw URL: {e}")
                ctx.blocks.append(ImageBlock(raw_url))

        ctx.seen.add(key)
