"""Stickers and file attachments delivered by the platform itself."""

import base64

import httpx
from loguru import logger

from nanothread.extract.base import ExtractionContext
from nanothread.models.blocks import FileBlock, ImageBlock, TextBlock
from nanothread.models.chat import Attachment, InboundMessage
from nanothread.utils.helpers import strip_query

MAX_TEXT_ATTACHMENT_CHARS = 8000


def extract_stickers(message: InboundMessage, ctx: ExtractionContext) -> None:
    for sticker in message.stickers:
        ctx.add(ImageBlock(sticker.url))
        logger.debug(f"Sticker added: {sticker.url}")


async def _embed_pdf(att: Attachment, ctx: ExtractionContext, client: httpx.AsyncClient) -> None:
    resp = await client.get(att.url)
    resp.raise_for_status()
    b64 = base64.b64encode(resp.content).decode("ascii")
    ctx.blocks.append(FileBlock(filename=att.name, data=f"data:{att.content_type};base64,{b64}"))


async def _embed_text(att: Attachment, ctx: ExtractionContext, client: httpx.AsyncClient) -> None:
    resp = await client.get(att.url)
    resp.raise_for_status()
    text = resp.text
    if len(text) > MAX_TEXT_ATTACHMENT_CHARS:
        text = text[:MAX_TEXT_ATTACHMENT_CHARS] + "... [truncated]"
    ext = att.name.rsplit(".", 1)[-1] or "txt"
    ctx.blocks.append(TextBlock(f"```{ext}\n{text}\n```"))


async def extract_attachments(
    message: InboundMessage,
    ctx: ExtractionContext,
    client: httpx.AsyncClient,
) -> None:
    """
    One rule per attachment type.

    - ``image/*``: image block by URL.
    - ``application/pdf``: downloaded and inlined as a file block.
    - ``text/*``: downloaded into a fenced code block named after the file
      extension, truncated at 8000 characters.
    - anything else: marked seen and skipped.

    A failed download is logged and the attachment is left out; its URL is
    not marked seen, so it falls through to the generic URL list.
    """
    for att in message.attachments:
        key = strip_query(att.url)
        ct = att.content_type
        logger.debug(f"Attachment detected: {att.url} (type={ct})")

        if ct.startswith("image/"):
            ctx.add(ImageBlock(att.url))
            continue

        if ct == "application/pdf":
            handler = _embed_pdf
        elif ct.startswith("text/"):
            handler = _embed_text
        else:
            ctx.seen.add(key)
            logger.debug(f"Skipped unsupported attachment: {att.url}")
            continue

        try:
            await handler(att, ctx, client)
        except httpx.HTTPError as e:
            logger.warning(f"Failed to embed attachment {att.url}: {e}")
            continue
        ctx.seen.add(key)
        logger.debug(f"Attachment embedded: {att.url}")
