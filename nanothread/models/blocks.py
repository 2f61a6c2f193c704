"""Multimodal content blocks handed to the model provider.

A block is exactly one of ``TextBlock``, ``ImageBlock`` or ``FileBlock``.
``block_to_payload`` is the only place that turns them into the provider's
wire shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class TextBlock:
    text: str


@dataclass(frozen=True)
class ImageBlock:
    """An image by URL. ``url`` may be an http(s) URL or a ``data:`` URI."""
    url: str


@dataclass(frozen=True)
class FileBlock:
    """An inline file. ``data`` is a ``data:<mime>;base64,...`` URI."""
    filename: str
    data: str


Block = Union[TextBlock, ImageBlock, FileBlock]


def block_to_payload(block: Block) -> dict[str, Any]:
    """Serialize a block into the provider's content-part shape."""
    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    if isinstance(block, ImageBlock):
        return {"type": "image_url", "image_url": {"url": block.url}}
    if isinstance(block, FileBlock):
        return {"type": "file", "file": {"filename": block.filename, "file_data": block.data}}
    raise TypeError(f"Unknown block type: {type(block).__name__}")


def blocks_to_payload(blocks: list[Block]) -> list[dict[str, Any]]:
    return [block_to_payload(b) for b in blocks]
