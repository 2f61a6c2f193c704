"""Encrypted JSON persistence.

Every value is stored as one encrypted blob at ``base_dir/namespace/id.json``.
Writes go to a temp file first and are moved into place, so a reader never
sees a half-written file.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

from loguru import logger

from nanothread.errors import IntegrityError
from nanothread.storage.crypto import Cipher
from nanothread.utils.helpers import atomic_write_text, ensure_dir, safe_filename


class EncryptedStore:
    """
    Load and save JSON-serializable structures, encrypted at rest.

    Corrupt blobs (failed authentication, bad format, invalid JSON) are
    deleted on load and the caller's fallback is returned; a damaged file
    must never block the identity it belongs to.
    """

    def __init__(self, base_dir: Path, cipher: Cipher):
        self.base_dir = Path(base_dir)
        self.cipher = cipher

    def path_for(self, namespace: str, id: str) -> Path:
        return self.base_dir / namespace / f"{safe_filename(id)}.json"

    def save(self, namespace: str, id: str, data: Any) -> Path:
        """
        Serialize, encrypt and atomically write ``data``.

        Raises:
            TypeError: ``data`` is not JSON-serializable.
            OSError: The file could not be written.
        """
        path = self.path_for(namespace, id)
        ensure_dir(path.parent)
        payload = self.cipher.encrypt(json.dumps(data))

        atomic_write_text(path, payload)

        logger.debug(f"Saved {namespace}/{id} ({len(payload)} bytes)")
        return path

    def load(self, namespace: str, id: str, fallback: Any = None) -> Any:
        """Decrypt and parse a stored value, or return ``fallback``."""
        path = self.path_for(namespace, id)
        if not path.exists():
            return fallback

        try:
            payload = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Could not read {path}: {e}")
            return fallback

        try:
            return json.loads(self.cipher.decrypt(payload))
        except (IntegrityError, json.JSONDecodeError) as e:
            logger.warning(f"Discarding corrupt blob {namespace}/{id}: {e}")
            self._discard(path)
            return fallback

    def delete(self, namespace: str, id: str) -> bool:
        path = self.path_for(namespace, id)
        if not path.exists():
            return False
        path.unlink()
        return True

    def exists(self, namespace: str, id: str) -> bool:
        return self.path_for(namespace, id).exists()

    async def asave(self, namespace: str, id: str, data: Any) -> Path:
        """``save`` on a worker thread."""
        return await asyncio.to_thread(self.save, namespace, id, data)

    async def aload(self, namespace: str, id: str, fallback: Any = None) -> Any:
        """``load`` on a worker thread."""
        return await asyncio.to_thread(self.load, namespace, id, fallback)

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not delete corrupt file {path}: {e}")
