"""Encrypted on-disk persistence."""

from nanothread.storage.crypto import Cipher, derive_key
from nanothread.storage.persistence import EncryptedStore

__all__ = ["Cipher", "derive_key", "EncryptedStore"]
