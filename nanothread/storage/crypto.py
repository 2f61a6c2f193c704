"""Authenticated symmetric encryption for persisted blobs.

AES-256-GCM with a key derived by hashing a configured secret. Ciphertext is
serialized as ``iv:ciphertext:authTag`` in hex.
"""

import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from nanothread.errors import ConfigurationError, IntegrityError

IV_LENGTH = 16
TAG_LENGTH = 16


def derive_key(secret: str) -> bytes:
    """SHA-256 of the secret, giving a 32-byte AES-256 key."""
    return hashlib.sha256(secret.encode("utf-8")).digest()


class Cipher:
    """
    Encrypts and decrypts text with AES-256-GCM.

    Example:
        >>> cipher = Cipher("correct horse battery staple")
        >>> cipher.decrypt(cipher.encrypt("hello"))
        'hello'
    """

    def __init__(self, secret: str):
        if not secret:
            raise ConfigurationError("Encryption secret is required")
        self._aesgcm = AESGCM(derive_key(secret))

    def encrypt(self, text: str) -> str:
        iv = os.urandom(IV_LENGTH)
        sealed = self._aesgcm.encrypt(iv, text.encode("utf-8"), None)
        # AESGCM appends the tag to the ciphertext
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{ciphertext.hex()}:{tag.hex()}"

    def decrypt(self, payload: str) -> str:
        """
        Reverse ``encrypt``.

        Raises:
            IntegrityError: The payload is malformed or fails authentication.
        """
        parts = payload.strip().split(":")
        if len(parts) != 3:
            raise IntegrityError("Invalid encrypted text format. Expected 'iv:ciphertext:authTag'.")
        try:
            iv, ciphertext, tag = (bytes.fromhex(p) for p in parts)
        except ValueError as e:
            raise IntegrityError(f"Encrypted payload is not valid hex: {e}") from e
        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            raise IntegrityError("Encrypted payload has a bad IV or auth tag")
        try:
            plain = self._aesgcm.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise IntegrityError("Authentication failed; data is corrupt or was tampered with") from e
        try:
            return plain.decode("utf-8")
        except UnicodeDecodeError as e:
            raise IntegrityError(f"Decrypted payload is not UTF-8: {e}") from e
