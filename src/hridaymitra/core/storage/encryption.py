"""Encryption at rest for stored record sequences.

Each user's history is one opaque blob, so whole payloads are encrypted
with Fernet. Keys can be rotated: new writes use the primary key while
retired keys stay readable until every sequence has been rewritten.
"""

from __future__ import annotations

import logging
from typing import Iterable

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """A key could not be loaded or a payload could not be encrypted/decrypted."""


def _load_key(key: str, label: str) -> Fernet:
    if not key or not key.strip():
        raise EncryptionError(f"{label} must not be empty")
    try:
        return Fernet(key.strip().encode("utf-8"))
    except (ValueError, TypeError) as exc:
        raise EncryptionError(f"Invalid {label.lower()}: {exc}") from exc


class PayloadEncryptor:
    """Fernet encryption of record payloads, with optional retired keys.

    Usage::

        encryptor = PayloadEncryptor(new_key, retired_keys=[old_key])
        token = encryptor.encrypt(payload)       # always under new_key
        encryptor.decrypt(old_token)             # readable under old_key
    """

    def __init__(self, key: str, retired_keys: Iterable[str] = ()) -> None:
        """
        Args:
            key: Primary Fernet key; see :meth:`generate_key`.
            retired_keys: Keys that may still have encrypted stored payloads.

        Raises:
            EncryptionError: If any key is empty or malformed.
        """
        primary = _load_key(key, "Encryption key")
        retired = [_load_key(k, "Retired key") for k in retired_keys]
        self._fernet = MultiFernet([primary, *retired])
        self._retired_count = len(retired)
        if retired:
            logger.info("Encryption enabled with %d retired key(s) accepted for reads", len(retired))

    @property
    def retired_key_count(self) -> int:
        return self._retired_count

    def encrypt(self, payload: bytes) -> bytes:
        if not isinstance(payload, (bytes, bytearray)):
            raise EncryptionError(f"Payload must be bytes, got {type(payload).__name__}")
        return self._fernet.encrypt(bytes(payload))

    def decrypt(self, token: bytes) -> bytes:
        """Recover a payload encrypted under the primary or any retired key.

        Raises:
            EncryptionError: If the token is corrupt or no configured key fits.
        """
        try:
            return self._fernet.decrypt(token)
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        except TypeError as exc:
            raise EncryptionError(f"Decryption failed: {exc}") from exc

    @staticmethod
    def generate_key() -> str:
        """A fresh URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
