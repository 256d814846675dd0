"""Fernet-based encryption for raw sample payloads at rest.

Wearable rows may carry the per-timestamp samples they were rolled up
from (heart-rate beats, for instance). Those payloads are encrypted before
writing to SQLite; the aggregated value column stays in the clear so the
page scans never decrypt anything they do not return.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""


class FieldEncryptor:
    """Encrypts and decrypts JSON-serializable payloads with Fernet.

    Usage::

        encryptor = FieldEncryptor(key=FieldEncryptor.generate_key())
        token = encryptor.encrypt([{"timestamp": "...", "bpm": 61}])
        samples = encryptor.decrypt(token)
    """

    def __init__(self, key: str | bytes) -> None:
        """Initialize with a Fernet key.

        Raises:
            EncryptionError: If the key is empty or invalid.
        """
        if isinstance(key, str):
            key = key.strip().encode("utf-8")
        if not key:
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = Fernet(key)
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc

    def encrypt(self, data: Any) -> str | None:
        """Encrypt a JSON-serializable value; ``None`` stays ``None`` (SQL NULL)."""
        if data is None:
            return None
        try:
            plaintext = json.dumps(data, separators=(",", ":"), sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Payload is not JSON-serializable: {exc}") from exc
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str | None) -> Any:
        """Decrypt a token produced by :meth:`encrypt`.

        Raises:
            EncryptionError: If the token is invalid or was made with another key.
        """
        if not token:
            return None
        try:
            plaintext = self._fernet.decrypt(token.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        return json.loads(plaintext)

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
