"""
Secret encryption for the config store: AES-256-GCM, stored as base64(nonce + ciphertext).
The key is the ENCRYPTION_KEY setting, zero-padded or truncated to 32 bytes.
"""
from __future__ import annotations
import base64
import binascii
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
DEV_KEY = "bitable-sync-development-key-change-me"


def normalize_key(key: str) -> bytes:
    raw = (key or "").encode("utf-8")
    return raw[:KEY_SIZE].ljust(KEY_SIZE, b"\0")


class CryptoService:
    def __init__(self, key: str = ""):
        if not key:
            logger.warning("ENCRYPTION_KEY is not set; using the development key. Do not use this in production.")
            key = DEV_KEY
        self._aesgcm = AESGCM(normalize_key(key))

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return ""
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, payload_b64: str) -> str:
        """Raises ValueError when the payload is not valid base64 or fails authentication."""
        if not payload_b64:
            return ""
        try:
            payload = base64.b64decode(payload_b64.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise ValueError("ciphertext is not valid base64") from e
        if len(payload) <= NONCE_SIZE:
            raise ValueError("ciphertext too short")
        try:
            plaintext = self._aesgcm.decrypt(payload[:NONCE_SIZE], payload[NONCE_SIZE:], None)
        except InvalidTag as e:
            raise ValueError("ciphertext failed authentication") from e
        return plaintext.decode("utf-8")
