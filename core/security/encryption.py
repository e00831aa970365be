"""Webhook link encryption using AES-GCM.

The inbound-webhook link embeds a secret token, so it is only kept at rest in
encrypted form. Each ``/init`` call generates a fresh 256-bit key and a fresh
96-bit IV; the link is encrypted with AES-256-GCM and the ciphertext (which
includes the authentication tag) is stored base64-encoded next to the key
and IV.
"""

import base64
import secrets
from typing import Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM


KEY_BYTES = 32
IV_BYTES = 12


def generate_key_and_iv() -> Tuple[str, str]:
    """Generate a new AES-256 key and GCM IV.

    Returns:
        (key, iv), both base64-encoded
    """
    key = secrets.token_bytes(KEY_BYTES)
    iv = secrets.token_bytes(IV_BYTES)
    return (
        base64.b64encode(key).decode('utf-8'),
        base64.b64encode(iv).decode('utf-8'),
    )


class LinkEncryption:
    """AES-256-GCM encryption for the webhook link.

    Usage:
        key, iv = generate_key_and_iv()
        enc = LinkEncryption(key)
        ciphertext = enc.encrypt("https://portal/rest/1/token", iv)
        link = enc.decrypt(ciphertext, iv)
    """

    def __init__(self, encryption_key: str):
        """Initialize with base64-encoded encryption key.

        Args:
            encryption_key: Base64-encoded 32-byte key (from generate_key_and_iv())
        """
        try:
            self._key = base64.b64decode(encryption_key, validate=True)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid encryption key: {e}")
        if len(self._key) != KEY_BYTES:
            raise ValueError("Invalid encryption key: key must be 32 bytes (256 bits)")

        self._aesgcm = AESGCM(self._key)

    @staticmethod
    def _decode_iv(iv: str) -> bytes:
        try:
            raw = base64.b64decode(iv, validate=True)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid IV: {e}")
        if len(raw) != IV_BYTES:
            raise ValueError("Invalid IV: IV must be 12 bytes")
        return raw

    def encrypt(self, plaintext: str, iv: str) -> str:
        """Encrypt a link.

        Returns:
            Base64-encoded ciphertext with the GCM tag appended
        """
        ciphertext = self._aesgcm.encrypt(self._decode_iv(iv), plaintext.encode('utf-8'), None)
        return base64.b64encode(ciphertext).decode('utf-8')

    def decrypt(self, ciphertext: str, iv: str) -> str:
        """Decrypt a link.

        Raises:
            ValueError: If decryption fails (wrong key or IV, tampered data)
        """
        try:
            raw = base64.b64decode(ciphertext, validate=True)
            plaintext = self._aesgcm.decrypt(self._decode_iv(iv), raw, None)
        except (InvalidTag, ValueError, TypeError) as e:
            raise ValueError(f"Link decryption failed: {e or type(e).__name__}")
        return plaintext.decode('utf-8')
