"""Storage backends for the encrypted webhook link.

- InMemoryLinkStore: For development/testing
- EnvFileLinkStore: Persists CRYPTO_KEY / CRYPTO_IV / BX_LINK to a dotenv
  file and mirrors them into the process environment, so a running server
  picks up a new link without a restart.
"""

import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values, set_key

from core.errors import ConfigurationError, ValidationError
from core.security.encryption import LinkEncryption, generate_key_and_iv


ENV_KEY = "CRYPTO_KEY"
ENV_IV = "CRYPTO_IV"
ENV_LINK = "BX_LINK"


@dataclass(frozen=True)
class EncryptedLink:
    """Encrypted webhook link with the key material needed to read it."""
    ciphertext: str  # Base64-encoded AES-GCM output
    key: str         # Base64-encoded 32-byte key
    iv: str          # Base64-encoded 12-byte IV

    def to_env(self) -> Dict[str, str]:
        return {ENV_KEY: self.key, ENV_IV: self.iv, ENV_LINK: self.ciphertext}

    @classmethod
    def from_env(cls, values) -> Optional["EncryptedLink"]:
        key, iv, link = values.get(ENV_KEY), values.get(ENV_IV), values.get(ENV_LINK)
        if not key or not iv or not link:
            return None
        return cls(ciphertext=link, key=key, iv=iv)

    def decrypt(self) -> str:
        return LinkEncryption(self.key).decrypt(self.ciphertext, self.iv)


class LinkStore(ABC):
    """Abstract base class for link storage."""

    @abstractmethod
    async def save(self, link: EncryptedLink) -> None:
        """Store an encrypted link, replacing any previous one."""
        pass

    @abstractmethod
    async def load(self) -> Optional[EncryptedLink]:
        """Return the stored link, or None if /init has not been called."""
        pass

    async def get_base_url(self) -> str:
        """Decrypt the stored link.

        Raises:
            ConfigurationError: If no link is stored or it cannot be decrypted
        """
        encrypted = await self.load()
        if encrypted is None:
            raise ConfigurationError("Bitrix webhook is not initialized. Call /init first.")
        try:
            return encrypted.decrypt().rstrip("/")
        except ValueError as e:
            raise ConfigurationError(f"Stored Bitrix webhook cannot be decrypted: {e}. Call /init again.")


class InMemoryLinkStore(LinkStore):
    """In-memory link storage.

    WARNING: The link is lost on restart. Use only for development.
    """

    def __init__(self, link: Optional[EncryptedLink] = None):
        self._link = link
        self._lock = threading.Lock()

    async def save(self, link: EncryptedLink) -> None:
        with self._lock:
            self._link = link

    async def load(self) -> Optional[EncryptedLink]:
        with self._lock:
            return self._link


class EnvFileLinkStore(LinkStore):
    """Dotenv-backed link storage.

    Other variables in the file are left untouched.
    """

    def __init__(self, env_path: str = ".env"):
        self._env_path = Path(env_path)
        self._lock = threading.Lock()

    @property
    def env_path(self) -> Path:
        return self._env_path

    async def save(self, link: EncryptedLink) -> None:
        with self._lock:
            self._env_path.parent.mkdir(parents=True, exist_ok=True)
            self._env_path.touch(exist_ok=True)
            try:
                os.chmod(self._env_path, 0o600)
            except OSError:
                pass  # Windows doesn't support chmod the same way

            for name, value in link.to_env().items():
                set_key(str(self._env_path), name, value, quote_mode="never")
                os.environ[name] = value

    async def load(self) -> Optional[EncryptedLink]:
        with self._lock:
            link = EncryptedLink.from_env(os.environ)
            if link is not None:
                return link
            if not self._env_path.exists():
                return None
            return EncryptedLink.from_env(dotenv_values(self._env_path))


async def initialize_link(store: LinkStore, bx_link: Optional[str]) -> EncryptedLink:
    """Encrypt a webhook link under a fresh key/IV and persist it.

    Args:
        store: Where to persist the encrypted link
        bx_link: Inbound webhook URL, e.g. https://portal.bitrix24.kz/rest/1/abc123

    Raises:
        ValidationError: If the link is missing or blank
    """
    if bx_link is None or not str(bx_link).strip():
        raise ValidationError("An inbound webhook link must be provided!")

    key, iv = generate_key_and_iv()
    ciphertext = LinkEncryption(key).encrypt(str(bx_link).strip(), iv)
    encrypted = EncryptedLink(ciphertext=ciphertext, key=key, iv=iv)
    await store.save(encrypted)
    return encrypted
