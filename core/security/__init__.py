"""Security module - webhook link encryption and storage."""

from core.security.encryption import (
    LinkEncryption,
    generate_key_and_iv,
)
from core.security.link_store import (
    LinkStore,
    EncryptedLink,
    InMemoryLinkStore,
    EnvFileLinkStore,
    initialize_link,
)

__all__ = [
    "LinkEncryption",
    "generate_key_and_iv",
    "LinkStore",
    "EncryptedLink",
    "InMemoryLinkStore",
    "EnvFileLinkStore",
    "initialize_link",
]
