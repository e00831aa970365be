"""
Webhook link encryption and storage tests.
"""

import asyncio
import base64
import os

import pytest
from dotenv import dotenv_values

from core.errors import ConfigurationError, ValidationError
from core.security.encryption import LinkEncryption, generate_key_and_iv
from core.security.link_store import (
    ENV_IV,
    ENV_KEY,
    ENV_LINK,
    EncryptedLink,
    EnvFileLinkStore,
    InMemoryLinkStore,
    initialize_link,
)


WEBHOOK = "https://portal.example.kz/rest/1/secret-token"


@pytest.fixture
def clean_env(monkeypatch):
    """Blank the link variables and restore them after the test."""
    for name in (ENV_KEY, ENV_IV, ENV_LINK):
        monkeypatch.setenv(name, "")


class TestLinkEncryption:
    """AES-256-GCM link encryption."""

    def test_key_and_iv_sizes(self):
        key, iv = generate_key_and_iv()
        assert len(base64.b64decode(key)) == 32
        assert len(base64.b64decode(iv)) == 12

    def test_fresh_material_each_time(self):
        assert generate_key_and_iv() != generate_key_and_iv()

    def test_round_trip(self):
        key, iv = generate_key_and_iv()
        enc = LinkEncryption(key)

        ciphertext = enc.encrypt(WEBHOOK, iv)

        assert "secret-token" not in ciphertext
        assert enc.decrypt(ciphertext, iv) == WEBHOOK

    def test_wrong_key_fails(self):
        key, iv = generate_key_and_iv()
        other_key, _ = generate_key_and_iv()
        ciphertext = LinkEncryption(key).encrypt(WEBHOOK, iv)

        with pytest.raises(ValueError, match="Link decryption failed"):
            LinkEncryption(other_key).decrypt(ciphertext, iv)

    def test_tampered_ciphertext_fails(self):
        key, iv = generate_key_and_iv()
        raw = bytearray(base64.b64decode(LinkEncryption(key).encrypt(WEBHOOK, iv)))
        raw[0] ^= 0xFF

        with pytest.raises(ValueError):
            LinkEncryption(key).decrypt(base64.b64encode(bytes(raw)).decode(), iv)

    def test_short_key_rejected(self):
        with pytest.raises(ValueError, match="32 bytes"):
            LinkEncryption(base64.b64encode(b"short").decode())


class TestInitializeLink:
    """initialize_link with the in-memory store."""

    @pytest.mark.parametrize("link", [None, "", "   "])
    def test_blank_link_rejected(self, link):
        store = InMemoryLinkStore()

        with pytest.raises(ValidationError) as exc:
            asyncio.run(initialize_link(store, link))

        assert exc.value.message == "An inbound webhook link must be provided!"
        assert asyncio.run(store.load()) is None

    def test_stored_link_decrypts_to_base_url(self):
        store = InMemoryLinkStore()

        asyncio.run(initialize_link(store, WEBHOOK + "/"))

        assert asyncio.run(store.get_base_url()) == WEBHOOK

    def test_reinit_replaces_key_material(self):
        store = InMemoryLinkStore()

        first = asyncio.run(initialize_link(store, WEBHOOK))
        second = asyncio.run(initialize_link(store, "https://other.example.kz/rest/9/t"))

        assert first.key != second.key
        assert asyncio.run(store.get_base_url()) == "https://other.example.kz/rest/9/t"

    def test_uninitialized_store(self):
        with pytest.raises(ConfigurationError, match="/init"):
            asyncio.run(InMemoryLinkStore().get_base_url())

    def test_undecryptable_link(self):
        key, iv = generate_key_and_iv()
        other_key, _ = generate_key_and_iv()
        link = EncryptedLink(ciphertext=LinkEncryption(other_key).encrypt(WEBHOOK, iv), key=key, iv=iv)

        with pytest.raises(ConfigurationError):
            asyncio.run(InMemoryLinkStore(link).get_base_url())


class TestEnvFileLinkStore:
    """Dotenv persistence."""

    def test_save_writes_file_and_environment(self, tmp_path, clean_env):
        env_path = tmp_path / ".env"
        store = EnvFileLinkStore(str(env_path))

        link = asyncio.run(initialize_link(store, WEBHOOK))

        values = dotenv_values(env_path)
        assert values[ENV_KEY] == link.key
        assert values[ENV_IV] == link.iv
        assert values[ENV_LINK] == link.ciphertext
        assert os.environ[ENV_LINK] == link.ciphertext
        assert asyncio.run(store.get_base_url()) == WEBHOOK

    def test_other_variables_preserved(self, tmp_path, clean_env):
        env_path = tmp_path / ".env"
        env_path.write_text("PORT=5682\nCURRENCY=KZT\n")

        asyncio.run(initialize_link(EnvFileLinkStore(str(env_path)), WEBHOOK))

        values = dotenv_values(env_path)
        assert values["PORT"] == "5682"
        assert values["CURRENCY"] == "KZT"
        assert ENV_LINK in values

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_file_is_private(self, tmp_path, clean_env):
        env_path = tmp_path / ".env"

        asyncio.run(initialize_link(EnvFileLinkStore(str(env_path)), WEBHOOK))

        assert env_path.stat().st_mode & 0o777 == 0o600

    def test_load_from_file_when_environment_is_empty(self, tmp_path, clean_env):
        key, iv = generate_key_and_iv()
        ciphertext = LinkEncryption(key).encrypt(WEBHOOK, iv)
        env_path = tmp_path / ".env"
        env_path.write_text(f"{ENV_KEY}={key}\n{ENV_IV}={iv}\n{ENV_LINK}={ciphertext}\n")

        store = EnvFileLinkStore(str(env_path))

        assert asyncio.run(store.get_base_url()) == WEBHOOK

    def test_missing_file_is_uninitialized(self, tmp_path, clean_env):
        store = EnvFileLinkStore(str(tmp_path / "missing.env"))

        assert asyncio.run(store.load()) is None
        with pytest.raises(ConfigurationError):
            asyncio.run(store.get_base_url())
