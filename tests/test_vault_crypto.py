"""
Tests for vault configuration and encryption helpers.

Tests cover:
- ENCRYPTION_KEY loading and ConfigurationError reporting
- At-rest API key encryption (AES-GCM and ChaCha20-Poly1305)
- API key hashing
- Session-layer encryption bound to a token
"""
import base64

import pytest
from pydantic import ValidationError

from storyboard_session.exceptions import ConfigurationError, DecryptionError
from storyboard_session.vault import (
    EncryptionConfig,
    SessionStoreConfig,
    decrypt_api_key,
    encrypt_api_key,
    generate_encryption_key,
    hash_api_key,
    load_encryption_key,
    verify_api_key_hash,
)
from storyboard_session.vault.crypto import (
    decrypt_for_session,
    encrypt_for_session,
)


@pytest.fixture
def encryption_key(monkeypatch):
    """Install a fresh ENCRYPTION_KEY and return it."""
    key = generate_encryption_key()
    monkeypatch.setenv("ENCRYPTION_KEY", key)
    monkeypatch.delenv("ENCRYPTION_CIPHER", raising=False)
    return key


# --- Test Configuration ---

class TestEncryptionConfig:

    def test_generated_key_is_32_bytes(self):
        assert len(base64.b64decode(generate_encryption_key())) == 32

    def test_load_from_env(self, encryption_key):
        assert load_encryption_key() == base64.b64decode(encryption_key)

    def test_missing_key(self, monkeypatch):
        monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="not set"):
            load_encryption_key()

    def test_wrong_length(self, monkeypatch):
        monkeypatch.setenv("ENCRYPTION_KEY", base64.b64encode(b"short").decode())
        with pytest.raises(ConfigurationError, match="32 bytes"):
            EncryptionConfig.from_env()

    def test_not_base64(self, monkeypatch):
        monkeypatch.setenv("ENCRYPTION_KEY", "***not-base64***")
        with pytest.raises(ConfigurationError):
            load_encryption_key()

    def test_unsupported_cipher(self):
        with pytest.raises(ValidationError):
            EncryptionConfig(key=b"\x00" * 32, cipher_backend="des")

    def test_repr_hides_key(self):
        config = EncryptionConfig(key=b"\x01" * 32)
        assert "\\x01" not in repr(config)
        assert "aesgcm" in repr(config)


class TestSessionStoreConfig:

    def test_defaults(self):
        config = SessionStoreConfig()
        assert config.ttl == 30 * 60
        assert config.sweep_interval == 5 * 60

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("API_KEY_SESSION_TTL", "600")
        monkeypatch.setenv("API_KEY_SESSION_SWEEP_INTERVAL", "60")
        config = SessionStoreConfig.from_env()
        assert config.ttl == 600
        assert config.sweep_interval == 60

    def test_invalid_ttl(self):
        with pytest.raises(ValidationError):
            SessionStoreConfig(ttl=0)


# --- Test At-Rest Encryption ---

class TestApiKeyEncryption:

    def test_round_trip_from_env(self, encryption_key):
        encrypted = encrypt_api_key("sk-proj-123")
        assert "sk-proj-123" not in encrypted
        assert decrypt_api_key(encrypted) == "sk-proj-123"

    def test_nonce_is_random(self, encryption_key):
        assert encrypt_api_key("sk-a") != encrypt_api_key("sk-a")

    def test_chacha20_backend(self):
        config = EncryptionConfig(key=b"\x02" * 32, cipher_backend="chacha20")
        assert decrypt_api_key(encrypt_api_key("AIza", config), config) == "AIza"

    def test_wrong_key(self):
        encrypted = encrypt_api_key("sk-a", EncryptionConfig(key=b"\x03" * 32))
        with pytest.raises(DecryptionError):
            decrypt_api_key(encrypted, EncryptionConfig(key=b"\x04" * 32))

    def test_tampered_ciphertext(self):
        config = EncryptionConfig(key=b"\x05" * 32)
        raw = bytearray(base64.b64decode(encrypt_api_key("sk-a", config)))
        raw[-1] ^= 0xFF
        with pytest.raises(DecryptionError):
            decrypt_api_key(base64.b64encode(bytes(raw)).decode(), config)

    def test_truncated_ciphertext(self):
        config = EncryptionConfig(key=b"\x05" * 32)
        with pytest.raises(DecryptionError):
            decrypt_api_key(base64.b64encode(b"tiny").decode(), config)

    def test_unknown_backend_on_unvalidated_config(self):
        config = EncryptionConfig.model_construct(key=b"\x06" * 32, cipher_backend="des")
        with pytest.raises(ConfigurationError, match="des"):
            encrypt_api_key("sk-a", config)

    def test_missing_env_key(self, monkeypatch):
        monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            encrypt_api_key("sk-a")


class TestApiKeyHash:

    def test_hash_is_sha256_hex(self):
        digest = hash_api_key("sk-a")
        assert len(digest) == 64
        assert digest == hash_api_key("sk-a")

    def test_verify(self):
        digest = hash_api_key("sk-a")
        assert verify_api_key_hash("sk-a", digest) is True
        assert verify_api_key_hash("sk-b", digest) is False


# --- Test Session-Layer Encryption ---

class TestSessionLayer:

    def test_bound_to_token(self):
        blob = encrypt_for_session(b'{"api_key":"sk-a"}', "token-a")
        assert decrypt_for_session(blob, "token-a") == b'{"api_key":"sk-a"}'
        with pytest.raises(DecryptionError):
            decrypt_for_session(blob, "token-b")

    def test_short_blob(self):
        with pytest.raises(DecryptionError):
            decrypt_for_session(b"\x00" * 10, "token-a")
