"""
Vault Crypto Core — Key derivation, encryption/decryption, and serialization.

Two layers are implemented:
- Session layer: HKDF(session token, "api-key-session") → AEAD → blob held in
  the in-memory session map. Without the token the map is opaque.
- At-rest layer: ENCRYPTION_KEY → AEAD → base64([nonce|payload+tag]) for
  provider API keys persisted by the application.

Security Note:
    Never log plaintext or ciphertext values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import hmac
import base64
import binascii
import hashlib
import logging
from typing import Any, Optional

import orjson
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from ..exceptions import ConfigurationError, DecryptionError
from .config import EncryptionConfig

logger = logging.getLogger("storyboard.vault")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256

_SESSION_CONTEXT = "api-key-session"

_CIPHERS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


def _cipher_for(backend: str) -> type:
    try:
        return _CIPHERS[backend]
    except KeyError:
        raise ConfigurationError(
            f"Unsupported cipher backend: {backend}"
        ) from None


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(seed: bytes, context: str) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material (session token bytes).
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


# ---------------------------------------------------------------------------
# Session-layer encryption (ephemeral, process memory)
# ---------------------------------------------------------------------------

def encrypt_for_session(plaintext: bytes, token: str) -> bytes:
    """Encrypt plaintext for the in-memory session map.

    Format: [nonce 12B][encrypted_payload + GCM_tag 16B]
    """
    key = derive_key(token.encode("utf-8"), _SESSION_CONTEXT)
    nonce = os.urandom(NONCE_SIZE)
    return nonce + AESGCM(key).encrypt(nonce, plaintext, None)


def decrypt_for_session(blob: bytes, token: str) -> bytes:
    """Decrypt a session-layer blob produced by :func:`encrypt_for_session`.

    Raises:
        DecryptionError: If the blob is truncated or fails authentication.
    """
    _min = NONCE_SIZE + TAG_SIZE
    if len(blob) < _min:
        raise DecryptionError(
            f"session blob too short: {len(blob)} bytes (minimum {_min})"
        )
    key = derive_key(token.encode("utf-8"), _SESSION_CONTEXT)
    try:
        return AESGCM(key).decrypt(blob[:NONCE_SIZE], blob[NONCE_SIZE:], None)
    except InvalidTag as err:
        raise DecryptionError("session blob failed authentication") from err


# ---------------------------------------------------------------------------
# At-rest encryption of provider API keys
# ---------------------------------------------------------------------------

def encrypt_api_key(
    api_key: str,
    config: Optional[EncryptionConfig] = None,
) -> str:
    """Encrypt an API key with the application encryption key.

    Args:
        api_key: Plaintext provider key.
        config: Encryption settings; loaded from the environment when omitted.

    Returns:
        base64 string of ``nonce || ciphertext+tag``.

    Raises:
        ConfigurationError: If no config is given and ENCRYPTION_KEY is unusable.
    """
    config = config or EncryptionConfig.from_env()
    cipher = _cipher_for(config.cipher_backend)(config.key)
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, api_key.encode("utf-8"), None)
    return base64.b64encode(nonce + ct).decode("ascii")


def decrypt_api_key(
    encrypted: str,
    config: Optional[EncryptionConfig] = None,
) -> str:
    """Decrypt a value produced by :func:`encrypt_api_key`.

    Raises:
        ConfigurationError: If no config is given and ENCRYPTION_KEY is unusable.
        DecryptionError: Invalid key or corrupted data.
    """
    config = config or EncryptionConfig.from_env()
    try:
        combined = base64.b64decode(encrypted, validate=True)
    except (binascii.Error, ValueError) as err:
        raise DecryptionError("encrypted API key is not valid base64") from err
    if len(combined) < NONCE_SIZE + TAG_SIZE:
        raise DecryptionError("encrypted API key is too short")
    cipher = _cipher_for(config.cipher_backend)(config.key)
    try:
        plaintext = cipher.decrypt(
            combined[:NONCE_SIZE], combined[NONCE_SIZE:], None,
        )
    except InvalidTag as err:
        raise DecryptionError(
            "Decryption failed - invalid key or corrupted data"
        ) from err
    return plaintext.decode("utf-8")


def hash_api_key(api_key: str) -> str:
    """SHA-256 hex digest of an API key, for lookups without decrypting."""
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def verify_api_key_hash(api_key: str, expected: str) -> bool:
    """Check an API key against a digest from :func:`hash_api_key`.

    Uses a constant-time comparison.
    """
    return hmac.compare_digest(hash_api_key(api_key), expected)


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def serialize_value(value: Any) -> bytes:
    """Serialize a JSON-compatible value to bytes for encryption.

    Returns:
        orjson-encoded bytes.
    """
    return orjson.dumps(value)


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes produced by :func:`serialize_value`."""
    return orjson.loads(data)
