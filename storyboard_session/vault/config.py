"""
Vault Configuration — Encryption key loading and validated session settings.

Reads settings from environment variables:
    ENCRYPTION_KEY = <base64-encoded 32-byte key>
    ENCRYPTION_CIPHER = aesgcm | chacha20
    API_KEY_SESSION_TTL = <seconds, default 1800>
    API_KEY_SESSION_SWEEP_INTERVAL = <seconds, default 300>

Security Note:
    Never log key material. Only log lengths and backend names.
"""
import os
import base64
import binascii
import secrets
import logging

from pydantic import BaseModel, Field, field_validator, model_validator

from ..exceptions import ConfigurationError

logger = logging.getLogger("storyboard.vault")

KEY_LENGTH = 32  # 256-bit application key

DEFAULT_SESSION_TTL = 30 * 60  # 30 minutes
DEFAULT_SWEEP_INTERVAL = 5 * 60  # 5 minutes


def load_encryption_key() -> bytes:
    """Load the application encryption key from ENCRYPTION_KEY.

    Returns:
        Raw 32-byte key.

    Raises:
        ConfigurationError: If the variable is unset, not base64, or does
            not decode to exactly 32 bytes.
    """
    raw = os.environ.get("ENCRYPTION_KEY")
    if not raw:
        raise ConfigurationError(
            "ENCRYPTION_KEY environment variable is not set"
        )
    try:
        key_bytes = base64.b64decode(raw, validate=True)
    except (binascii.Error, ValueError) as err:
        raise ConfigurationError(
            "ENCRYPTION_KEY is not valid base64"
        ) from err
    if len(key_bytes) != KEY_LENGTH:
        raise ConfigurationError(
            f"ENCRYPTION_KEY must be {KEY_LENGTH} bytes (base64 encoded), "
            f"got {len(key_bytes)}"
        )
    return key_bytes


def generate_encryption_key() -> str:
    """Generate a random 32-byte encryption key and return as base64 string.

    This is a utility for operators to populate ENCRYPTION_KEY.

    Returns:
        Base64-encoded 32-byte key string.
    """
    return base64.b64encode(secrets.token_bytes(KEY_LENGTH)).decode("ascii")


class EncryptionConfig(BaseModel):
    """Validated at-rest encryption configuration."""

    key: bytes
    cipher_backend: str = Field(default="aesgcm")

    model_config = {"frozen": True}

    @field_validator("key")
    @classmethod
    def validate_key_length(cls, v: bytes) -> bytes:
        if len(v) != KEY_LENGTH:
            raise ValueError(
                f"encryption key must be {KEY_LENGTH} bytes, got {len(v)}"
            )
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in ("aesgcm", "chacha20"):
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    def __repr__(self) -> str:
        return f"EncryptionConfig(cipher_backend={self.cipher_backend!r})"

    __str__ = __repr__

    @classmethod
    def from_env(cls) -> "EncryptionConfig":
        """Create EncryptionConfig by loading values from environment.

        Raises:
            ConfigurationError: If ENCRYPTION_KEY is missing or malformed.
        """
        return cls(
            key=load_encryption_key(),
            cipher_backend=os.environ.get("ENCRYPTION_CIPHER", "aesgcm"),
        )


class SessionStoreConfig(BaseModel):
    """Validated API key session store settings (seconds)."""

    ttl: float = Field(default=DEFAULT_SESSION_TTL, ge=1)
    sweep_interval: float = Field(default=DEFAULT_SWEEP_INTERVAL, ge=1)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def warn_on_slow_sweep(self) -> "SessionStoreConfig":
        if self.sweep_interval > self.ttl:
            logger.warning(
                "Session sweep interval (%ss) is longer than the TTL (%ss); "
                "expired sessions may linger in memory",
                self.sweep_interval, self.ttl,
            )
        return self

    @classmethod
    def from_env(cls) -> "SessionStoreConfig":
        """Create SessionStoreConfig from API_KEY_SESSION_* variables."""
        return cls(
            ttl=os.environ.get("API_KEY_SESSION_TTL", DEFAULT_SESSION_TTL),
            sweep_interval=os.environ.get(
                "API_KEY_SESSION_SWEEP_INTERVAL", DEFAULT_SWEEP_INTERVAL
            ),
        )
