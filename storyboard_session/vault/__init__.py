"""API Key Vault — in-memory API key sessions and at-rest key encryption.

Security Note (Threat Model):
    API keys live in process memory for the lifetime of a session. The
    session map holds them encrypted under a key derived from each token, so
    the map alone does not reveal them, but a memory dump that also captures
    tokens does. Sessions do not survive a process restart.
"""

from .session_store import (
    ApiKeySession,
    ApiKeySessionStore,
    Provider,
    get_session_store,
)
from .config import (
    EncryptionConfig,
    SessionStoreConfig,
    generate_encryption_key,
    load_encryption_key,
)
from .crypto import (
    decrypt_api_key,
    encrypt_api_key,
    hash_api_key,
    verify_api_key_hash,
)

__all__ = [
    "ApiKeySession",
    "ApiKeySessionStore",
    "Provider",
    "get_session_store",
    "EncryptionConfig",
    "SessionStoreConfig",
    "generate_encryption_key",
    "load_encryption_key",
    "decrypt_api_key",
    "encrypt_api_key",
    "hash_api_key",
    "verify_api_key_hash",
]
