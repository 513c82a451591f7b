"""Spotify Web API integration (OAuth PKCE).

Credentials live in a CredentialStore; every API call goes through the
TokenLifecycleManager, which attaches the bearer token and refreshes it once
when Spotify reports it expired.
"""

from .auth import SpotifyPKCEAuth
from .client import SpotifyClient
from .credential_store import Credential, CredentialStore, JsonFileBackend, MemoryBackend
from .errors import (
    AuthExpired,
    InvalidPKCEState,
    ProviderError,
    SpotifyError,
    TransportError,
    Unauthenticated,
)
from .session import SpotifySession
from .token_lifecycle import ApiRequest, TokenLifecycleManager

__all__ = [
    "ApiRequest",
    "AuthExpired",
    "Credential",
    "CredentialStore",
    "InvalidPKCEState",
    "JsonFileBackend",
    "MemoryBackend",
    "ProviderError",
    "SpotifyClient",
    "SpotifyError",
    "SpotifyPKCEAuth",
    "SpotifySession",
    "TokenLifecycleManager",
    "TransportError",
    "Unauthenticated",
]
