import logging
from typing import Any, Dict, Optional

import httpx

from .auth import SpotifyPKCEAuth
from .client import SpotifyClient
from .credential_store import CredentialStore
from .errors import AuthExpired, Unauthenticated
from .token_lifecycle import TokenLifecycleManager

logger = logging.getLogger(__name__)


class SpotifySession:
    """Owns the HTTP client and wires store, auth flow, lifecycle manager and API client.

    Use as ``async with SpotifySession(config) as session: ...`` so the
    connection pool is closed on exit.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        store: Optional[CredentialStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or {}
        self.store = store if store is not None else CredentialStore.from_config(self.config)
        self.http = httpx.AsyncClient(
            timeout=float(self.config.get("spotify_timeout", 30)),
            follow_redirects=False,
            transport=transport,
        )
        self.auth = SpotifyPKCEAuth(self.config, store=self.store, http=self.http)
        self.lifecycle = TokenLifecycleManager(
            self.store,
            self.auth,
            self.http,
            proactive_refresh=bool(self.config.get("spotify_proactive_refresh", False)),
            single_flight_refresh=bool(self.config.get("spotify_single_flight_refresh", True)),
            skew_seconds=int(self.config.get("spotify_token_skew_seconds", 60)),
        )
        self.client = SpotifyClient(self.lifecycle)

    async def __aenter__(self) -> "SpotifySession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    async def current_user(self) -> Optional[Dict[str, Any]]:
        """Return the signed-in user's profile, or None when there is no usable credential."""

        if self.store.get() is None:
            return None
        try:
            return await self.client.me()
        except (Unauthenticated, AuthExpired) as e:
            logger.info("Stored Spotify session is no longer usable: %s", e)
            return None

    def sign_out(self) -> None:
        self.auth.logout()
