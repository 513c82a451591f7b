import contextlib
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from .credential_store import Credential, CredentialStore
from .errors import InvalidPKCEState, ProviderError, TransportError, error_message
from .pkce import (
    SPOTIFY_ACCOUNTS_BASE_URL,
    build_authorization_url,
    extract_code_from_redirect_url,
    generate_pkce_pair,
)

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT_URI = "http://127.0.0.1:3000/spotify/auth-callback"


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate Spotify OAuth config fields and return a structured status dict."""

    config = config or {}
    client_id = str(config.get("spotify_client_id", "")).strip()
    redirect_uri = str(config.get("spotify_redirect_uri", "")).strip()
    scopes = list(config.get("spotify_scopes", []) or [])

    status = {"ok": False, "client_id": client_id, "redirect_uri": redirect_uri, "scopes": scopes}

    if not client_id:
        status["message"] = (
            "Missing spotify_client_id.\n"
            "Set it in config.json or export HIITRUNNER_SPOTIFY_CLIENT_ID."
        )
        return status

    if not redirect_uri:
        status["message"] = (
            "Missing spotify_redirect_uri.\n"
            f"Recommended default: {DEFAULT_REDIRECT_URI}"
        )
        return status

    status["ok"] = True
    status["message"] = "Spotify credentials look OK."
    return status


def spotify_app_setup_instructions(*, redirect_uri: str = DEFAULT_REDIRECT_URI) -> str:
    """Return user-facing setup instructions for creating a Spotify Developer app."""

    redirect_uri = str(redirect_uri or "").strip() or DEFAULT_REDIRECT_URI
    return (
        "Spotify app setup:\n"
        "1) Go to https://developer.spotify.com/dashboard\n"
        "2) Create an app (or select an existing app)\n"
        f"3) Add this Redirect URI in the app settings: {redirect_uri}\n"
        "4) Copy the Client ID into config.json as spotify_client_id\n\n"
        "Notes:\n"
        "- HIITRunner uses Authorization Code + PKCE (no client secret required).\n"
        "- Redirect URI must match *exactly* what you configure in the Spotify dashboard.\n"
    )


class SpotifyPKCEAuth:
    """Spotify OAuth (Authorization Code + PKCE) flow.

    The code verifier bridges the authorize redirect and the callback through
    the credential store; it is removed as soon as an exchange consumes it.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        store: CredentialStore,
        http: Optional[httpx.AsyncClient] = None,
        accounts_base_url: str = SPOTIFY_ACCOUNTS_BASE_URL,
    ):
        self.config = config or {}
        self.store = store
        self.http = http
        self.accounts_base_url = accounts_base_url.rstrip("/")

    @property
    def client_id(self) -> str:
        return str(self.config.get("spotify_client_id", "")).strip()

    @property
    def redirect_uri(self) -> str:
        return str(self.config.get("spotify_redirect_uri", "")).strip()

    @property
    def token_url(self) -> str:
        return f"{self.accounts_base_url}/api/token"

    def begin_oauth_flow(self) -> Dict[str, Any]:
        """Create a PKCE pair, persist its verifier and return {auth_url, pkce_pair}."""

        if not self.client_id:
            raise ValueError("Missing config.spotify_client_id")
        if not self.redirect_uri:
            raise ValueError("Missing config.spotify_redirect_uri")

        pkce = generate_pkce_pair()
        self.store.save_verifier(pkce.code_verifier)
        url = build_authorization_url(
            self.client_id,
            self.redirect_uri,
            self.config.get("spotify_scopes", []),
            pkce.code_challenge,
            base_url=self.accounts_base_url,
        )
        return {"auth_url": url, "pkce_pair": pkce}

    async def handle_callback(self, redirect_url: str) -> Credential:
        """Finish sign-in from the URL Spotify redirected the browser to.

        A still-valid stored credential short-circuits the exchange; an expired
        one is discarded first.
        """

        parsed = extract_code_from_redirect_url(redirect_url)
        if parsed.get("error"):
            self.store.clear_verifier()
            raise ProviderError(None, f"authorization was not granted: {parsed['error']}")

        existing = self.store.get()
        if existing is not None:
            if not existing.is_expired():
                logger.info("Access token still valid; skipping code exchange")
                self.store.clear_verifier()
                return existing
            logger.info("Stored access token expired; discarding it")
            self.store.clear()

        code = parsed.get("code", "")
        if not code:
            self.store.clear_verifier()
            raise InvalidPKCEState("Callback URL does not carry an authorization code")

        return await self.exchange_code(code)

    async def exchange_code(self, code: str) -> Credential:
        verifier = self.store.load_verifier()
        if not verifier:
            raise InvalidPKCEState("No code verifier stored; start the sign-in flow again")

        try:
            payload = await self._post_form(
                {
                    "client_id": self.client_id,
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.redirect_uri,
                    "code_verifier": verifier,
                }
            )
            credential = self._credential_from(payload)
        finally:
            self.store.clear_verifier()

        self.store.set(credential)
        logger.info("Spotify authorization code exchanged")
        return credential

    async def refresh(self, refresh_token: str) -> Credential:
        """Exchange a refresh token for a new credential and store it."""

        payload = await self._post_form(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
            }
        )
        credential = self._credential_from(payload, previous_refresh_token=refresh_token)
        self.store.set(credential)
        logger.info("Spotify access token refreshed")
        return credential

    def logout(self) -> None:
        self.store.clear()
        self.store.clear_verifier()

    @staticmethod
    def _credential_from(payload: Dict[str, Any], *, previous_refresh_token: Optional[str] = None) -> Credential:
        if payload.get("error"):
            raise ProviderError(None, error_message(payload), body=payload)
        try:
            return Credential.from_token_response(payload, previous_refresh_token=previous_refresh_token)
        except ValueError as e:
            raise ProviderError(None, f"unusable token response: {e}", body=payload) from e

    @contextlib.asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http is not None:
            yield self.http
            return
        timeout = float(self.config.get("spotify_timeout", 30.0))
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=False) as client:
            yield client

    async def _post_form(self, form: Dict[str, Any]) -> Dict[str, Any]:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}

        try:
            async with self._client() as client:
                resp = await client.post(
                    self.token_url,
                    data=data,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
        except httpx.TransportError as e:
            raise TransportError(f"Spotify token request failed: {e}") from e

        if resp.status_code >= 400:
            raise ProviderError.from_response(resp)

        try:
            payload = resp.json()
        except ValueError as e:
            raise ProviderError(resp.status_code, "token response was not JSON", body=resp.text) from e

        if not isinstance(payload, dict):
            raise ProviderError(resp.status_code, "token response was not an object", body=payload)

        return payload
