import asyncio
import contextlib
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import httpx

from .auth import SpotifyPKCEAuth
from .credential_store import Credential, CredentialStore
from .errors import AuthExpired, ProviderError, TransportError, Unauthenticated, error_message

logger = logging.getLogger(__name__)

# Message Spotify puts in the 401 body when (and only when) the token aged out.
EXPIRED_TOKEN_MESSAGE = "The access token expired"


class AttemptPhase(enum.Enum):
    INITIAL = "initial"
    REFRESHING = "refreshing"
    RETRIED = "retried"


@dataclass(frozen=True)
class ApiRequest:
    """An outbound Web API call, before credentials are attached."""

    method: str
    url: str
    params: Optional[Mapping[str, Any]] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    json: Any = None

    def __post_init__(self):
        if any(str(k).lower() == "authorization" for k in (self.headers or {})):
            raise ValueError("ApiRequest must not carry an Authorization header")

    def with_bearer(self, access_token: str) -> dict:
        headers = dict(self.headers or {})
        headers["Authorization"] = f"Bearer {access_token}"
        kwargs = {"params": self.params, "headers": headers}
        if self.json is not None:
            kwargs["json"] = self.json
        return kwargs


def is_token_expired_response(response: httpx.Response) -> bool:
    if response.status_code != 401:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    return error_message(body) == EXPIRED_TOKEN_MESSAGE


class TokenLifecycleManager:
    """Attach the stored bearer token to calls and recover from token expiry.

    A call goes through at most one refresh and one retry:

        INITIAL --(401 expired)--> REFRESHING --(refreshed)--> RETRIED

    A second expiry signal in RETRIED, or a failed refresh, raises AuthExpired.
    Every other response is returned untouched; network failures raise
    TransportError and are never retried here.
    """

    def __init__(
        self,
        store: CredentialStore,
        auth: SpotifyPKCEAuth,
        http: httpx.AsyncClient,
        *,
        proactive_refresh: bool = False,
        single_flight_refresh: bool = True,
        skew_seconds: int = 60,
    ):
        self.store = store
        self.auth = auth
        self.http = http
        self.proactive_refresh = proactive_refresh
        self.single_flight_refresh = single_flight_refresh
        self.skew_seconds = skew_seconds
        self._refresh_lock = asyncio.Lock()

    async def call_authenticated(self, request: ApiRequest) -> httpx.Response:
        credential = self.store.get()
        if credential is None:
            raise Unauthenticated("No Spotify credential stored. Sign in first.")

        phase = AttemptPhase.INITIAL
        if self.proactive_refresh and credential.is_expired(skew_seconds=self.skew_seconds):
            logger.debug("Access token past its TTL; refreshing before %s %s", request.method, request.url)
            phase = AttemptPhase.REFRESHING
            credential = await self._refresh(credential)
            phase = AttemptPhase.RETRIED

        while True:
            response = await self._send(request, credential.access_token)
            if not is_token_expired_response(response):
                return response

            if phase is AttemptPhase.RETRIED:
                raise AuthExpired("Spotify rejected the refreshed access token", body=_json_or_text(response))

            logger.debug("Access token expired during %s %s; refreshing", request.method, request.url)
            phase = AttemptPhase.REFRESHING
            credential = await self._refresh(credential, response)
            phase = AttemptPhase.RETRIED

    async def _send(self, request: ApiRequest, access_token: str) -> httpx.Response:
        try:
            return await self.http.request(request.method.upper(), request.url, **request.with_bearer(access_token))
        except httpx.TransportError as e:
            raise TransportError(f"Spotify API request failed: {e}") from e

    async def _refresh(self, stale: Credential, response: Optional[httpx.Response] = None) -> Credential:
        body = _json_or_text(response) if response is not None else None
        guard = self._refresh_lock if self.single_flight_refresh else contextlib.nullcontext()

        async with guard:
            if self.single_flight_refresh:
                current = self.store.get()
                if current is None:
                    raise AuthExpired("Spotify credential was discarded by a concurrent refresh", body=body)
                if current.access_token != stale.access_token:
                    logger.debug("Reusing credential refreshed by a concurrent call")
                    return current

            try:
                return await self.auth.refresh(stale.refresh_token)
            except ProviderError as e:
                # The refresh token itself was rejected: nothing left to recover with.
                self.store.clear()
                raise AuthExpired(f"Spotify access token expired and could not be refreshed: {e}", body=body) from e
            except TransportError as e:
                raise AuthExpired(f"Spotify access token expired and refresh did not complete: {e}", body=body) from e


def _json_or_text(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text
