"""In-process stand-ins for the Spotify accounts service and Web API."""

import urllib.parse
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Tuple, Union

import httpx

from spotify_api.credential_store import Credential

EXPIRED_BODY = {"error": {"status": 401, "message": "The access token expired"}}
INVALID_TOKEN_BODY = {"error": {"status": 401, "message": "Invalid access token"}}

TOKEN_PATH = "/api/token"

# A (status, json) pair, or a callable (sync or async) building the response.
Reply = Union[Tuple[int, Any], Callable[[httpx.Request], Any]]


def make_credential(access="at-1", refresh="rt-1", ttl=3600, issued_at=None) -> Credential:
    if issued_at is None:
        issued_at = datetime.now(timezone.utc).replace(microsecond=0)
    return Credential(access_token=access, refresh_token=refresh, issued_at=issued_at, ttl_seconds=ttl)


def expired_credential(access="at-old", refresh="rt-old") -> Credential:
    return make_credential(access, refresh, ttl=3600, issued_at=datetime.now(timezone.utc) - timedelta(hours=2))


def token_payload(access="at-2", refresh="rt-2", expires_in=3600) -> Dict[str, Any]:
    payload = {"access_token": access, "token_type": "Bearer", "expires_in": expires_in}
    if refresh is not None:
        payload["refresh_token"] = refresh
    return payload


def form(request: httpx.Request) -> Dict[str, str]:
    return {k: v[0] for k, v in urllib.parse.parse_qs(request.content.decode("utf-8")).items()}


def bearer(request: httpx.Request) -> str:
    return request.headers.get("Authorization", "").removeprefix("Bearer ")


class FakeSpotify:
    """Routes requests by (method, path) to queued replies and records every request.

    A route's last reply repeats once the queue is down to it.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}

    def add(self, method: str, path: str, *replies: Reply) -> "FakeSpotify":
        self.routes.setdefault((method.upper(), path), []).extend(replies)
        return self

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def handler(self, request: httpx.Request):
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"error": {"status": 404, "message": "Service not found"}})

        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(reply):
            return reply(request)
        status, body = reply
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())
