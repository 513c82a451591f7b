import logging
from typing import Any, Dict, Iterable, List, Optional

from .errors import ProviderError
from .models import RecommendedTrack, SearchResult, parse_recommendations, track_uri
from .token_lifecycle import ApiRequest, TokenLifecycleManager

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"

SEARCH_TYPES = "artist,track"
DEFAULT_SEARCH_LIMIT = 3
MAX_RECOMMENDATION_SEEDS = 5
MAX_TRACKS_PER_ADD = 100


def _join_ids(ids: Optional[Iterable[str]]) -> Optional[str]:
    cleaned = [str(i).strip() for i in (ids or []) if str(i).strip()]
    return ",".join(cleaned) if cleaned else None


class SpotifyClient:
    """Thin Spotify Web API client.

    Every call goes through the TokenLifecycleManager, which owns the bearer
    token and its refresh. Non-success responses surface as ProviderError.
    """

    def __init__(self, lifecycle: TokenLifecycleManager, *, base_url: str = SPOTIFY_API_BASE_URL):
        self.lifecycle = lifecycle
        self.base_url = base_url.rstrip("/")

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Dict[str, Any]:
        """Make a Spotify Web API request and return parsed JSON."""

        request = ApiRequest(
            method=method,
            url=f"{self.base_url}{path}",
            params={k: str(v) for k, v in (params or {}).items() if v is not None} or None,
            headers={"Accept": "application/json"},
            json=json,
        )
        resp = await self.lifecycle.call_authenticated(request)

        if resp.status_code >= 400:
            raise ProviderError.from_response(resp)

        if not resp.content:
            return {}

        try:
            payload = resp.json()
        except ValueError as e:
            raise ProviderError(resp.status_code, "response was not JSON", body=resp.text) from e
        return payload if isinstance(payload, dict) else {"items": payload}

    # -----------------
    # Endpoints
    # -----------------

    async def me(self) -> Dict[str, Any]:
        return await self.request_json("GET", "/me")

    async def search(self, query: str, *, limit: int = DEFAULT_SEARCH_LIMIT) -> SearchResult:
        payload = await self.request_json(
            "GET",
            "/search",
            params={"q": query, "type": SEARCH_TYPES, "limit": int(limit)},
        )
        result = SearchResult.from_api(payload)
        logger.debug("Search %r returned %d items", query, len(result.items))
        return result

    async def recommendations(
        self,
        *,
        seed_artists: Optional[Iterable[str]] = None,
        seed_tracks: Optional[Iterable[str]] = None,
        min_tempo: Optional[float] = None,
        max_tempo: Optional[float] = None,
        market: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[RecommendedTrack]:
        artists = _join_ids(seed_artists)
        tracks = _join_ids(seed_tracks)
        seed_count = sum(len(s.split(",")) for s in (artists, tracks) if s)
        if seed_count == 0:
            raise ValueError("recommendations need at least one seed artist or track")
        if seed_count > MAX_RECOMMENDATION_SEEDS:
            raise ValueError(f"recommendations accept at most {MAX_RECOMMENDATION_SEEDS} seeds, got {seed_count}")

        payload = await self.request_json(
            "GET",
            "/recommendations",
            params={
                "seed_artists": artists,
                "seed_tracks": tracks,
                "min_tempo": _tempo(min_tempo),
                "max_tempo": _tempo(max_tempo),
                "market": market,
                "limit": limit,
            },
        )
        return parse_recommendations(payload)

    async def create_playlist(self, user_id: str, *, name: str, description: str = "", public: bool = False) -> Dict[str, Any]:
        return await self.request_json(
            "POST",
            f"/users/{user_id}/playlists",
            json={"name": name, "description": description, "public": bool(public)},
        )

    async def add_tracks(self, playlist_id: str, track_ids: Iterable[str]) -> Dict[str, Any]:
        uris = [track_uri(str(t).strip()) for t in (track_ids or []) if str(t).strip()]
        result: Dict[str, Any] = {}
        for start in range(0, len(uris), MAX_TRACKS_PER_ADD):
            chunk = uris[start : start + MAX_TRACKS_PER_ADD]
            result = await self.request_json("POST", f"/playlists/{playlist_id}/tracks", json={"uris": chunk})
        return result


def _tempo(value: Optional[float]) -> Optional[str]:
    if value is None:
        return None
    number = float(value)
    return str(int(number)) if number.is_integer() else str(number)
