import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from spotify_api.errors import ProviderError
from spotify_api.models import ARTIST, TRACK, CatalogItem, RecommendedTrack

logger = logging.getLogger(__name__)

DEFAULT_PLAYLIST_NAME_TEMPLATE = "HIITRunner: {seed} @ {bpm_min}-{bpm_max} BPM"


@dataclass(frozen=True)
class PlaylistRequest:
    seed: CatalogItem
    bpm_min: float
    bpm_max: float
    market: Optional[str] = None

    @property
    def seed_artists(self) -> List[str]:
        return [self.seed.id] if self.seed.kind == ARTIST else []

    @property
    def seed_tracks(self) -> List[str]:
        return [self.seed.id] if self.seed.kind == TRACK else []

    def validate(self, *, lower_bound: float = 0, upper_bound: float = 300) -> None:
        if self.bpm_min > self.bpm_max:
            raise ValueError(f"BPM range is inverted: {self.bpm_min} > {self.bpm_max}")
        if self.bpm_min < lower_bound or self.bpm_max > upper_bound:
            raise ValueError(f"BPM range must stay within {lower_bound}-{upper_bound}, got {self.bpm_min}-{self.bpm_max}")


@dataclass(frozen=True)
class PlaylistResult:
    tracks: Tuple[RecommendedTrack, ...]
    playlist_id: Optional[str] = None
    playlist_url: Optional[str] = None


def _bpm(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def build_playlist_request(seed: CatalogItem, bpm_min: float, bpm_max: float, config: Dict[str, Any]) -> PlaylistRequest:
    """Create a PlaylistRequest checked against the configured BPM bounds."""

    config = config or {}
    request = PlaylistRequest(
        seed=seed,
        bpm_min=float(bpm_min),
        bpm_max=float(bpm_max),
        market=(str(config.get("market") or "").strip() or None),
    )
    request.validate(
        lower_bound=float(config.get("bpm_lower_bound", 0)),
        upper_bound=float(config.get("bpm_upper_bound", 300)),
    )
    return request


def playlist_name(request: PlaylistRequest, template: str = DEFAULT_PLAYLIST_NAME_TEMPLATE) -> str:
    return template.format(seed=request.seed.name, bpm_min=_bpm(request.bpm_min), bpm_max=_bpm(request.bpm_max))


async def fetch_recommendations(client, request: PlaylistRequest, *, limit: Optional[int] = None) -> PlaylistResult:
    """Ask Spotify for tracks similar to the seed within the BPM range."""

    tracks = await client.recommendations(
        seed_artists=request.seed_artists,
        seed_tracks=request.seed_tracks,
        min_tempo=request.bpm_min,
        max_tempo=request.bpm_max,
        market=request.market,
        limit=limit,
    )
    logger.info("Got %d recommendations for %s", len(tracks), request.seed.label)
    return PlaylistResult(tracks=tuple(tracks))


async def save_playlist(
    client,
    request: PlaylistRequest,
    result: PlaylistResult,
    *,
    name: Optional[str] = None,
    public: bool = False,
) -> PlaylistResult:
    """Create a playlist for the signed-in user and add the recommended tracks."""

    if not result.tracks:
        raise ValueError("Nothing to save: the recommendation list is empty")

    me = await client.me()
    user_id = str(me.get("id") or "").strip()
    if not user_id:
        raise ProviderError(None, "could not determine the current Spotify user", body=me)

    description = (
        f"{_bpm(request.bpm_min)}-{_bpm(request.bpm_max)} BPM workout mix "
        f"seeded from {request.seed.label}."
    )
    created = await client.create_playlist(
        user_id,
        name=name or playlist_name(request),
        description=description,
        public=public,
    )
    playlist_id = str(created.get("id") or "").strip()
    if not playlist_id:
        raise ProviderError(None, "playlist creation returned no id", body=created)

    await client.add_tracks(playlist_id, [t.id for t in result.tracks])
    url = (created.get("external_urls") or {}).get("spotify")
    logger.info("Saved playlist %s with %d tracks", playlist_id, len(result.tracks))
    return replace(result, playlist_id=playlist_id, playlist_url=url)


async def generate_playlist(
    client,
    request: PlaylistRequest,
    *,
    limit: Optional[int] = None,
    save: bool = False,
    name: Optional[str] = None,
    public: bool = False,
) -> PlaylistResult:
    result = await fetch_recommendations(client, request, limit=limit)
    if save and result.tracks:
        result = await save_playlist(client, request, result, name=name, public=public)
    return result
