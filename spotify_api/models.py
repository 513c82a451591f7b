from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


ARTIST = "artist"
TRACK = "track"
CATALOG_KINDS = (ARTIST, TRACK)


@dataclass(frozen=True)
class CatalogItem:
    """An artist or track returned by search; also used as the selection."""

    id: str
    name: str
    kind: str

    def __post_init__(self):
        if self.kind not in CATALOG_KINDS:
            raise ValueError(f"kind must be one of {CATALOG_KINDS}, got {self.kind!r}")

    @property
    def label(self) -> str:
        return f"{self.name} ({self.kind})"

    @staticmethod
    def from_api(obj: Any, kind: str) -> Optional["CatalogItem"]:
        if not isinstance(obj, dict):
            return None
        item_id = str(obj.get("id") or "").strip()
        name = str(obj.get("name") or "").strip()
        if not item_id or not name:
            return None
        return CatalogItem(id=item_id, name=name, kind=kind)


@dataclass(frozen=True)
class SearchResult:
    artists: Tuple[CatalogItem, ...] = ()
    tracks: Tuple[CatalogItem, ...] = ()

    @staticmethod
    def empty() -> "SearchResult":
        return SearchResult()

    @property
    def items(self) -> Tuple[CatalogItem, ...]:
        """Artists first, then tracks, as presented to the user."""
        return self.artists + self.tracks

    def is_empty(self) -> bool:
        return not self.items

    def find(self, item_id: str) -> Optional[CatalogItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    @staticmethod
    def from_api(payload: Dict[str, Any]) -> "SearchResult":
        def _items(section: str, kind: str) -> Tuple[CatalogItem, ...]:
            raw = ((payload or {}).get(section) or {}).get("items") or []
            parsed = [CatalogItem.from_api(obj, kind) for obj in raw]
            return tuple(p for p in parsed if p is not None)

        return SearchResult(artists=_items("artists", ARTIST), tracks=_items("tracks", TRACK))


@dataclass(frozen=True)
class RecommendedTrack:
    id: str
    name: str
    artists: Tuple[str, ...]
    uri: str

    @property
    def label(self) -> str:
        return f"{', '.join(self.artists)} - {self.name}" if self.artists else self.name

    @staticmethod
    def from_api(obj: Any) -> Optional["RecommendedTrack"]:
        if not isinstance(obj, dict):
            return None
        track_id = str(obj.get("id") or "").strip()
        if not track_id:
            return None
        artists = tuple(
            str(a.get("name")).strip()
            for a in (obj.get("artists") or [])
            if isinstance(a, dict) and a.get("name")
        )
        return RecommendedTrack(
            id=track_id,
            name=str(obj.get("name") or "").strip(),
            artists=artists,
            uri=str(obj.get("uri") or track_uri(track_id)),
        )


def track_uri(track_id: str) -> str:
    return f"spotify:track:{track_id}"


def parse_recommendations(payload: Dict[str, Any]) -> List[RecommendedTrack]:
    tracks = [RecommendedTrack.from_api(obj) for obj in (payload or {}).get("tracks") or []]
    return [t for t in tracks if t is not None]
