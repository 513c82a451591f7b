# Managers module exports
from managers.search_manager import SearchSession, SearchState
from managers.playlist_manager import (
    PlaylistRequest,
    PlaylistResult,
    build_playlist_request,
    fetch_recommendations,
    generate_playlist,
    save_playlist,
)

__all__ = [
    # Search manager
    "SearchSession",
    "SearchState",
    # Playlist manager
    "PlaylistRequest",
    "PlaylistResult",
    "build_playlist_request",
    "fetch_recommendations",
    "generate_playlist",
    "save_playlist",
]
