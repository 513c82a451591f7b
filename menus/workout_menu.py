import asyncio
from typing import Optional

import questionary

from managers.playlist_manager import (
    DEFAULT_PLAYLIST_NAME_TEMPLATE,
    PlaylistRequest,
    build_playlist_request,
    fetch_recommendations,
    playlist_name,
    save_playlist,
)
from managers.search_manager import SearchSession
from spotify_api.errors import AuthExpired, ProviderError, TransportError, Unauthenticated
from spotify_api.models import CatalogItem
from spotify_api.session import SpotifySession
from utils.logger import log_error, log_info, log_success, log_warning


def _print_search_results(search: SearchSession) -> None:
    if search.results.is_empty():
        return
    log_info(f"\nResults for '{search.query}':")
    for item in search.results.items:
        log_info(f"  • {item.label}")


async def _pick_seed(search: SearchSession) -> Optional[CatalogItem]:
    """Search until the user picks an artist or track (None = cancelled)."""

    while True:
        text = await questionary.text("Search Spotify (track or artist name, empty to cancel):").ask_async()
        if not (text or "").strip():
            search.on_input("")
            return None

        search.on_input(text)
        await search.settle()

        if search.error is not None:
            if isinstance(search.error, (Unauthenticated, AuthExpired)):
                raise search.error
            log_error(f"Search failed: {search.error}")
            continue

        if search.results.is_empty():
            log_warning("No results found.")
            continue

        _print_search_results(search)
        choices = [questionary.Choice(title=item.label, value=item.id) for item in search.results.items]
        choices.append(questionary.Choice(title="Search again", value=""))

        picked = await questionary.select("Pick a seed for your playlist:", choices=choices).ask_async()
        if picked:
            return search.select(picked)


async def _ask_bpm_range(seed: CatalogItem, config: dict) -> Optional[PlaylistRequest]:
    lower = config.get("bpm_lower_bound", 0)
    upper = config.get("bpm_upper_bound", 300)

    while True:
        bpm_min_str = await questionary.text(
            f"Minimum BPM ({lower}-{upper}):", default=str(config.get("default_bpm_min", 170))
        ).ask_async()
        bpm_max_str = await questionary.text(
            f"Maximum BPM ({lower}-{upper}):", default=str(config.get("default_bpm_max", 180))
        ).ask_async()
        if bpm_min_str is None or bpm_max_str is None:
            return None

        try:
            return build_playlist_request(seed, float(bpm_min_str), float(bpm_max_str), config)
        except ValueError as e:
            log_error(f"Invalid BPM range: {e}")


async def _workout_flow(config: dict) -> None:
    async with SpotifySession(config) as session:
        try:
            user = await session.current_user()
            if not user:
                session.sign_out()
                log_warning("Not signed in. Choose 'Sign in with Spotify' first.")
                return

            search = SearchSession(
                session.client,
                debounce_ms=int(config.get("search_debounce_ms", 500)),
                limit=int(config.get("search_limit", 3)),
            )
            seed = await _pick_seed(search)
            if seed is None:
                return
            log_info(f"Selected: {seed.label}")

            request = await _ask_bpm_range(seed, config)
            if request is None:
                return

            result = await fetch_recommendations(session.client, request, limit=config.get("recommendation_limit"))
            if not result.tracks:
                log_warning("Spotify returned no tracks for that seed and BPM range. Try widening the range.")
                return

            log_info(f"\n{len(result.tracks)} tracks between {request.bpm_min:g} and {request.bpm_max:g} BPM:")
            for i, track in enumerate(result.tracks, start=1):
                log_info(f"  {i:2d}. {track.label}")

            default_name = playlist_name(request, config.get("playlist_name_template") or DEFAULT_PLAYLIST_NAME_TEMPLATE)
            if not await questionary.confirm(f"Save as playlist '{default_name}'?", default=True).ask_async():
                return

            saved = await save_playlist(
                session.client,
                request,
                result,
                name=default_name,
                public=bool(config.get("playlist_public", False)),
            )
            log_success(f"✅ Playlist saved: {saved.playlist_url or saved.playlist_id}")

        except (Unauthenticated, AuthExpired) as e:
            session.sign_out()
            log_warning(f"Spotify session ended ({e}). Please sign in again.")
        except (ProviderError, TransportError) as e:
            log_error(f"Spotify request failed: {e}")


def workout_menu(config: dict) -> None:
    """Search for a seed artist/track, pick a BPM range and build the playlist."""
    asyncio.run(_workout_flow(config))
