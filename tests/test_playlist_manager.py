import asyncio
import json
import sys
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for p in (PROJECT_ROOT, TESTS_DIR):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from fakes import FakeSpotify, bearer, make_credential
from managers.playlist_manager import (
    PlaylistRequest,
    PlaylistResult,
    build_playlist_request,
    generate_playlist,
    playlist_name,
    save_playlist,
)
from managers.search_manager import SearchSession, SearchState
from spotify_api.credential_store import CredentialStore, MemoryBackend
from spotify_api.models import ARTIST, TRACK, CatalogItem, RecommendedTrack
from spotify_api.session import SpotifySession
from utils.scheduling import ManualScheduler

CONFIG = {
    "spotify_client_id": "client-123",
    "spotify_redirect_uri": "http://127.0.0.1:3000/spotify/auth-callback",
    "bpm_lower_bound": 0,
    "bpm_upper_bound": 300,
    "market": "",
}

ARTIST_SEED = CatalogItem("A1", "Artist One", ARTIST)
TRACK_SEED = CatalogItem("T1", "Track One", TRACK)

SEARCH_BODY = {
    "artists": {"items": [{"id": "A1", "name": "Artist One"}, {"id": "A2", "name": "Artist Two"}]},
    "tracks": {"items": [{"id": "T1", "name": "Track One"}]},
}
RECOMMENDATIONS_BODY = {
    "tracks": [
        {"id": "R1", "name": "Fast One", "uri": "spotify:track:R1", "artists": [{"name": "Runner"}]},
        {"id": "R2", "name": "Fast Two", "artists": [{"name": "Sprinter"}, {"name": "Pacer"}]},
    ]
}


class TestPlaylistRequest(unittest.TestCase):
    def test_artist_seed(self):
        request = build_playlist_request(ARTIST_SEED, 170, 180, CONFIG)
        self.assertEqual(request.seed_artists, ["A1"])
        self.assertEqual(request.seed_tracks, [])
        self.assertIsNone(request.market)

    def test_track_seed(self):
        request = build_playlist_request(TRACK_SEED, 160, 165, dict(CONFIG, market="SE"))
        self.assertEqual(request.seed_artists, [])
        self.assertEqual(request.seed_tracks, ["T1"])
        self.assertEqual(request.market, "SE")

    def test_inverted_range_rejected(self):
        with self.assertRaises(ValueError):
            build_playlist_request(ARTIST_SEED, 180, 170, CONFIG)

    def test_range_outside_bounds_rejected(self):
        with self.assertRaises(ValueError):
            build_playlist_request(ARTIST_SEED, 170, 320, CONFIG)
        with self.assertRaises(ValueError):
            build_playlist_request(ARTIST_SEED, 150, 170, dict(CONFIG, bpm_lower_bound=160))

    def test_single_bpm_is_allowed(self):
        request = build_playlist_request(ARTIST_SEED, 175, 175, CONFIG)
        self.assertEqual((request.bpm_min, request.bpm_max), (175.0, 175.0))

    def test_playlist_name(self):
        request = PlaylistRequest(ARTIST_SEED, 170.0, 182.5)
        self.assertEqual(playlist_name(request), "HIITRunner: Artist One @ 170-182.5 BPM")
        self.assertEqual(playlist_name(request, "{seed}/{bpm_min}"), "Artist One/170")


class PlaylistTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.fake = FakeSpotify()
        self.store = CredentialStore(MemoryBackend())
        self.store.set(make_credential(access="at-1"))

    async def asyncSetUp(self):
        self.session = SpotifySession(CONFIG, store=self.store, transport=self.fake.transport())

    async def asyncTearDown(self):
        await self.session.aclose()


class TestSavePlaylist(PlaylistTestCase):
    async def test_creates_playlist_and_adds_tracks(self):
        self.fake.add("GET", "/v1/me", (200, {"id": "runner-1"}))
        self.fake.add(
            "POST",
            "/v1/users/runner-1/playlists",
            (201, {"id": "pl-1", "external_urls": {"spotify": "https://open.spotify.com/playlist/pl-1"}}),
        )
        self.fake.add("POST", "/v1/playlists/pl-1/tracks", (201, {"snapshot_id": "snap"}))

        request = PlaylistRequest(ARTIST_SEED, 170.0, 180.0)
        tracks = (
            RecommendedTrack("R1", "Fast One", ("Runner",), "spotify:track:R1"),
            RecommendedTrack("R2", "Fast Two", ("Sprinter",), "spotify:track:R2"),
        )
        saved = await save_playlist(self.session.client, request, PlaylistResult(tracks), name="Tempo run")

        self.assertEqual(saved.playlist_id, "pl-1")
        self.assertEqual(saved.playlist_url, "https://open.spotify.com/playlist/pl-1")
        self.assertEqual(saved.tracks, tracks)

        create = self.fake.calls("POST", "/v1/users/runner-1/playlists")
        self.assertEqual(len(create), 1)
        body = json.loads(create[0].content)
        self.assertEqual(body["name"], "Tempo run")
        self.assertFalse(body["public"])
        self.assertEqual(bearer(create[0]), "at-1")

        add = self.fake.calls("POST", "/v1/playlists/pl-1/tracks")
        self.assertEqual(json.loads(add[0].content), {"uris": ["spotify:track:R1", "spotify:track:R2"]})

    async def test_empty_result_is_not_saved(self):
        with self.assertRaises(ValueError):
            await save_playlist(self.session.client, PlaylistRequest(ARTIST_SEED, 170.0, 180.0), PlaylistResult(()))
        self.assertEqual(self.fake.requests, [])


class TestSearchToPlaylist(PlaylistTestCase):
    async def test_typed_query_to_recommendations(self):
        self.fake.add("GET", "/v1/search", (200, SEARCH_BODY))
        self.fake.add("GET", "/v1/recommendations", (200, RECOMMENDATIONS_BODY))

        clock = ManualScheduler()
        search = SearchSession(self.session.client, debounce_ms=500, limit=3, scheduler=clock)
        for text in ("t", "te", "tes", "test"):
            search.on_input(text)
            clock.advance(0.1)
        clock.advance(0.5)
        await asyncio.sleep(0)
        await search.in_flight

        searches = self.fake.calls("GET", "/v1/search")
        self.assertEqual(len(searches), 1)
        params = searches[0].url.params
        self.assertEqual(params["q"], "test")
        self.assertEqual(params["type"], "artist,track")
        self.assertEqual(params["limit"], "3")
        self.assertEqual(search.state, SearchState.RESULTS)
        self.assertEqual([i.id for i in search.results.items], ["A1", "A2", "T1"])

        seed = search.select("A1")
        self.assertEqual(seed.kind, ARTIST)

        request = build_playlist_request(seed, 170, 180, CONFIG)
        result = await generate_playlist(self.session.client, request, limit=20)

        recs = self.fake.calls("GET", "/v1/recommendations")
        self.assertEqual(len(recs), 1)
        params = recs[0].url.params
        self.assertEqual(params["seed_artists"], "A1")
        self.assertNotIn("seed_tracks", params)
        self.assertEqual(params["min_tempo"], "170")
        self.assertEqual(params["max_tempo"], "180")
        self.assertEqual(params["limit"], "20")

        self.assertEqual([t.id for t in result.tracks], ["R1", "R2"])
        self.assertEqual(result.tracks[1].uri, "spotify:track:R2")
        self.assertEqual(result.tracks[1].label, "Sprinter, Pacer - Fast Two")
        self.assertIsNone(result.playlist_id)


if __name__ == "__main__":
    unittest.main(verbosity=2)
