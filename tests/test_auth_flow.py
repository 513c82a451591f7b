import sys
import unittest
import urllib.parse
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
TESTS_DIR = Path(__file__).resolve().parent
for p in (PROJECT_ROOT, TESTS_DIR):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))

from fakes import TOKEN_PATH, FakeSpotify, expired_credential, form, make_credential, token_payload
from spotify_api.auth import SpotifyPKCEAuth, check_spotify_credentials
from spotify_api.credential_store import CredentialStore, MemoryBackend
from spotify_api.errors import InvalidPKCEState, ProviderError
from spotify_api.pkce import code_challenge_from_verifier

REDIRECT_URI = "http://127.0.0.1:3000/spotify/auth-callback"
CONFIG = {
    "spotify_client_id": "client-123",
    "spotify_redirect_uri": REDIRECT_URI,
    "spotify_scopes": ["playlist-modify-public", "playlist-modify-private"],
}


class TestCredentialCheck(unittest.TestCase):
    def test_missing_client_id(self):
        status = check_spotify_credentials({"spotify_redirect_uri": REDIRECT_URI})
        self.assertFalse(status["ok"])
        self.assertIn("spotify_client_id", status["message"])

    def test_complete_config(self):
        self.assertTrue(check_spotify_credentials(CONFIG)["ok"])


class AuthTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.fake = FakeSpotify()
        self.http = self.fake.client()
        self.store = CredentialStore(MemoryBackend())
        self.auth = SpotifyPKCEAuth(CONFIG, store=self.store, http=self.http)

    async def asyncTearDown(self):
        await self.http.aclose()


class TestBeginFlow(AuthTestCase):
    async def test_persists_verifier_and_builds_url(self):
        flow = self.auth.begin_oauth_flow()

        verifier = self.store.load_verifier()
        self.assertEqual(verifier, flow["pkce_pair"].code_verifier)

        query = dict(urllib.parse.parse_qsl(urllib.parse.urlparse(flow["auth_url"]).query))
        self.assertEqual(query["code_challenge"], code_challenge_from_verifier(verifier))
        self.assertEqual(query["client_id"], "client-123")
        self.assertEqual(query["redirect_uri"], REDIRECT_URI)
        self.assertEqual(query["scope"], "playlist-modify-public playlist-modify-private")

    async def test_requires_client_id(self):
        auth = SpotifyPKCEAuth({"spotify_redirect_uri": REDIRECT_URI}, store=self.store, http=self.http)
        with self.assertRaises(ValueError):
            auth.begin_oauth_flow()


class TestExchange(AuthTestCase):
    async def test_exchange_stores_credential_and_consumes_verifier(self):
        self.store.save_verifier("v" * 64)
        self.fake.add("POST", TOKEN_PATH, (200, token_payload(access="at-1", refresh="rt-1", expires_in=3600)))

        credential = await self.auth.exchange_code("CODE")

        self.assertEqual(
            form(self.fake.calls("POST", TOKEN_PATH)[0]),
            {
                "client_id": "client-123",
                "grant_type": "authorization_code",
                "code": "CODE",
                "redirect_uri": REDIRECT_URI,
                "code_verifier": "v" * 64,
            },
        )
        self.assertEqual(self.store.get(), credential)
        self.assertEqual(credential.access_token, "at-1")
        self.assertIsNone(self.store.load_verifier())

    async def test_failed_exchange_still_consumes_verifier(self):
        self.store.save_verifier("v" * 64)
        self.fake.add("POST", TOKEN_PATH, (400, {"error": "invalid_grant", "error_description": "Invalid authorization code"}))

        with self.assertRaises(ProviderError) as ctx:
            await self.auth.exchange_code("BAD")

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn("invalid_grant", str(ctx.exception))
        self.assertIsNone(self.store.load_verifier())
        self.assertIsNone(self.store.get())

    async def test_exchange_without_verifier_is_invalid_state(self):
        with self.assertRaises(InvalidPKCEState):
            await self.auth.exchange_code("CODE")
        self.assertEqual(self.fake.requests, [])


class TestCallback(AuthTestCase):
    async def test_callback_exchanges_code(self):
        self.auth.begin_oauth_flow()
        self.fake.add("POST", TOKEN_PATH, (200, token_payload(access="at-1", refresh="rt-1")))

        credential = await self.auth.handle_callback(f"{REDIRECT_URI}?code=XYZ")

        self.assertEqual(form(self.fake.calls("POST", TOKEN_PATH)[0])["code"], "XYZ")
        self.assertEqual(self.store.get(), credential)

    async def test_provider_error_discards_verifier(self):
        self.auth.begin_oauth_flow()

        with self.assertRaises(ProviderError):
            await self.auth.handle_callback(f"{REDIRECT_URI}?error=access_denied")

        self.assertIsNone(self.store.load_verifier())
        self.assertEqual(self.fake.requests, [])

    async def test_valid_stored_credential_skips_exchange(self):
        existing = make_credential(access="at-live")
        self.store.set(existing)
        self.auth.begin_oauth_flow()

        credential = await self.auth.handle_callback(f"{REDIRECT_URI}?code=XYZ")

        self.assertEqual(credential, existing)
        self.assertEqual(self.fake.requests, [])
        self.assertIsNone(self.store.load_verifier())

    async def test_expired_stored_credential_is_replaced(self):
        self.store.set(expired_credential())
        self.auth.begin_oauth_flow()
        self.fake.add("POST", TOKEN_PATH, (200, token_payload(access="at-fresh", refresh="rt-fresh")))

        credential = await self.auth.handle_callback(f"{REDIRECT_URI}?code=XYZ")

        self.assertEqual(credential.access_token, "at-fresh")
        self.assertEqual(self.store.get().access_token, "at-fresh")

    async def test_callback_without_verifier(self):
        with self.assertRaises(InvalidPKCEState):
            await self.auth.handle_callback(f"{REDIRECT_URI}?code=XYZ")

    async def test_logout_clears_everything(self):
        self.store.set(make_credential())
        self.store.save_verifier("v" * 64)

        self.auth.logout()

        self.assertIsNone(self.store.get())
        self.assertIsNone(self.store.load_verifier())


if __name__ == "__main__":
    unittest.main(verbosity=2)
