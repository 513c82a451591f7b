import base64
import hashlib
import re
import sys
import unittest
import urllib.parse
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotify_api.pkce import (
    build_authorization_url,
    code_challenge_from_verifier,
    extract_code_from_redirect_url,
    generate_pkce_pair,
    generate_verifier,
)


class TestVerifier(unittest.TestCase):
    def test_verifier_is_64_lowercase_hex_chars(self):
        for _ in range(50):
            self.assertRegex(generate_verifier(), r"^[0-9a-f]{64}$")

    def test_verifiers_do_not_repeat(self):
        seen = {generate_verifier() for _ in range(1000)}
        self.assertEqual(len(seen), 1000)


class TestChallenge(unittest.TestCase):
    def test_matches_sha256_base64url_no_pad(self):
        verifier = "abc"
        expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode("utf-8")).digest()).decode("utf-8").rstrip("=")
        self.assertEqual(code_challenge_from_verifier(verifier), expected)

    def test_rfc7636_example(self):
        self.assertEqual(
            code_challenge_from_verifier("dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"),
            "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM",
        )

    def test_challenge_is_deterministic_and_url_safe(self):
        for _ in range(200):
            verifier = generate_verifier()
            challenge = code_challenge_from_verifier(verifier)
            self.assertEqual(challenge, code_challenge_from_verifier(verifier))
            self.assertIsNone(re.search(r"[+/=]", challenge))
            self.assertEqual(len(challenge), 43)

    def test_pair_is_consistent(self):
        pair = generate_pkce_pair()
        self.assertEqual(pair.code_challenge, code_challenge_from_verifier(pair.code_verifier))


class TestAuthorizationUrl(unittest.TestCase):
    def test_fixed_query_parameters(self):
        url = build_authorization_url(
            "client-123",
            "http://127.0.0.1:3000/spotify/auth-callback",
            ["playlist-modify-public", "playlist-modify-private"],
            "CHALLENGE",
        )
        parsed = urllib.parse.urlparse(url)
        self.assertEqual(f"{parsed.scheme}://{parsed.netloc}{parsed.path}", "https://accounts.spotify.com/authorize")

        params = urllib.parse.parse_qsl(parsed.query)
        self.assertEqual(
            params,
            [
                ("response_type", "code"),
                ("client_id", "client-123"),
                ("scope", "playlist-modify-public playlist-modify-private"),
                ("redirect_uri", "http://127.0.0.1:3000/spotify/auth-callback"),
                ("code_challenge_method", "S256"),
                ("code_challenge", "CHALLENGE"),
            ],
        )

    def test_same_inputs_same_url(self):
        args = ("cid", "http://localhost/cb", ["a"], "xyz")
        self.assertEqual(build_authorization_url(*args), build_authorization_url(*args))


class TestRedirectParsing(unittest.TestCase):
    def test_extract_code_and_state(self):
        parsed = extract_code_from_redirect_url("http://localhost:3000/spotify/auth-callback?code=AAA&state=BBB")
        self.assertEqual(parsed, {"code": "AAA", "state": "BBB"})

    def test_extract_error(self):
        parsed = extract_code_from_redirect_url("http://localhost:3000/spotify/auth-callback?error=access_denied")
        self.assertEqual(parsed, {"error": "access_denied"})


if __name__ == "__main__":
    unittest.main(verbosity=2)
