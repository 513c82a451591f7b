import base64
import hashlib
import secrets
import urllib.parse
from dataclasses import dataclass
from typing import Dict, Iterable


SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"

VERIFIER_BYTES = 32


@dataclass(frozen=True)
class PKCEPair:
    code_verifier: str
    code_challenge: str


def _base64url_no_pad(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def generate_verifier() -> str:
    """Return 32 random bytes as 64 lowercase hex characters."""

    return secrets.token_hex(VERIFIER_BYTES)


def code_challenge_from_verifier(verifier: str) -> str:
    """Compute PKCE S256 code_challenge from code_verifier."""

    digest = hashlib.sha256((verifier or "").encode("utf-8")).digest()
    return _base64url_no_pad(digest)


def generate_pkce_pair() -> PKCEPair:
    verifier = generate_verifier()
    return PKCEPair(code_verifier=verifier, code_challenge=code_challenge_from_verifier(verifier))


def build_authorization_url(
    client_id: str,
    redirect_uri: str,
    scopes: Iterable[str],
    code_challenge: str,
    *,
    base_url: str = SPOTIFY_ACCOUNTS_BASE_URL,
) -> str:
    """Build the /authorize URL for the Authorization Code + PKCE flow.

    Pure function: the caller is responsible for persisting the verifier that
    produced ``code_challenge``.
    """

    scope_str = " ".join([str(s).strip() for s in (scopes or []) if str(s).strip()])
    params = {
        "response_type": "code",
        "client_id": str(client_id),
        "scope": scope_str,
        "redirect_uri": str(redirect_uri),
        "code_challenge_method": "S256",
        "code_challenge": str(code_challenge),
    }
    return f"{base_url}/authorize?{urllib.parse.urlencode(params)}"


def extract_code_from_redirect_url(redirect_url: str) -> Dict[str, str]:
    """Parse a redirect URL and return {"code": ..., "state": ..., "error": ...} (missing keys omitted)."""

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    qs = urllib.parse.parse_qs(parsed.query)
    out: Dict[str, str] = {}
    for key in ("code", "state", "error"):
        if qs.get(key):
            out[key] = str(qs[key][0])
    return out
