from typing import Any, Optional


class SpotifyError(Exception):
    """Base class for every error raised by the spotify_api package."""


class Unauthenticated(SpotifyError):
    """No credential is stored; the user has to sign in first."""


class AuthExpired(SpotifyError):
    """The provider rejected the access token and it could not be refreshed."""

    def __init__(self, message: str = "Spotify access token expired", *, body: Any = None):
        super().__init__(message)
        self.body = body


class TransportError(SpotifyError):
    """The request never produced a response (DNS, connect, timeout, ...)."""


class InvalidPKCEState(SpotifyError):
    """An authorization callback arrived but no code verifier was stored."""


class ProviderError(SpotifyError):
    """Spotify answered with a non-success status this package does not handle."""

    def __init__(self, status_code: Optional[int], message: str = "", *, body: Any = None):
        self.status_code = None if status_code is None else int(status_code)
        self.message = message
        self.body = body
        text = "Spotify API error" if self.status_code is None else f"Spotify API error {self.status_code}"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)

    @classmethod
    def from_response(cls, response) -> "ProviderError":
        body: Optional[Any]
        try:
            body = response.json()
        except ValueError:
            body = response.text
        return cls(response.status_code, error_message(body), body=body)


def error_message(body: Any) -> str:
    """Pull the human readable message out of a Spotify error payload.

    The Web API nests it (``{"error": {"status": 401, "message": ...}}``) while
    the accounts service uses OAuth style fields (``error``/``error_description``).
    """

    if not isinstance(body, dict):
        return str(body or "")

    err = body.get("error")
    if isinstance(err, dict):
        return str(err.get("message") or "")
    if err:
        desc = body.get("error_description")
        return f"{err}: {desc}" if desc else str(err)
    return ""
