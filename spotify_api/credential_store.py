import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Tuple


logger = logging.getLogger(__name__)

DEFAULT_CREDENTIAL_STORE_PATH = os.path.join("data", "spotify_credentials.json")

# Persisted key layout.
ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
EXPIRES_IN_KEY = "expiresIn"
STORED_AT_KEY = "storedAt"
CODE_VERIFIER_KEY = "codeVerifier"

CREDENTIAL_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, EXPIRES_IN_KEY, STORED_AT_KEY)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _format_timestamp(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Credential:
    """Bearer credential issued by the Spotify accounts service."""

    access_token: str
    refresh_token: str
    issued_at: datetime
    ttl_seconds: int

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=int(self.ttl_seconds))

    def is_expired(self, *, now: Optional[datetime] = None, skew_seconds: int = 0) -> bool:
        now_ts = _utcnow() if now is None else now
        return now_ts >= self.expires_at - timedelta(seconds=int(skew_seconds))

    @staticmethod
    def from_token_response(
        payload: Mapping[str, Any],
        *,
        now: Optional[datetime] = None,
        previous_refresh_token: Optional[str] = None,
    ) -> "Credential":
        """Convert a token endpoint JSON payload into a Credential.

        Spotify may omit ``refresh_token`` on refresh; ``previous_refresh_token``
        is kept in that case. Raises ValueError when a field is missing.
        """

        access_token = str(payload.get("access_token") or "")
        refresh_token = str(payload.get("refresh_token") or previous_refresh_token or "")
        if not access_token or not refresh_token:
            raise ValueError("token response is missing access_token or refresh_token")

        try:
            ttl = int(payload.get("expires_in"))
        except (TypeError, ValueError) as e:
            raise ValueError(f"token response has an invalid expires_in: {payload.get('expires_in')!r}") from e

        return Credential(
            access_token=access_token,
            refresh_token=refresh_token,
            issued_at=_utcnow() if now is None else now,
            ttl_seconds=ttl,
        )

    def to_record(self) -> Dict[str, str]:
        return {
            ACCESS_TOKEN_KEY: self.access_token,
            REFRESH_TOKEN_KEY: self.refresh_token,
            EXPIRES_IN_KEY: str(int(self.ttl_seconds)),
            STORED_AT_KEY: _format_timestamp(self.issued_at),
        }

    @staticmethod
    def from_record(record: Mapping[str, Any]) -> Optional["Credential"]:
        """Rebuild a Credential from persisted keys; partial records read as absent."""

        if not all(record.get(k) for k in CREDENTIAL_KEYS):
            return None

        try:
            return Credential(
                access_token=str(record[ACCESS_TOKEN_KEY]),
                refresh_token=str(record[REFRESH_TOKEN_KEY]),
                issued_at=_parse_timestamp(record[STORED_AT_KEY]),
                ttl_seconds=int(record[EXPIRES_IN_KEY]),
            )
        except (TypeError, ValueError):
            logger.warning("Ignoring unreadable stored credential")
            return None


class MemoryBackend:
    """Process-local key/value backend."""

    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def read(self) -> Dict[str, str]:
        return dict(self._data)

    def write(self, data: Mapping[str, str]) -> None:
        self._data = dict(data)


class JsonFileBackend:
    """Key/value backend persisted as one JSON object on disk.

    Writes go to a temporary file in the same directory which then replaces the
    target, so an interrupted write leaves the previous contents readable.

    Every authenticated call reads the store, so the last parsed contents are
    kept and reused while the file's mtime and size are unchanged. A read then
    costs one ``os.stat`` instead of open + parse on the event loop thread.
    """

    def __init__(self, path: str = DEFAULT_CREDENTIAL_STORE_PATH):
        self.path = path
        self._cache: Optional[Tuple[Tuple[int, int], Dict[str, str]]] = None

    def _signature(self) -> Tuple[int, int]:
        st = os.stat(self.path)
        return st.st_mtime_ns, st.st_size

    def read(self) -> Dict[str, str]:
        try:
            signature = self._signature()
        except FileNotFoundError:
            self._cache = None
            return {}
        except OSError:
            signature = None

        if signature is not None and self._cache is not None and self._cache[0] == signature:
            return dict(self._cache[1])

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read credential file %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            return {}
        record = {str(k): str(v) for k, v in data.items() if v is not None}
        if signature is not None:
            self._cache = (signature, record)
        return dict(record)

    def write(self, data: Mapping[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        record = {str(k): str(v) for k, v in dict(data).items() if v is not None}

        fd, tmp_path = tempfile.mkstemp(prefix=".credentials-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            self._cache = None
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
        self._cache = (self._signature(), record)


class CredentialStore:
    """Persisted credential state shared by the auth flow and the API client.

    The four credential fields are only ever written together: ``set`` replaces
    all of them in one backend write and ``clear`` removes all of them.
    """

    def __init__(self, backend=None):
        self.backend = backend if backend is not None else MemoryBackend()
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "CredentialStore":
        path = str((config or {}).get("credential_store_path") or DEFAULT_CREDENTIAL_STORE_PATH)
        return cls(JsonFileBackend(path))

    def get(self) -> Optional[Credential]:
        with self._lock:
            return Credential.from_record(self.backend.read())

    def set(self, credential: Credential) -> None:
        with self._lock:
            data = self.backend.read()
            data.update(credential.to_record())
            self.backend.write(data)
        logger.debug("Stored credential (expires %s)", credential.expires_at.isoformat())

    def clear(self) -> None:
        with self._lock:
            data = self.backend.read()
            if any(k in data for k in CREDENTIAL_KEYS):
                self.backend.write({k: v for k, v in data.items() if k not in CREDENTIAL_KEYS})
        logger.debug("Cleared stored credential")

    def save_verifier(self, verifier: str) -> None:
        with self._lock:
            data = self.backend.read()
            data[CODE_VERIFIER_KEY] = str(verifier)
            self.backend.write(data)

    def load_verifier(self) -> Optional[str]:
        with self._lock:
            return self.backend.read().get(CODE_VERIFIER_KEY) or None

    def clear_verifier(self) -> None:
        with self._lock:
            data = self.backend.read()
            if CODE_VERIFIER_KEY in data:
                data.pop(CODE_VERIFIER_KEY)
                self.backend.write(data)

    def status(self, *, now: Optional[datetime] = None) -> str:
        credential = self.get()
        if credential is None:
            return "No stored Spotify credential."
        expired = credential.is_expired(now=now)
        exp_str = credential.expires_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        return f"Credential stored: YES | Expired: {'YES' if expired else 'NO'} | Expires at: {exp_str}"
