import asyncio
import urllib.parse
import webbrowser

import questionary

from spotify_api.auth import check_spotify_credentials, spotify_app_setup_instructions
from spotify_api.credential_store import CredentialStore
from spotify_api.errors import InvalidPKCEState, ProviderError, TransportError
from spotify_api.session import SpotifySession
from utils.logger import log_error, log_info, log_success, log_warning


def _spotify_setup_help(config: dict) -> None:
    creds = check_spotify_credentials(config)
    log_info("\n" + "=" * 72)
    log_info("SPOTIFY APP SETUP")
    log_info("=" * 72)
    log_info(spotify_app_setup_instructions(redirect_uri=creds.get("redirect_uri") or ""))
    log_info(f"- spotify_client_id: {'SET' if creds.get('client_id') else 'NOT SET'}")
    log_info(f"- spotify_redirect_uri: {creds.get('redirect_uri') or ''}")
    log_info(f"- spotify_scopes: {', '.join(creds.get('scopes') or [])}")
    log_info("=" * 72 + "\n")


def _callback_url(pasted: str, redirect_uri: str) -> str:
    """Accept either the full redirect URL or a bare code value."""
    if "://" in pasted:
        return pasted
    return f"{redirect_uri}?{urllib.parse.urlencode({'code': pasted})}"


async def _sign_in(config: dict) -> bool:
    creds = check_spotify_credentials(config)
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
        _spotify_setup_help(config)
        return False

    async with SpotifySession(config) as session:
        try:
            user = await session.current_user()
        except (ProviderError, TransportError) as e:
            log_warning(f"Could not verify the stored Spotify session: {e}")
            user = None
        if user:
            log_info(f"Already signed in as {user.get('display_name') or user.get('id')}.")
            return True

        # Drop whatever is stored so the new code gets exchanged
        session.store.clear()

        flow = session.auth.begin_oauth_flow()
        auth_url = flow["auth_url"]

        log_info("\n" + "=" * 72)
        log_info("SPOTIFY SIGN-IN")
        log_info("=" * 72)
        log_info("1) A browser login will open (or you can copy/paste the URL).")
        log_info("2) After approving, Spotify will redirect you to your redirect_uri.")
        log_info("3) Copy the FULL redirect URL from the browser and paste it back here.")
        log_info("")
        log_info(f"Authorize URL:\n{auth_url}")
        log_info("=" * 72)

        if await questionary.confirm("Open the authorize URL in your default browser?", default=True).ask_async():
            if not webbrowser.open(auth_url):
                log_warning("Could not open a browser; copy the URL above instead.")

        pasted = (await questionary.text("Paste the full redirect URL (preferred) OR just the code=... value:").ask_async() or "").strip()
        if not pasted:
            log_warning("No redirect URL / code provided. Cancelling sign-in.")
            session.sign_out()
            return False

        try:
            credential = await session.auth.handle_callback(_callback_url(pasted, session.auth.redirect_uri))
        except (InvalidPKCEState, ProviderError, TransportError) as e:
            session.sign_out()
            log_error(f"Spotify sign-in failed: {e}")
            return False

        exp_str = credential.expires_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        log_success(f"✅ Signed in with Spotify. Access token expires at: {exp_str}")
        return True


def sign_in(config: dict) -> bool:
    """Run the PKCE flow where the user pastes the redirect URL back into the CLI."""
    return asyncio.run(_sign_in(config))


async def _account_status(config: dict) -> None:
    async with SpotifySession(config) as session:
        log_info(session.store.status())
        try:
            user = await session.current_user()
        except (ProviderError, TransportError) as e:
            log_error(f"Could not reach Spotify: {e}")
            return
        if user:
            log_info(f"Signed in as: {user.get('display_name') or user.get('id')}")
        else:
            log_info("Not signed in.")


def account_status(config: dict) -> None:
    asyncio.run(_account_status(config))


def sign_out(config: dict) -> None:
    store = CredentialStore.from_config(config)
    store.clear()
    store.clear_verifier()
    log_success("Signed out. Stored Spotify credentials removed.")


async def _resume_session(config: dict) -> bool:
    store = CredentialStore.from_config(config)
    if store.get() is None:
        return False

    async with SpotifySession(config, store=store) as session:
        try:
            user = await session.current_user()
        except (ProviderError, TransportError) as e:
            log_warning(f"Could not verify the stored Spotify session: {e}")
            return False
    if not user:
        store.clear()
        log_warning("Stored Spotify session has expired. Please sign in again.")
        return False

    log_info(f"Welcome back, {user.get('display_name') or user.get('id')}.")
    return True


def resume_session(config: dict) -> bool:
    """Check a stored credential against /v1/me at startup."""
    if not check_spotify_credentials(config).get("ok"):
        return False
    return asyncio.run(_resume_session(config))
