import secrets
import time
import webbrowser
from typing import Any, Dict, Mapping, Optional

import httpx
import questionary

from config import (
    CONFIG_PATH,
    DEFAULT_CONFIG,
    check_spotify_credentials,
    spotify_app_setup_instructions,
    update_config,
)
from spotify_auth import (
    AuthenticationFailedError,
    Authenticator,
    InvalidCallbackError,
    NoAccessCodeError,
    SpotifyAuthError,
    StateMismatchError,
    Token,
)
from utils.logger import log_info, log_success, log_warning, log_error

MENU_SETUP = "Show Spotify setup help"
MENU_SETTINGS = "Edit Spotify settings"
MENU_AUTH = "Authenticate with Spotify"
MENU_EXIT = "Exit"

SETTINGS_FIELDS = (
    ("spotify_client_id", "Spotify client ID (blank to use SPOTIFY_CLIENT_ID):"),
    ("spotify_redirect_uri", "Redirect URI:"),
)


def spotify_setup_help(config: dict, environ: Optional[Mapping[str, str]] = None) -> None:
    creds = check_spotify_credentials(config, environ)
    log_info("\n" + "=" * 72)
    log_info("SPOTIFY WEB API SETUP")
    log_info("=" * 72)
    log_info(spotify_app_setup_instructions(redirect_uri=creds.get("redirect_uri") or ""))
    log_info("")
    log_info("Current config status:")
    log_info(f"- client id: {creds.get('client_id_source') or 'NOT SET'}")
    log_info(f"- client secret: {creds.get('client_secret_source') or 'NOT SET'}")
    log_info(f"- spotify_redirect_uri: {creds.get('redirect_uri') or ''}")
    log_info(f"- spotify_scopes: {', '.join(creds.get('scopes') or [])}")
    log_info("")
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
    else:
        log_info(creds.get("message") or "Spotify credentials look OK.")
    log_info("=" * 72 + "\n")


def describe_token(token: Token) -> str:
    if token.expiry is None:
        exp_str = "never"
    else:
        exp_str = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(token.expiry.timestamp()))
    refresh = "YES" if token.refresh_token else "NO"
    return f"Token type: {token.type} | Refresh token: {refresh} | Expires at: {exp_str}"


def spotify_authenticate(
    config: Dict[str, Any],
    *,
    http_client: Optional[httpx.Client] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[Token]:
    """Run the authorization flow; the user pastes the redirect URL back into the CLI.

    Without ``http_client`` a client bounded by ``http_timeout`` is created
    for this attempt and closed afterwards.
    """

    creds = check_spotify_credentials(config, environ)
    if not creds.get("ok"):
        log_warning(creds.get("message") or "Spotify credentials are incomplete.")
        spotify_setup_help(config, environ)
        return None

    if http_client is not None:
        return _authenticate(config, http_client, environ)

    timeout = config.get("http_timeout") or DEFAULT_CONFIG["http_timeout"]
    with httpx.Client(timeout=timeout) as owned_client:
        return _authenticate(config, owned_client, environ)


def _authenticate(
    config: Dict[str, Any],
    http_client: httpx.Client,
    environ: Optional[Mapping[str, str]],
) -> Optional[Token]:
    try:
        auth = Authenticator.from_config(config, http_client=http_client, environ=environ)
    except SpotifyAuthError as e:
        log_error(str(e))
        return None

    state = secrets.token_urlsafe(16).rstrip("=")
    auth_url = auth.authorization_url(
        state,
        offline=bool(config.get("spotify_offline_access", True)),
        show_dialog=bool(config.get("spotify_show_dialog", True)),
    )

    log_info("\n" + "=" * 72)
    log_info("SPOTIFY AUTHENTICATION")
    log_info("=" * 72)
    log_info("1) A browser login will open (or you can copy/paste the URL).")
    log_info("2) After approving, Spotify will redirect you to your redirect_uri.")
    log_info("3) Copy the FULL redirect URL from the browser and paste it back here.")
    log_info("")
    log_info(f"Authorize URL:\n{auth_url}")
    log_info("=" * 72)

    if questionary.confirm("Open the authorize URL in your default browser?", default=True).ask():
        try:
            webbrowser.open(auth_url)
        except webbrowser.Error as e:
            log_warning(f"Could not open a browser: {e}")

    pasted = (questionary.text("Paste the full redirect URL:").ask() or "").strip()
    if not pasted:
        log_warning("No redirect URL provided. Cancelling auth.")
        return None

    try:
        token = auth.exchange_code(state, pasted)
    except AuthenticationFailedError as e:
        log_error(f"Spotify returned an error: {e.error}")
        return None
    except InvalidCallbackError:
        log_error("That does not look like a URL. Paste the full redirect URL from the browser address bar.")
        return None
    except NoAccessCodeError:
        log_error("Could not find an authorization code. Paste the full redirect URL that contains ?code=...")
        return None
    except StateMismatchError:
        log_error("OAuth state mismatch. For safety, cancelling this authentication attempt.")
        log_info("Tip: Make sure you paste the redirect URL from the most recent login attempt.")
        return None
    except SpotifyAuthError as e:
        log_error(f"Spotify authentication failed: {e}")
        return None

    log_success("Spotify authentication successful.")
    log_info(describe_token(token))
    return token


def edit_spotify_settings(config: Dict[str, Any], path: str = CONFIG_PATH) -> Dict[str, Any]:
    """Prompt for the client id and redirect URI and write changes to the config file."""

    for key, prompt in SETTINGS_FIELDS:
        current = str(config.get(key) or "").strip()
        answer = questionary.text(prompt, default=current).ask()
        if answer is None:
            log_warning("Settings edit cancelled.")
            return config

        answer = answer.strip()
        if answer == current:
            continue

        try:
            ok, message = update_config(key, answer, path)
        except OSError as e:
            log_error(f"Could not update {path}: {e}")
            return config

        if ok:
            config[key] = answer
            log_success(message)
        else:
            log_error(message)

    return config


def auth_menu(config: Dict[str, Any], config_path: str = CONFIG_PATH) -> Optional[Token]:
    """Interactive loop; returns the last token obtained, if any."""
    token = None
    while True:
        choice = questionary.select(
            "Spotify Authentication",
            choices=[MENU_SETUP, MENU_SETTINGS, MENU_AUTH, MENU_EXIT],
        ).ask()

        if choice == MENU_SETUP:
            spotify_setup_help(config)

        elif choice == MENU_SETTINGS:
            config = edit_spotify_settings(config, config_path)

        elif choice == MENU_AUTH:
            token = spotify_authenticate(config) or token

        # Ctrl-C in questionary returns None
        elif choice == MENU_EXIT or choice is None:
            return token

        else:
            log_error("Invalid choice.")
