import copy
import logging
import os
import urllib.parse
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union

import httpx

from .errors import (
    AuthenticationFailedError,
    InvalidCallbackError,
    MissingClientIDError,
    MissingClientSecretError,
    NoAccessCodeError,
    StateMismatchError,
    TokenExchangeError,
    TokenExpiredError,
    TokenRefreshError,
    TokenRetrieveError,
)
from .token_source import RefreshingTokenSource
from .tokens import Token, parse_token_body
from .transport import TokenAuth

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"

CLIENT_ID_ENV = "SPOTIFY_CLIENT_ID"
CLIENT_SECRET_ENV = "SPOTIFY_CLIENT_SECRET"

CallbackLike = Union[str, httpx.URL, httpx.Request]

_default_client: Optional[httpx.Client] = None


def default_http_client() -> httpx.Client:
    """Process-wide client used when no client is injected."""

    global _default_client
    if _default_client is None:
        _default_client = httpx.Client()
    return _default_client


@dataclass(frozen=True)
class AuthenticatorConfig:
    client_id: str
    client_secret: str
    redirect_url: str
    scopes: Sequence[str] = ()
    auth_url: str = AUTH_URL
    token_url: str = TOKEN_URL


@dataclass(frozen=True)
class CallbackParams:
    code: str = ""
    state: str = ""
    error: str = ""
    error_description: str = ""


def parse_callback(callback: CallbackLike) -> CallbackParams:
    """Pull ``code``/``state``/``error`` out of a redirect URL or request."""

    if isinstance(callback, httpx.Request):
        url = callback.url
    else:
        try:
            url = httpx.URL(str(callback).strip())
        except httpx.InvalidURL as e:
            raise InvalidCallbackError(str(callback)) from e

    params = url.params
    return CallbackParams(
        code=params.get("code", ""),
        state=params.get("state", ""),
        error=params.get("error", ""),
        error_description=params.get("error_description", ""),
    )


def resolve_credentials(
    config: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Optional[str]]:
    """Client id and secret from ``config``, falling back to the environment.

    Returns ``client_id`` / ``client_secret`` (empty when unset) and
    ``client_id_source`` / ``client_secret_source``, each ``"config"``,
    ``"environment"`` or ``None``.
    """

    config = config or {}
    env = os.environ if environ is None else environ

    out: Dict[str, Optional[str]] = {}
    for name, key, env_name in (
        ("client_id", "spotify_client_id", CLIENT_ID_ENV),
        ("client_secret", "spotify_client_secret", CLIENT_SECRET_ENV),
    ):
        value = str(config.get(key) or "").strip()
        source = "config" if value else None
        if not value:
            value = env.get(env_name, "")
            source = "environment" if value else None
        out[name] = value
        out[f"{name}_source"] = source
    return out


class Authenticator:
    """Spotify OAuth2 authorization-code flow helper.

    Client credentials come from ``SPOTIFY_CLIENT_ID`` and
    ``SPOTIFY_CLIENT_SECRET`` unless passed explicitly; explicit values always
    win. ``environ`` replaces ``os.environ`` for the lookup.

    ``http_client`` is shared, not owned: it is used for code exchange and
    token refresh and is never closed here. Passing ``timeout`` substitutes a
    new client bounded by that many seconds.
    """

    def __init__(
        self,
        redirect_url: str,
        *,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        scopes: Iterable[str] = (),
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        env = os.environ if environ is None else environ

        client_id = client_id or env.get(CLIENT_ID_ENV, "")
        client_secret = client_secret or env.get(CLIENT_SECRET_ENV, "")
        if not client_id:
            raise MissingClientIDError()
        if not client_secret:
            raise MissingClientSecretError()

        if timeout is not None:
            http_client = httpx.Client(timeout=timeout)

        self.config = AuthenticatorConfig(
            client_id=client_id,
            client_secret=client_secret,
            redirect_url=redirect_url,
            scopes=tuple(scopes),
        )
        self.http_client = http_client if http_client is not None else default_http_client()

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        *,
        http_client: Optional[httpx.Client] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "Authenticator":
        """Build from the JSON settings mapping used by the CLI.

        ``http_timeout`` only applies when no client is injected.
        """

        config = config or {}
        creds = resolve_credentials(config, environ)
        timeout = config.get("http_timeout") if http_client is None else None
        return cls(
            str(config.get("spotify_redirect_uri", "")).strip(),
            client_id=creds["client_id"] or None,
            client_secret=creds["client_secret"] or None,
            scopes=list(config.get("spotify_scopes", []) or []),
            http_client=http_client,
            timeout=timeout,
            environ=environ,
        )

    def _copy(self, config: AuthenticatorConfig) -> "Authenticator":
        other = copy.copy(self)
        other.config = config
        return other

    def with_scopes(self, *scopes: str) -> "Authenticator":
        """Return an Authenticator that requests ``scopes`` by default."""
        return self._copy(replace(self.config, scopes=tuple(scopes)))

    def with_redirect_url(self, redirect_url: str) -> "Authenticator":
        return self._copy(replace(self.config, redirect_url=redirect_url))

    # -----------------
    # Authorization URL
    # -----------------

    def authorization_url(
        self,
        state: str,
        *scopes: str,
        offline: bool = True,
        show_dialog: bool = False,
    ) -> str:
        """URL of Spotify's consent page for the user to visit.

        Scopes passed here apply to this URL only. ``offline`` asks for a
        refresh token to be issued alongside the access token.
        """

        scope_list = scopes or self.config.scopes
        params: Dict[str, str] = {
            "client_id": self.config.client_id,
            "response_type": "code",
        }
        if self.config.redirect_url:
            params["redirect_uri"] = self.config.redirect_url
        if scope_list:
            params["scope"] = " ".join(scope_list)
        if state:
            params["state"] = state
        if offline:
            params["access_type"] = "offline"
        if show_dialog:
            params["show_dialog"] = "true"

        sep = "&" if "?" in self.config.auth_url else "?"
        return f"{self.config.auth_url}{sep}{urllib.parse.urlencode(params)}"

    # -----------------
    # Token endpoint
    # -----------------

    def _retrieve_token(self, form: Dict[str, str], timeout: Optional[float]) -> Token:
        # RFC 6749 section 2.3.1: credentials are form-encoded before Basic auth.
        auth = (
            urllib.parse.quote_plus(self.config.client_id),
            urllib.parse.quote_plus(self.config.client_secret),
        )
        kwargs: Dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        resp = self.http_client.post(
            self.config.token_url,
            data=form,
            auth=auth,
            headers={"Accept": "application/json"},
            **kwargs,
        )

        if not 200 <= resp.status_code < 300:
            error_code = error_description = None
            try:
                body = parse_token_body(resp.text, resp.headers.get("Content-Type", ""))
                error_code = body.get("error") or None
                error_description = body.get("error_description") or None
            except ValueError:
                pass
            raise TokenRetrieveError(
                resp.status_code,
                resp.text,
                error_code=error_code,
                error_description=error_description,
            )

        payload = parse_token_body(resp.text, resp.headers.get("Content-Type", ""))
        token = Token.from_token_response(payload)
        if not token.access_token:
            raise ValueError("server response missing access_token")
        return token

    def exchange_code(
        self,
        expected_state: str,
        callback: CallbackLike,
        *,
        timeout: Optional[float] = None,
    ) -> Token:
        """Exchange the authorization code in ``callback`` for a token.

        ``expected_state`` must be the value passed to authorization_url();
        a different ``state`` in the callback is rejected to prevent CSRF.
        """

        params = parse_callback(callback)

        if params.error:
            raise AuthenticationFailedError(params.error, params.error_description or None)
        if not params.code:
            raise NoAccessCodeError()
        if params.state != expected_state:
            raise StateMismatchError()

        logger.debug("Exchanging authorization code at %s", self.config.token_url)
        form = {
            "grant_type": "authorization_code",
            "code": params.code,
        }
        if self.config.redirect_url:
            form["redirect_uri"] = self.config.redirect_url

        try:
            token = self._retrieve_token(form, timeout)
        except (httpx.HTTPError, TokenRetrieveError, ValueError) as e:
            raise TokenExchangeError(str(e)) from e

        logger.debug("Authorization code exchanged; token expires at %s", token.expiry)
        return token

    def refresh(self, token: Token, *, timeout: Optional[float] = None) -> Token:
        """Trade ``token``'s refresh token for a fresh access token."""

        if not token.refresh_token:
            raise TokenExpiredError()

        logger.debug("Refreshing access token at %s", self.config.token_url)
        try:
            refreshed = self._retrieve_token(
                {"grant_type": "refresh_token", "refresh_token": token.refresh_token},
                timeout,
            )
        except (httpx.HTTPError, TokenRetrieveError, ValueError) as e:
            raise TokenRefreshError(str(e)) from e

        # Spotify may omit refresh_token on refresh; keep existing.
        if not refreshed.refresh_token:
            refreshed = refreshed.with_refresh_token(token.refresh_token)
        return refreshed

    # -----------------
    # Authenticated clients
    # -----------------

    def token_source(self, token: Token) -> RefreshingTokenSource:
        """Token source that refreshes ``token`` through this Authenticator once expired."""
        return RefreshingTokenSource(token, self.refresh)

    def client(self, token: Token, **client_kwargs: Any) -> httpx.Client:
        """New httpx.Client that authorizes every request with ``token``.

        Refreshes go through this Authenticator's own HTTP client. Extra
        keyword arguments (``base_url``, ``transport``, ...) are passed to
        httpx.Client.
        """
        return httpx.Client(auth=TokenAuth(self.token_source(token)), **client_kwargs)
