"""Spotify OAuth2 authorization-code flow helper.

Builds authorization URLs, exchanges callback codes for tokens (with state
verification) and hands out httpx clients / token sources that refresh
credentials on demand. Tokens are never persisted here.
"""

from .auth import (
    AUTH_URL,
    TOKEN_URL,
    Authenticator,
    AuthenticatorConfig,
    CallbackParams,
    parse_callback,
    resolve_credentials,
)
from .errors import (
    AuthenticationFailedError,
    InvalidCallbackError,
    MissingClientIDError,
    MissingClientSecretError,
    NoAccessCodeError,
    SpotifyAuthError,
    StateMismatchError,
    TokenExchangeError,
    TokenExpiredError,
    TokenRefreshError,
    TokenRetrieveError,
)
from .token_source import RefreshingTokenSource, StaticTokenSource
from .tokens import Token
from .transport import TokenAuth

__all__ = [
    "AUTH_URL",
    "TOKEN_URL",
    "Authenticator",
    "AuthenticatorConfig",
    "CallbackParams",
    "parse_callback",
    "resolve_credentials",
    "SpotifyAuthError",
    "MissingClientIDError",
    "MissingClientSecretError",
    "AuthenticationFailedError",
    "InvalidCallbackError",
    "NoAccessCodeError",
    "StateMismatchError",
    "TokenRetrieveError",
    "TokenExchangeError",
    "TokenRefreshError",
    "TokenExpiredError",
    "Token",
    "StaticTokenSource",
    "RefreshingTokenSource",
    "TokenAuth",
]
