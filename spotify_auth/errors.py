from typing import Optional


class SpotifyAuthError(Exception):
    """Base class for every error raised by spotify_auth."""


class MissingClientIDError(SpotifyAuthError):
    def __init__(self, message: str = "spotify: client ID is required but not provided"):
        super().__init__(message)


class MissingClientSecretError(SpotifyAuthError):
    def __init__(self, message: str = "spotify: client secret is required but not provided"):
        super().__init__(message)


class AuthenticationFailedError(SpotifyAuthError):
    """The provider redirected back with an ``error`` parameter."""

    def __init__(self, error: str, description: Optional[str] = None):
        self.error = error
        self.description = description
        message = f"spotify: authentication failed: {error}"
        if description:
            message = f"{message} ({description})"
        super().__init__(message)


class NoAccessCodeError(SpotifyAuthError):
    def __init__(self, message: str = "spotify: no access code received"):
        super().__init__(message)


class StateMismatchError(SpotifyAuthError):
    def __init__(self, message: str = "spotify: state verification failed"):
        super().__init__(message)


class TokenRetrieveError(SpotifyAuthError):
    """Non-2xx response from the token endpoint.

    Spotify returns ``{"error": ..., "error_description": ...}`` for most
    failures; both are kept when present.
    """

    def __init__(
        self,
        status_code: int,
        body: str,
        *,
        error_code: Optional[str] = None,
        error_description: Optional[str] = None,
    ):
        self.status_code = status_code
        self.body = body
        self.error_code = error_code
        self.error_description = error_description

        if error_code:
            message = f"spotify: token endpoint returned HTTP {status_code}: {error_code}"
            if error_description:
                message = f"{message}: {error_description}"
        else:
            message = f"spotify: token endpoint returned HTTP {status_code}: {body}"
        super().__init__(message)


class TokenExchangeError(SpotifyAuthError):
    """Code exchange failed; the underlying cause is chained as ``__cause__``."""

    def __init__(self, reason: str):
        super().__init__(f"spotify: token exchange failed: {reason}")


class TokenRefreshError(SpotifyAuthError):
    def __init__(self, reason: str):
        super().__init__(f"spotify: token refresh failed: {reason}")


class TokenExpiredError(SpotifyAuthError):
    def __init__(self, message: str = "spotify: token expired and refresh token is not set"):
        super().__init__(message)


class InvalidCallbackError(SpotifyAuthError):
    """The callback URL could not be parsed."""

    def __init__(self, callback: str):
        self.callback = callback
        super().__init__(f"spotify: invalid callback URL: {callback!r}")
