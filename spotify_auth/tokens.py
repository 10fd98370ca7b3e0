import json
import logging
import urllib.parse
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

# Tokens are treated as expired slightly before their real expiry so a
# request started just before the deadline still carries a live token.
EXPIRY_DELTA = timedelta(seconds=10)

_CANONICAL_TYPES = {"bearer": "Bearer", "mac": "MAC", "basic": "Basic"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Token:
    """OAuth2 credentials issued by the Spotify accounts service."""

    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expiry: Optional[datetime] = None
    scope: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @staticmethod
    def from_token_response(payload: Mapping[str, Any], *, now: Optional[datetime] = None) -> "Token":
        """Convert a token endpoint response into a Token.

        Spotify returns:
        - access_token
        - token_type
        - expires_in (seconds; missing or 0 means no known expiry)
        - refresh_token (optional on refresh)
        - scope (space-delimited string)
        """

        now_ts = now or _utcnow()

        expiry = None
        raw_expires_in = payload.get("expires_in")
        try:
            expires_in = float(raw_expires_in or 0)
        except (TypeError, ValueError):
            logger.debug("Ignoring unparsable expires_in %r", raw_expires_in)
            expires_in = 0.0
        if 0 < expires_in < float("inf"):
            expiry = now_ts + timedelta(seconds=expires_in)

        return Token(
            access_token=str(payload.get("access_token") or ""),
            token_type=str(payload.get("token_type") or ""),
            refresh_token=payload.get("refresh_token") or None,
            expiry=expiry,
            scope=payload.get("scope") or None,
            raw=dict(payload),
        )

    @property
    def type(self) -> str:
        """Token type with canonical casing; empty means Bearer."""
        if not self.token_type:
            return "Bearer"
        return _CANONICAL_TYPES.get(self.token_type.lower(), self.token_type)

    def authorization_header(self) -> str:
        return f"{self.type} {self.access_token}"

    def is_expired(self, *, now: Optional[datetime] = None) -> bool:
        if self.expiry is None:
            return False
        return (now or _utcnow()) >= self.expiry - EXPIRY_DELTA

    @property
    def valid(self) -> bool:
        return bool(self.access_token) and not self.is_expired()

    def extra(self, key: str, default: Any = None) -> Any:
        """Return a field from the raw token response (e.g. ``scope``)."""
        return self.raw.get(key, default)

    def with_refresh_token(self, refresh_token: Optional[str]) -> "Token":
        return replace(self, refresh_token=refresh_token)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.type,
            "refresh_token": self.refresh_token,
            "expiry": self.expiry.isoformat() if self.expiry else None,
            "scope": self.scope,
        }


def parse_token_body(body: str, content_type: str = "") -> Dict[str, Any]:
    """Decode a token endpoint body.

    The accounts service answers with JSON, but form-encoded bodies are still
    accepted for endpoints that follow the older OAuth2 drafts.
    """

    media_type = (content_type or "").split(";")[0].strip().lower()
    if media_type in ("application/x-www-form-urlencoded", "text/plain"):
        return {k: v[0] for k, v in urllib.parse.parse_qs(body).items() if v}

    payload = json.loads(body)
    if not isinstance(payload, dict):
        raise ValueError(f"token response was not an object: {payload!r}")
    return payload
