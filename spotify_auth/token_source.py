import logging
import threading
from typing import Callable

from .tokens import Token

logger = logging.getLogger(__name__)


class StaticTokenSource:
    """Always returns the same token; never refreshes."""

    def __init__(self, token: Token):
        self._token = token

    def token(self) -> Token:
        return self._token


class RefreshingTokenSource:
    """Hands out the held token while it is valid and refreshes it on demand.

    ``refresh`` receives the expired token and returns its replacement. The
    lock keeps concurrent callers from refreshing the same token twice.
    """

    def __init__(self, token: Token, refresh: Callable[[Token], Token]):
        self._token = token
        self._refresh = refresh
        self._lock = threading.Lock()

    def token(self) -> Token:
        with self._lock:
            if self._token.valid:
                return self._token

            logger.debug("Access token expired, refreshing")
            self._token = self._refresh(self._token)
            return self._token
