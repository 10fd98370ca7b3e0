from typing import Generator

import httpx


class TokenAuth(httpx.Auth):
    """httpx auth flow that sets the Authorization header from a token source."""

    def __init__(self, source):
        self.source = source

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        token = self.source.token()
        request.headers["Authorization"] = token.authorization_header()
        yield request
