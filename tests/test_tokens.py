import sys
import threading
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotify_auth import RefreshingTokenSource, StaticTokenSource, Token, TokenAuth
from spotify_auth.tokens import parse_token_body

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestToken(unittest.TestCase):
    def test_from_token_response(self):
        token = Token.from_token_response(
            {
                "access_token": "at",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "rt",
                "scope": "user-read-private user-read-email",
            },
            now=NOW,
        )
        self.assertEqual(token.access_token, "at")
        self.assertEqual(token.refresh_token, "rt")
        self.assertEqual(token.expiry, NOW + timedelta(hours=1))
        self.assertEqual(token.scope, "user-read-private user-read-email")
        self.assertEqual(token.extra("scope"), "user-read-private user-read-email")

    def test_zero_expires_in_means_no_expiry(self):
        token = Token.from_token_response({"access_token": "at", "expires_in": 0}, now=NOW)
        self.assertIsNone(token.expiry)
        self.assertTrue(token.valid)

    def test_fractional_expires_in(self):
        token = Token.from_token_response({"access_token": "at", "expires_in": "3600.0"}, now=NOW)
        self.assertEqual(token.expiry, NOW + timedelta(hours=1))

        token = Token.from_token_response({"access_token": "at", "expires_in": 3600.5}, now=NOW)
        self.assertEqual(token.expiry, NOW + timedelta(seconds=3600.5))

    def test_unparsable_expires_in_is_logged(self):
        with self.assertLogs("spotify_auth.tokens", level="DEBUG") as logs:
            token = Token.from_token_response({"access_token": "at", "expires_in": "soon"}, now=NOW)
        self.assertIsNone(token.expiry)
        self.assertTrue(any("soon" in line for line in logs.output))

    def test_type_is_normalized(self):
        self.assertEqual(Token(access_token="a", token_type="bearer").type, "Bearer")
        self.assertEqual(Token(access_token="a", token_type="").type, "Bearer")
        self.assertEqual(Token(access_token="a", token_type="mac").type, "MAC")
        self.assertEqual(Token(access_token="a", token_type="custom").type, "custom")
        self.assertEqual(Token(access_token="a").authorization_header(), "Bearer a")

    def test_expiry_delta(self):
        token = Token(access_token="a", expiry=NOW + timedelta(seconds=5))
        self.assertTrue(token.is_expired(now=NOW))
        self.assertFalse(token.is_expired(now=NOW - timedelta(seconds=30)))

    def test_empty_access_token_is_invalid(self):
        self.assertFalse(Token(access_token="").valid)

    def test_to_dict(self):
        token = Token(access_token="a", refresh_token="r", expiry=NOW)
        data = token.to_dict()
        self.assertEqual(data["token_type"], "Bearer")
        self.assertEqual(data["expiry"], NOW.isoformat())


class TestParseTokenBody(unittest.TestCase):
    def test_json(self):
        self.assertEqual(parse_token_body('{"access_token": "a"}', "application/json"), {"access_token": "a"})

    def test_form_encoded(self):
        body = parse_token_body("access_token=a&expires_in=60", "application/x-www-form-urlencoded; charset=utf-8")
        self.assertEqual(body, {"access_token": "a", "expires_in": "60"})

    def test_non_object_json(self):
        with self.assertRaises(ValueError):
            parse_token_body("[1, 2]", "application/json")


class TestTokenSources(unittest.TestCase):
    def test_static(self):
        token = Token(access_token="a", expiry=NOW)
        self.assertIs(StaticTokenSource(token).token(), token)

    def test_refreshing_source_calls_refresh_once_under_contention(self):
        calls = []
        expired = Token(access_token="old", refresh_token="r", expiry=NOW)

        def refresh(token):
            calls.append(token)
            return Token(access_token="new", refresh_token="r")

        source = RefreshingTokenSource(expired, refresh)
        results = []
        threads = [threading.Thread(target=lambda: results.append(source.token().access_token)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(calls), 1)
        self.assertIs(calls[0], expired)
        self.assertEqual(results, ["new"] * 8)


class TestTokenAuth(unittest.TestCase):
    def test_sets_authorization_header(self):
        seen = []

        def handler(request):
            seen.append(request.headers["Authorization"])
            return httpx.Response(204)

        source = StaticTokenSource(Token(access_token="abc", token_type="bearer"))
        with httpx.Client(auth=TokenAuth(source), transport=httpx.MockTransport(handler)) as client:
            client.get("https://api.spotify.com/v1/me")
            client.get("https://api.spotify.com/v1/me/playlists")
        self.assertEqual(seen, ["Bearer abc", "Bearer abc"])


if __name__ == "__main__":
    unittest.main()
