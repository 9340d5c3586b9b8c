from datetime import timedelta

import pytest
from starlette.requests import Request

from crate_api.errors import InvalidCredential
from crate_api.identity import (
    IdentityResolver,
    JwtVerifier,
    bearer_token,
    default_resolver,
    session_cookie,
)

from conftest import SECRET, make_token


def make_request(authorization: str | None = None, session: str | None = None) -> Request:
    headers = []
    if authorization is not None:
        headers.append((b"authorization", authorization.encode()))
    if session is not None:
        headers.append((b"cookie", f"session={session}".encode()))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers})


@pytest.fixture
def verifier():
    return JwtVerifier(SECRET, ["HS256"])


@pytest.fixture
def resolver(verifier):
    return default_resolver(verifier, "session")


class TestJwtVerifier:
    def test_valid_token(self, verifier):
        assert verifier.verify(make_token("u1")) == "u1"

    def test_uid_claim_fallback(self, verifier):
        import jwt

        token = jwt.encode({"uid": "u9"}, SECRET, algorithm="HS256")
        assert verifier.verify(token) == "u9"

    @pytest.mark.parametrize("token", ["", "BOGUS", "a.b.c"])
    def test_garbage(self, verifier, token):
        with pytest.raises(InvalidCredential):
            verifier.verify(token)

    def test_wrong_secret(self, verifier):
        with pytest.raises(InvalidCredential, match="token_invalid"):
            verifier.verify(make_token("u1", secret="other-secret"))

    def test_expired(self, verifier):
        with pytest.raises(InvalidCredential, match="token_expired"):
            verifier.verify(make_token("u1", expires_in=-60))

    def test_missing_subject(self, verifier):
        import jwt

        token = jwt.encode({"name": "nobody"}, SECRET, algorithm="HS256")
        with pytest.raises(InvalidCredential, match="token_missing_sub"):
            verifier.verify(token)

    def test_blank_secret_rejected(self):
        with pytest.raises(ValueError):
            JwtVerifier("")


class TestCredentialSources:
    async def test_bearer(self):
        assert await bearer_token(make_request(authorization="Bearer abc")) == "abc"
        assert await bearer_token(make_request(authorization="bearer abc")) == "abc"

    @pytest.mark.parametrize("header", ["", "Bearer", "Basic abc", "abc"])
    async def test_bearer_absent_or_malformed(self, header):
        assert await bearer_token(make_request(authorization=header)) is None

    async def test_cookie(self):
        source = session_cookie("session")
        assert await source(make_request(session="tok")) == "tok"
        assert await source(make_request()) is None


class Unreachable:
    """Verifier whose backend is down."""

    def verify(self, token):
        raise ConnectionError("verifier unreachable")


class TestResolver:
    async def test_bearer_wins_over_session(self, resolver):
        request = make_request(authorization=f"Bearer {make_token('u1')}", session=make_token("u2"))
        identity = await resolver.resolve(request)
        assert identity.user_id == "u1"
        assert identity.source == "bearer"

    async def test_invalid_bearer_falls_back_to_session(self, resolver):
        request = make_request(authorization="Bearer BOGUS", session=make_token("u2"))
        identity = await resolver.resolve(request)
        assert identity.user_id == "u2"
        assert identity.source == "session"

    async def test_session_only(self, resolver):
        identity = await resolver.resolve(make_request(session=make_token("u2")))
        assert identity.user_id == "u2"

    @pytest.mark.parametrize(
        "authorization, session",
        [
            (None, None),
            ("Bearer BOGUS", None),
            ("Bearer BOGUS", "BOGUS"),
            (None, "BOGUS"),
            ("Bearer " + make_token("u1", expires_in=-60), make_token("u2", secret="nope")),
        ],
    )
    async def test_anonymous_fallback(self, resolver, authorization, session):
        identity = await resolver.resolve(make_request(authorization=authorization, session=session))
        assert identity.is_anonymous
        assert identity.user_id == "anonymous"

    async def test_custom_order(self, verifier):
        resolver = IdentityResolver(
            verifier,
            [("session", session_cookie("session")), ("bearer", bearer_token)],
        )
        request = make_request(authorization=f"Bearer {make_token('u1')}", session=make_token("u2"))
        assert (await resolver.resolve(request)).user_id == "u2"

    async def test_verifier_errors_are_swallowed(self):
        class Broken:
            def verify(self, token):
                raise InvalidCredential("nope")

        resolver = default_resolver(Broken())
        identity = await resolver.resolve(make_request(authorization="Bearer x", session="y"))
        assert identity.is_anonymous

    async def test_verifier_outage_degrades_to_anonymous(self, caplog):
        resolver = default_resolver(Unreachable())
        identity = await resolver.resolve(make_request(authorization="Bearer secret-token", session="y"))
        assert identity.is_anonymous
        assert "ConnectionError" in caplog.text
        assert "secret-token" not in caplog.text

    async def test_outage_on_one_source_tries_the_next(self, verifier):
        class FlakyThenValid:
            def verify(self, token):
                if token == "flaky":
                    raise RuntimeError("boom")
                return verifier.verify(token)

        resolver = default_resolver(FlakyThenValid())
        identity = await resolver.resolve(make_request(authorization="Bearer flaky", session=make_token("u2")))
        assert identity.user_id == "u2"
