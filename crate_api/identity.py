"""
Identity resolution for inbound requests.

A request may carry an ``Authorization: Bearer <token>`` header, a session
cookie, both, or neither. Credential sources are tried in a fixed order and
the first one that verifies wins. A source that is absent or fails to verify
is skipped; when every source has been tried the request is anonymous.
Resolution never raises, so unauthenticated requests always reach the
public-content rules.
"""

import logging
from typing import Awaitable, Callable, Protocol, Sequence

import jwt
from fastapi import Request
from fastapi.security import APIKeyCookie, HTTPBearer

from .errors import InvalidCredential
from .models import ResolvedIdentity

logger = logging.getLogger(__name__)


class TokenVerifier(Protocol):
    def verify(self, token: str) -> str:
        """Return the subject of *token* or raise ``InvalidCredential``."""
        ...


class JwtVerifier:
    """Verifies signed identity tokens with PyJWT."""

    def __init__(self, secret: str, algorithms: Sequence[str] = ("HS256",)):
        if not secret:
            raise ValueError("jwt_secret_blank")
        self.secret = secret
        self.algorithms = list(algorithms)

    def verify(self, token: str) -> str:
        if not token:
            raise InvalidCredential("token_blank")
        try:
            claims = jwt.decode(token, self.secret, algorithms=self.algorithms)
        except jwt.ExpiredSignatureError:
            raise InvalidCredential("token_expired")
        except jwt.InvalidTokenError:
            raise InvalidCredential("token_invalid")
        except Exception:
            raise InvalidCredential("token_decode_error")

        subject = claims.get("sub") or claims.get("uid")
        if not subject:
            raise InvalidCredential("token_missing_sub")
        return str(subject)


# A credential source pulls a raw token out of the request, or None if absent.
CredentialSource = Callable[[Request], Awaitable[str | None]]

_bearer = HTTPBearer(auto_error=False)


async def bearer_token(request: Request) -> str | None:
    """Token from ``Authorization: Bearer <token>``."""
    credentials = await _bearer(request)
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


def session_cookie(cookie_name: str) -> CredentialSource:
    """Build a source reading the token from the *cookie_name* cookie."""
    cookie = APIKeyCookie(name=cookie_name, auto_error=False)

    async def source(request: Request) -> str | None:
        return await cookie(request) or None
    return source


class IdentityResolver:
    """Tries credential sources in order until one verifies."""

    def __init__(self, verifier: TokenVerifier, sources: Sequence[tuple[str, CredentialSource]]):
        self.verifier = verifier
        self.sources = list(sources)

    async def resolve(self, request: Request) -> ResolvedIdentity:
        for name, source in self.sources:
            token = await source(request)
            if token is None:
                logger.debug("No %s credential present", name)
                continue
            try:
                subject = self.verifier.verify(token)
            except InvalidCredential as e:
                logger.warning("Ignoring invalid %s credential: %s", name, e)
                continue
            except Exception as e:
                # Any other verifier failure counts as an invalid credential too.
                logger.warning("Could not verify %s credential: %s", name, type(e).__name__)
                continue
            logger.info("Authenticated %s via %s", subject, name)
            return ResolvedIdentity(user_id=subject, source=name)

        logger.info("No valid credential, using anonymous access")
        return ResolvedIdentity.anonymous()


def default_resolver(verifier: TokenVerifier, cookie_name: str = "session") -> IdentityResolver:
    """Bearer header first, session cookie second."""
    return IdentityResolver(
        verifier,
        [
            ("bearer", bearer_token),
            ("session", session_cookie(cookie_name)),
        ],
    )
