"""
Expiration and authorization rules for reading a crate.

The authorization rules form an ordered table: the first rule whose
predicate matches decides. Ownership comes first so an owner is never
challenged, and the password gate comes before open public access because
a crate can be both public and password-protected.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from .models import Crate, ResolvedIdentity
from .utils import ensure_utc

logger = logging.getLogger(__name__)


class AccessDecision(str, enum.Enum):
    ALLOW = "allow"
    DENY_EXPIRED = "expired"
    DENY_PASSWORD_REQUIRED = "password_required"
    DENY_FORBIDDEN = "forbidden"

    @property
    def allowed(self) -> bool:
        return self is AccessDecision.ALLOW


def expires_at(created_at: datetime, ttl_days: int) -> datetime:
    """Expiry instant: creation date plus *ttl_days* days."""
    return ensure_utc(created_at) + timedelta(days=ttl_days)


def is_expired(created_at: datetime, ttl_days: int, now: datetime | None = None) -> bool:
    """True iff *now* is strictly after the expiry instant."""
    if now is None:
        now = datetime.now(timezone.utc)
    return ensure_utc(now) > expires_at(created_at, ttl_days)


def is_owner(identity: ResolvedIdentity, crate: Crate) -> bool:
    # Literal match: the anonymous sentinel owns crates created anonymously.
    return identity.user_id == crate.owner_id


def _password_gated(identity: ResolvedIdentity, crate: Crate) -> bool:
    return crate.shared.public and crate.shared.password_protected


def _public(identity: ResolvedIdentity, crate: Crate) -> bool:
    return crate.shared.public


def _shared_with(identity: ResolvedIdentity, crate: Crate) -> bool:
    return identity.user_id in crate.shared.shared_with


@dataclass(frozen=True)
class Rule:
    name: str
    applies: Callable[[ResolvedIdentity, Crate], bool]
    decision: AccessDecision


RULES: tuple[Rule, ...] = (
    Rule("owner", is_owner, AccessDecision.ALLOW),
    Rule("password_gate", _password_gated, AccessDecision.DENY_PASSWORD_REQUIRED),
    Rule("public", _public, AccessDecision.ALLOW),
    Rule("shared_with", _shared_with, AccessDecision.ALLOW),
)

DEFAULT_DECISION = AccessDecision.DENY_FORBIDDEN


def decide(identity: ResolvedIdentity, crate: Crate, rules: tuple[Rule, ...] = RULES) -> AccessDecision:
    """Return the decision of the first matching rule, or ``DENY_FORBIDDEN``."""
    for rule in rules:
        if rule.applies(identity, crate):
            logger.info("Crate %s, user %s: rule %s -> %s", crate.id, identity.user_id, rule.name, rule.decision.value)
            return rule.decision

    logger.info("Crate %s, user %s: no rule matched -> %s", crate.id, identity.user_id, DEFAULT_DECISION.value)
    return DEFAULT_DECISION


def evaluate(identity: ResolvedIdentity, crate: Crate, now: datetime | None = None) -> AccessDecision:
    """Expiry first, for everyone including the owner, then the rule table."""
    if is_expired(crate.created_at, crate.ttl_days, now):
        logger.info("Crate %s expired. Created: %s, TTL: %d days", crate.id, crate.created_at.isoformat(), crate.ttl_days)
        return AccessDecision.DENY_EXPIRED
    return decide(identity, crate)
