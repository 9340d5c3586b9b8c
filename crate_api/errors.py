class CrateError(Exception):
    """Base class for errors raised by the crate service."""


class InvalidCredential(CrateError):
    """A bearer or session token is malformed, expired or forged."""


class ContentUnavailable(CrateError):
    """The blob or its metadata record could not be read after access was granted."""

    def __init__(self, crate_id: str, reason: str):
        super().__init__(f"Content for crate {crate_id} is unavailable: {reason}")
        self.crate_id = crate_id
        self.reason = reason
