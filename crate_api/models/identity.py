from pydantic import BaseModel, Field

ANONYMOUS = "anonymous"


class ResolvedIdentity(BaseModel, frozen=True):
    """Outcome of credential resolution: a verified subject or the anonymous sentinel."""
    user_id: str = Field(ANONYMOUS, description="Verified subject, or the anonymous sentinel")
    source: str | None = Field(None, description="Name of the credential that produced the identity")

    @property
    def is_anonymous(self) -> bool:
        return self.source is None

    @classmethod
    def anonymous(cls) -> "ResolvedIdentity":
        return cls()
