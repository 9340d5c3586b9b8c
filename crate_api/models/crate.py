from datetime import datetime

from pydantic import BaseModel, Field


class SharedSettings(BaseModel):
    """Visibility configuration of a crate."""
    public: bool = Field(False, description="Whether non-owners may access the crate at all")
    password_protected: bool = Field(False, description="Whether public access also requires a password")
    shared_with: list[str] = Field(default=[], description="Identities granted access regardless of visibility")


class Crate(BaseModel):
    """Metadata record of a stored crate."""
    id: str = Field(..., description="Crate ID")
    owner_id: str = Field(..., description="Identity of the creating user")
    title: str = Field("", description="Display name")
    mime_type: str = Field("application/octet-stream", description="Content type of the stored bytes")
    created_at: datetime = Field(..., description="Creation time (UTC)")
    ttl_days: int = Field(..., ge=0, description="Days the crate remains valid after creation")
    shared: SharedSettings = Field(default_factory=SharedSettings)
    size: int = Field(0, ge=0, description="Content size in bytes")
    download_count: int = Field(0, ge=0, description="Number of successful content reads")


class CrateInfo(BaseModel):
    """Response model for the crate metadata view."""
    id: str
    title: str
    mime_type: str
    size: int
    created_at: datetime
    ttl_days: int
    expires_in: str = Field(..., description="Remaining time")
    public: bool
    password_protected: bool
    is_owner: bool = False
    download_count: int = 0
