"""Shared fixtures: a throwaway data directory, token helpers and an app client."""
import asyncio
import os
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

SECRET = "test-secret"

# crate_api.main builds its app at import time and refuses a blank secret.
os.environ.setdefault("JWT_SECRET", SECRET)

from crate_api import database as db
from crate_api import storage
from crate_api.main import create_app
from crate_api.models import Crate, SharedSettings


def make_token(subject: str, secret: str = SECRET, expires_in: int = 3600, **claims) -> str:
    """Sign an identity token the way the identity provider would."""
    now = datetime.now(timezone.utc)
    payload = {"sub": subject, "iat": now, "exp": now + timedelta(seconds=expires_in), **claims}
    return jwt.encode(payload, secret, algorithm="HS256")


def make_crate(
    crate_id: str = "c1",
    owner_id: str = "u1",
    public: bool = False,
    password_protected: bool = False,
    shared_with: list[str] | None = None,
    age: timedelta = timedelta(days=1),
    ttl_days: int = 7,
    **kwargs,
) -> Crate:
    fields = dict(
        id=crate_id,
        owner_id=owner_id,
        title="notes.txt",
        mime_type="text/plain",
        created_at=datetime.now(timezone.utc) - age,
        ttl_days=ttl_days,
        shared=SharedSettings(
            public=public,
            password_protected=password_protected,
            shared_with=shared_with or [],
        ),
    )
    fields.update(kwargs)
    return Crate(**fields)


@pytest.fixture
def secret():
    return SECRET


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DATABASE_DIR", tmp_path)
    monkeypatch.setattr(db, "DATABASE_PATH", tmp_path / "crates.db")
    monkeypatch.setattr(db, "FILES_DIR", tmp_path / "files")
    return tmp_path


@pytest.fixture
async def store(data_dir):
    await db.init_db()
    return db


@pytest.fixture
def seed(data_dir):
    """Store a crate and its content from a synchronous test."""
    asyncio.run(db.init_db())

    def _seed(crate: Crate, content: bytes = b"hello crate") -> Crate:
        crate = crate.model_copy(update={"size": len(content)})
        asyncio.run(db.store_crate(crate))
        storage.write_content(crate.id, content)
        return crate

    return _seed


@pytest.fixture
def client(data_dir, secret):
    app = create_app(jwt_secret=secret, jwt_algorithms=["HS256"], session_cookie_name="session", root_path="")
    with TestClient(app) as c:
        yield c
