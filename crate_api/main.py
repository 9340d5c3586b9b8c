import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import database as db
from . import storage
from .identity import JwtVerifier, default_resolver
from .routes.crates import CrateRouter
from .routes.metrics import router as metrics_router

# Configuration from environment variables
VERSION = "1.0.0"
JWT_SECRET = os.getenv("JWT_SECRET", "")  # required: create_app() refuses a blank secret
JWT_ALGORITHMS = [a.strip() for a in os.getenv("JWT_ALGORITHMS", "HS256").split(",") if a.strip()]
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")
ROOT_PATH = os.getenv("ROOT_PATH", "/api")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Initialise the SQLite database and the blob directory
    await db.init_db()
    db.FILES_DIR.mkdir(parents=True, exist_ok=True)
    logger.info("Crate API %s ready, data dir %s", VERSION, db.DATABASE_DIR)
    yield


def create_app(
    jwt_secret: str = JWT_SECRET,
    jwt_algorithms: list[str] = JWT_ALGORITHMS,
    session_cookie_name: str = SESSION_COOKIE_NAME,
    root_path: str = ROOT_PATH,
) -> FastAPI:
    app = FastAPI(title="Crate API", version=VERSION, lifespan=lifespan, root_path=root_path)
    app.add_middleware(CORSMiddleware, allow_origins=[], allow_credentials=False, allow_methods=["GET"], allow_headers=["*"])

    # Initialize router with its collaborators
    crate_router = CrateRouter(
        resolver=default_resolver(JwtVerifier(jwt_secret, jwt_algorithms), session_cookie_name),
        metadata=db,
        content=storage,
    )

    # Include routers
    app.include_router(crate_router.router)
    app.include_router(metrics_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()


def run():
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run("crate_api.main:app", host=HOST, port=PORT, log_level=LOG_LEVEL.lower())
