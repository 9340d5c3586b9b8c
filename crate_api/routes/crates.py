import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from starlette.background import BackgroundTask

from .. import access
from .. import responses
from ..errors import ContentUnavailable
from ..identity import IdentityResolver
from ..models import Crate, CrateInfo, ResolvedIdentity
from ..utils import CRATE_ID_PATTERN, format_time

logger = logging.getLogger(__name__)

DOWNLOADS_METRIC = "downloads"


class CrateRouter:
    """Read path for crates.

    ``metadata`` must provide the async metadata-store calls used below
    (``get_crate_metadata``, ``get_user_crates`` and the download accounting
    calls); ``content`` must provide ``get_crate_content``. In production
    these are the ``database`` and ``storage`` modules.
    """

    def __init__(self, resolver: IdentityResolver, metadata, content):
        self.resolver = resolver
        self.metadata = metadata
        self.content = content

        self.router = APIRouter(prefix="/crates", tags=["Crates"])
        self.router.add_api_route("", self.list_own, methods=["GET"], response_model=None)
        self.router.add_api_route("/{crate_id}", self.info, methods=["GET"], response_model=None)
        self.router.add_api_route("/{crate_id}/content", self.content_of, methods=["GET"], response_model=None)

    async def _lookup(self, crate_id: str) -> Crate | None:
        # Anything outside the ID alphabet cannot name a stored crate.
        if not CRATE_ID_PATTERN.fullmatch(crate_id):
            return None
        crate = await self.metadata.get_crate_metadata(crate_id)
        if crate is None:
            logger.info("Crate not found with ID: %s", crate_id)
        else:
            logger.debug(
                "Found crate: %s, Owner: %s, Public: %s", crate.title, crate.owner_id, crate.shared.public
            )
        return crate

    async def content_of(self, crate_id: str, request: Request):
        """Return the raw bytes of a crate if the caller may read it."""
        logger.info("Accessing content for crate ID: %s", crate_id)
        try:
            identity = await self.resolver.resolve(request)
            crate = await self._lookup(crate_id)
            if crate is None:
                return responses.not_found()

            decision = access.evaluate(identity, crate)
            if not decision.allowed:
                return responses.denial_response(decision)

            buffer, crate = await self.content.get_crate_content(crate_id)
        except ContentUnavailable as e:
            logger.error("Error retrieving crate content: %s", e)
            return responses.server_error()
        except Exception:
            logger.exception("Error retrieving crate content for %s", crate_id)
            return responses.server_error()

        logger.debug("Content retrieved successfully, size: %d bytes", len(buffer))
        return responses.content_response(
            buffer,
            crate,
            background=BackgroundTask(self._record_download, crate_id, identity),
        )

    async def info(self, crate_id: str, request: Request):
        """Metadata view of a crate, gated exactly like its content."""
        try:
            identity = await self.resolver.resolve(request)
            crate = await self._lookup(crate_id)
            if crate is None:
                return responses.not_found()

            decision = access.evaluate(identity, crate)
            if not decision.allowed:
                return responses.denial_response(decision)
        except Exception:
            logger.exception("Error retrieving crate metadata for %s", crate_id)
            return responses.server_error("Failed to retrieve crate")

        return self._crate_info(crate, identity)

    async def list_own(self, request: Request):
        """List the caller's own crates, newest first (expired ones included)."""
        identity = await self.resolver.resolve(request)
        if identity.is_anonymous:
            return responses.error_response(401, "Authentication required")
        try:
            crates = await self.metadata.get_user_crates(identity.user_id)
        except Exception:
            logger.exception("Error listing crates for %s", identity.user_id)
            return responses.server_error("Failed to list crates")
        return [self._crate_info(c, identity) for c in crates]

    @staticmethod
    def _crate_info(crate: Crate, identity: ResolvedIdentity) -> CrateInfo:
        remaining = (
            access.expires_at(crate.created_at, crate.ttl_days) - datetime.now(timezone.utc)
        ).total_seconds()
        return CrateInfo(
            id=crate.id,
            title=crate.title,
            mime_type=crate.mime_type,
            size=crate.size,
            created_at=crate.created_at,
            ttl_days=crate.ttl_days,
            expires_in=format_time(remaining),
            public=crate.shared.public,
            password_protected=crate.shared.password_protected,
            is_owner=access.is_owner(identity, crate),
            download_count=crate.download_count,
        )

    async def _record_download(self, crate_id: str, identity: ResolvedIdentity) -> None:
        """Download accounting. Runs after the body is sent; failures are logged and dropped."""
        try:
            count = await self.metadata.increment_download_count(crate_id)
            await self.metadata.increment_metric(DOWNLOADS_METRIC)
            await self.metadata.log_event(
                "crate_downloaded",
                {"crate_id": crate_id, "user_id": identity.user_id, "download_count": count},
            )
        except Exception as e:
            logger.warning("Failed to record download of crate %s: %s", crate_id, e)
