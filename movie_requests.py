"""Request lifecycle: pending -> fulfilled, pending -> rejected (removed).

Duplicate detection is an exact, case-insensitive title comparison against
pending requests. Fulfillment is looser: a pending request is fulfilled when
its title and the new record's name contain one another.
"""

import logging
import uuid
from datetime import timedelta
from typing import NamedTuple, Optional

from database import RecordStore
from errors import AlreadyCataloged, AlreadyProcessed, DuplicateRequest, InvalidInput, NotFound
from models import (
    DM_CONTEXT_ID,
    DM_CONTEXT_NAME,
    MediaRecord,
    RequestRecord,
    RequestStatus,
    utcnow,
)
from resolver import MovieResolver

logger = logging.getLogger(__name__)


class RequestContext(NamedTuple):
    guild_id: str = DM_CONTEXT_ID
    guild_name: str = DM_CONTEXT_NAME


class PurgeResult(NamedTuple):
    count: int
    purged: list[RequestRecord]


def titles_match(requested: str, cataloged: str) -> bool:
    a, b = requested.strip().lower(), cataloged.strip().lower()
    if not a or not b:
        return False
    return a in b or b in a


class RequestManager:
    def __init__(self, store: RecordStore, resolver: Optional[MovieResolver] = None):
        self.store = store
        self.resolver = resolver or MovieResolver(store)

    async def create(
        self,
        movie_name: str,
        requested_by: str,
        context: Optional[RequestContext] = None,
        source: str = "request",
    ) -> RequestRecord:
        title = movie_name.strip()
        if not title:
            raise InvalidInput("Movie name must not be empty.")

        existing_movie = await self.resolver.resolve_exact(title)
        if existing_movie is not None:
            raise AlreadyCataloged(existing_movie)

        requests = await self.store.load_requests()
        for request in requests:
            if request.is_pending and request.movie_name.strip().lower() == title.lower():
                raise DuplicateRequest(request)

        context = context or RequestContext()
        record = RequestRecord(
            id=str(uuid.uuid4()),
            movie_name=title,
            requested_by=str(requested_by),
            guild_id=str(context.guild_id),
            guild_name=context.guild_name,
            source=source,
        )
        requests.append(record)
        await self.store.save_requests(requests)
        logger.info("Request %s created for %r by %s", record.id, title, record.requested_by)
        return record

    async def get(self, request_id: str) -> RequestRecord:
        for request in await self.store.load_requests():
            if request.id == str(request_id):
                return request
        raise NotFound("Request", str(request_id))

    async def reject(self, request_id: str, rejected_by: str) -> RequestRecord:
        """Remove a pending request and return it as it was before removal."""
        requests = await self.store.load_requests()
        target = next((r for r in requests if r.id == str(request_id)), None)
        if target is None:
            raise NotFound("Request", str(request_id))
        if not target.is_pending:
            raise AlreadyProcessed(target)

        await self.store.save_requests([r for r in requests if r.id != target.id])
        logger.info("Request %s for %r rejected by %s", target.id, target.movie_name, rejected_by)
        return target

    async def fulfill_matching(self, movie: MediaRecord) -> list[RequestRecord]:
        requests = await self.store.load_requests()
        now = utcnow()
        fulfilled = []
        for request in requests:
            if request.is_pending and titles_match(request.movie_name, movie.name):
                request.status = RequestStatus.FULFILLED
                request.fulfilled_at = now
                request.fulfilled_with = movie.name
                request.updated_at = now
                fulfilled.append(request)

        if fulfilled:
            await self.store.save_requests(requests)
            logger.info("Fulfilled %d pending request(s) with %r", len(fulfilled), movie.name)
        return fulfilled

    async def list_pending(self) -> list[RequestRecord]:
        return [r for r in await self.store.load_requests() if r.is_pending]

    async def list_all(self) -> list[RequestRecord]:
        return await self.store.load_requests()

    async def purge_stale(self, max_age_days: int, dry_run: bool = False) -> PurgeResult:
        """Drop non-pending requests older than ``max_age_days``. Pending ones always stay."""
        if max_age_days < 0:
            raise InvalidInput("max_age_days must not be negative.")
        cutoff = utcnow() - timedelta(days=max_age_days)
        requests = await self.store.load_requests()

        purged = [r for r in requests if not r.is_pending and r.requested_at < cutoff]
        if purged and not dry_run:
            purged_ids = {r.id for r in purged}
            await self.store.save_requests([r for r in requests if r.id not in purged_ids])
            logger.info("Purged %d stale request(s) older than %d days", len(purged), max_age_days)
        return PurgeResult(count=len(purged), purged=purged)
