"""One coroutine per user-facing command.

Handlers orchestrate the core (resolver, request manager, catalog) and the
collaborators (TMDB, shortener, notifier). They raise ``errors.CatalogError``
subclasses for expected failures and return plain result models; turning
either into text is up to whatever surface calls them.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

import shortener
import tmdb
from catalog import CatalogManager
from config import Settings
from database import RecordStore
from errors import AlreadyCataloged, DuplicateRequest, InvalidInput, PermissionDenied, StoreIOError
from models import MediaRecord, MovieUpdate, RequestRecord, SaveMetadata
from movie_requests import RequestContext, RequestManager
from notifier import Notifier
from resolver import MovieResolver
from validation import parse_languages, parse_urls, parse_watch_links, validate_url

logger = logging.getLogger(__name__)

COLOR_INFO = 0x1E90FF
COLOR_SUCCESS = 0x00FF00
COLOR_DANGER = 0xFF4444
QUALITY_PRIORITY = ["4k", "2160p", "1440p", "1080p", "720p", "480p", "360p"]
MAX_LINK_BUTTONS = 5


@dataclass
class Services:
    settings: Settings
    store: RecordStore
    resolver: MovieResolver
    requests: RequestManager
    catalog: CatalogManager
    notifier: Notifier

    @classmethod
    def build(cls, settings: Settings, store: Optional[RecordStore] = None) -> "Services":
        store = store or RecordStore.from_path(settings.data_dir)
        resolver = MovieResolver(store)
        return cls(
            settings=settings,
            store=store,
            resolver=resolver,
            requests=RequestManager(store, resolver),
            catalog=CatalogManager(store),
            notifier=Notifier(settings.discord_bot_token),
        )


class LookupResult(BaseModel):
    movie: Optional[MediaRecord] = None
    exact: bool = False
    request: Optional[RequestRecord] = None
    request_created: bool = False
    warnings: list[str] = Field(default_factory=list)


class RequestResult(BaseModel):
    request: RequestRecord
    warnings: list[str] = Field(default_factory=list)


class SaveMovieInput(BaseModel):
    name: str
    watch_links: str
    languages: str
    screenshot_links: Optional[str] = None
    poster_url: Optional[str] = None
    media_type: Optional[Literal["movie", "tv"]] = None
    force_save: bool = False
    retry_attempts: Optional[int] = Field(default=None, ge=1, le=5)


class SaveResult(BaseModel):
    movie: MediaRecord
    fulfilled: list[RequestRecord] = Field(default_factory=list)
    requesters_notified: int = 0
    channels_announced: int = 0
    warnings: list[str] = Field(default_factory=list)


class UpdateResult(BaseModel):
    movie: MediaRecord
    changed: list[str]


class RejectResult(BaseModel):
    request: RequestRecord
    requester_notified: bool = False


class CleanupResult(BaseModel):
    kind: str
    dry_run: bool
    purged_requests: list[RequestRecord] = Field(default_factory=list)
    duplicate_movies: list[MediaRecord] = Field(default_factory=list)


def require_admin(settings: Settings, user_id: Optional[str]) -> None:
    if not user_id or str(user_id) not in settings.admin_user_ids:
        raise PermissionDenied(str(user_id))


def sorted_qualities(watch_links: dict[str, str]) -> list[str]:
    def priority(label: str) -> int:
        lowered = label.lower()
        for index, quality in enumerate(QUALITY_PRIORITY):
            if quality in lowered:
                return index
        return len(QUALITY_PRIORITY)

    return sorted(watch_links, key=priority)


def movie_payload(movie: MediaRecord, title: str, color: int = COLOR_SUCCESS) -> dict[str, Any]:
    embed: dict[str, Any] = {"title": title, "color": color, "fields": []}
    meta = movie.external_metadata
    if meta and meta.overview:
        embed["description"] = meta.overview
    thumbnail = tmdb.poster_url(meta.poster_path) if meta else None
    thumbnail = thumbnail or movie.custom_poster_url
    if thumbnail:
        embed["thumbnail"] = {"url": thumbnail}
    if movie.languages:
        embed["fields"].append({"name": "Languages", "value": ", ".join(movie.languages), "inline": True})
    if meta and meta.vote_average:
        embed["fields"].append({"name": "Rating", "value": f"{meta.vote_average}/10", "inline": True})
    if movie.screenshot_links:
        embed["image"] = {"url": movie.screenshot_links[0]}

    payload: dict[str, Any] = {"embeds": [embed]}
    buttons = [
        {"type": 2, "style": 5, "label": quality.upper(), "url": movie.watch_links[quality]}
        for quality in sorted_qualities(movie.watch_links)[:MAX_LINK_BUTTONS]
    ]
    if buttons:
        payload["components"] = [{"type": 1, "components": buttons}]
    return payload


def request_payload(request: RequestRecord) -> dict[str, Any]:
    embed = {
        "title": "New Movie Request",
        "description": f"**Requested Movie:** {request.movie_name}",
        "color": COLOR_INFO,
        "fields": [
            {"name": "Requested By", "value": f"<@{request.requested_by}>", "inline": True},
            {"name": "Server", "value": request.guild_name, "inline": True},
            {"name": "Requested At", "value": request.requested_at.isoformat(), "inline": True},
        ],
        "footer": {"text": f"Request ID: {request.id}"},
    }
    reject_button = {"type": 2, "style": 4, "label": "Reject Request", "custom_id": f"reject_{request.id}"}
    return {"embeds": [embed], "components": [{"type": 1, "components": [reject_button]}]}


def fulfilled_payload(request: RequestRecord, movie: MediaRecord) -> dict[str, Any]:
    payload = movie_payload(movie, "Your Requested Movie is Now Available!")
    payload["embeds"][0]["fields"] = [
        {"name": "Your Request", "value": request.movie_name, "inline": True},
        {"name": "Status", "value": "Fulfilled", "inline": True},
    ]
    return payload


def rejected_payload(request: RequestRecord, rejected_by: str) -> dict[str, Any]:
    embed = {
        "title": "Movie Request Rejected",
        "description": f'Your request for **"{request.movie_name}"** has been rejected.',
        "color": COLOR_DANGER,
        "fields": [{"name": "Rejected By", "value": f"<@{rejected_by}>", "inline": True}],
        "footer": {"text": "You can request another movie anytime!"},
    }
    return {"embeds": [embed]}


async def announce_request(svc: Services, request: RequestRecord) -> list[str]:
    """Post a new request to the admins' channel. Returns warnings, never raises."""
    channel_id = svc.settings.global_request_channel_id
    if not channel_id:
        return ["No global request channel is configured; administrators might not be notified."]
    if not await svc.notifier.notify_channel(channel_id, request_payload(request)):
        return ["The request could not be posted to the global request channel."]
    return []


async def get_movie(
    svc: Services, query: str, user_id: str, context: Optional[RequestContext] = None
) -> LookupResult:
    """Exact match, else best candidate, else file a request on the user's behalf."""
    movie = await svc.resolver.resolve_exact(query)
    if movie is not None:
        return LookupResult(movie=movie, exact=True)
    candidates = await svc.resolver.resolve_candidates(query)
    if candidates:
        return LookupResult(movie=candidates[0])

    try:
        request = await svc.requests.create(query, user_id, context, source="lookup")
    except DuplicateRequest as e:
        return LookupResult(request=e.existing)
    warnings = await announce_request(svc, request)
    return LookupResult(request=request, request_created=True, warnings=warnings)


async def search_movies(svc: Services, query: str, limit: int = 10) -> list[MediaRecord]:
    return (await svc.resolver.resolve_candidates(query))[:limit]


async def request_movie(
    svc: Services, movie_name: str, user_id: str, context: Optional[RequestContext] = None
) -> RequestResult:
    request = await svc.requests.create(movie_name, user_id, context)
    warnings = await announce_request(svc, request)
    return RequestResult(request=request, warnings=warnings)


async def _lookup_metadata(svc: Services, name: str, media_type: Optional[str], attempts: int):
    for attempt in range(1, attempts + 1):
        metadata = await tmdb.lookup(svc.settings.tmdb_api_key, name, media_type)
        if metadata is not None:
            return metadata
        logger.info("TMDB attempt %d/%d found nothing for %r", attempt, attempts, name)
    return None


async def _shorten_links(svc: Services, watch_links: dict[str, str]) -> tuple[dict[str, str], list[str], list[str]]:
    """Returns (links, originals of shortenable links, warnings)."""
    token = svc.settings.gplinks_api_token
    result = dict(watch_links)
    originals, warnings = [], []
    for quality, url in watch_links.items():
        if not shortener.is_shortenable(quality):
            continue
        originals.append(url)
        shortened = await shortener.shorten(token, url)
        if shortened == url:
            warnings.append(f"Could not shorten the {quality} link; saved it unshortened.")
        result[quality] = shortened
    return result, originals, warnings


async def save_movie(svc: Services, user_id: str, data: SaveMovieInput) -> SaveResult:
    require_admin(svc.settings, user_id)

    languages = parse_languages(data.languages)
    watch_links = parse_watch_links(data.watch_links)
    screenshots = parse_urls(data.screenshot_links)
    poster = validate_url(data.poster_url) if data.poster_url and data.poster_url.strip() else None

    existing = await svc.resolver.resolve_exact(data.name)
    if existing is not None:
        raise AlreadyCataloged(existing)

    attempts = data.retry_attempts or svc.settings.tmdb_retry_attempts
    metadata = await _lookup_metadata(svc, data.name, data.media_type, attempts)
    warnings: list[str] = []
    if metadata is None:
        if not data.force_save:
            raise InvalidInput("No results found on TMDB. Use force_save to save anyway.")
        warnings.append("Saved without TMDB details: no results found.")
    elif metadata.title:
        existing = await svc.resolver.resolve_exact(metadata.title)
        if existing is not None:
            raise AlreadyCataloged(existing)

    watch_links, originals, shorten_warnings = await _shorten_links(svc, watch_links)
    warnings.extend(shorten_warnings)

    movie = MediaRecord(
        id=str(metadata.tmdb_id) if metadata and metadata.tmdb_id is not None else None,
        name=(metadata.title if metadata and metadata.title else data.name.strip()),
        languages=languages,
        watch_links=watch_links,
        screenshot_links=screenshots,
        custom_poster_url=poster,
        external_metadata=metadata,
        save_metadata=SaveMetadata(
            tmdb_status="success" if metadata else "failed",
            tmdb_error=None if metadata else "No results found on TMDB.",
            force_saved=metadata is None and data.force_save,
        ),
    )
    movie = await svc.catalog.add(movie)

    for link in originals:
        try:
            await svc.store.add_unshortened_link(movie.name, link)
        except StoreIOError as e:
            logger.warning("Failed to persist unshortened link for %r: %s", movie.name, e)
            warnings.append("Could not record the original 1080p link.")

    result = await on_movie_saved(svc, movie)
    result.warnings = warnings + result.warnings
    return result


async def on_movie_saved(svc: Services, movie: MediaRecord) -> SaveResult:
    """Fulfil matching requests, DM their requesters, then announce to every guild.

    The movie and the requests are saved separately; a crash in between leaves
    the requests pending until the next matching save.
    """
    fulfilled = await svc.requests.fulfill_matching(movie)
    warnings: list[str] = []

    dm_results = await asyncio.gather(
        *(svc.notifier.notify_user(r.requested_by, fulfilled_payload(r, movie)) for r in fulfilled),
        return_exceptions=True,
    )
    notified = 0
    for request, outcome in zip(fulfilled, dm_results):
        if outcome is True:
            notified += 1
        else:
            if isinstance(outcome, Exception):
                logger.warning("Failed to notify requester %s: %s", request.requested_by, outcome)
            warnings.append(f"Could not notify requester {request.requested_by}.")

    announced = await broadcast(svc, movie_payload(movie, f"New Movie Added: {movie.name}"))
    return SaveResult(
        movie=movie,
        fulfilled=fulfilled,
        requesters_notified=notified,
        channels_announced=announced,
        warnings=warnings,
    )


async def broadcast(svc: Services, payload: dict[str, Any]) -> int:
    """Send ``payload`` to every configured guild channel. Returns the success count."""
    guilds = await svc.store.load_guild_settings()
    targets = [(gid, g.movie_channel_id) for gid, g in guilds.items() if g.movie_channel_id]
    if not targets:
        logger.info("No guild channels configured, nothing to send")
        return 0

    results = await asyncio.gather(
        *(svc.notifier.notify_channel(channel_id, payload) for _, channel_id in targets),
        return_exceptions=True,
    )
    sent = 0
    for (guild_id, channel_id), outcome in zip(targets, results):
        if outcome is True:
            sent += 1
        elif isinstance(outcome, Exception):
            logger.warning("Failed to send to guild %s channel %s: %s", guild_id, channel_id, outcome)
    logger.info("Sent to %d of %d guild channel(s)", sent, len(targets))
    return sent


async def update_movie(svc: Services, user_id: str, search_name: str, changes: MovieUpdate) -> UpdateResult:
    require_admin(svc.settings, user_id)
    movie, changed = await svc.catalog.update(search_name, changes, svc.settings.available_languages)
    return UpdateResult(movie=movie, changed=changed)


async def delete_movie(svc: Services, user_id: str, name_or_id: str) -> MediaRecord:
    require_admin(svc.settings, user_id)
    movie = await svc.resolver.resolve_exact(name_or_id)
    if movie is None:
        return await svc.catalog.delete(name_or_id)
    if movie.id is None:
        return await svc.catalog.delete_unidentified(movie.name)
    return await svc.catalog.delete(movie.id)


async def list_requests(svc: Services, user_id: str) -> list[RequestRecord]:
    require_admin(svc.settings, user_id)
    pending = await svc.requests.list_pending()
    return sorted(pending, key=lambda r: r.requested_at)


async def reject_request(svc: Services, user_id: str, request_id: str) -> RejectResult:
    require_admin(svc.settings, user_id)
    request = await svc.requests.reject(request_id, user_id)
    notified = await svc.notifier.notify_user(request.requested_by, rejected_payload(request, user_id))
    return RejectResult(request=request, requester_notified=notified)


async def cleanup(
    svc: Services,
    user_id: str,
    kind: Literal["old_requests", "duplicate_movies", "full"],
    dry_run: bool = False,
) -> CleanupResult:
    require_admin(svc.settings, user_id)
    result = CleanupResult(kind=kind, dry_run=dry_run)
    if kind in ("old_requests", "full"):
        purge = await svc.requests.purge_stale(svc.settings.stale_request_days, dry_run=dry_run)
        result.purged_requests = purge.purged
    if kind in ("duplicate_movies", "full"):
        sweep = await svc.catalog.remove_duplicates(dry_run=dry_run)
        result.duplicate_movies = sweep.removed
    return result


async def set_movie_channel(svc: Services, user_id: str, guild_id: str, channel_id: str):
    require_admin(svc.settings, user_id)
    return await svc.store.set_movie_channel(guild_id, channel_id)
