import asyncio
import logging
from typing import Any, Optional

import httpx

from models import ExternalMetadata, Genre

logger = logging.getLogger(__name__)

TMDB_BASE = "https://api.themoviedb.org/3"
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p"

MEDIA_TYPES = ("movie", "tv")
RETRYABLE_STATUS = (429, 500, 502, 503, 504)
MAX_RETRIES = 3
RETRY_BASE_DELAY = 2.0

_semaphore = asyncio.Semaphore(10)


def poster_url(poster_path: Optional[str], size: str = "w500") -> Optional[str]:
    return f"{TMDB_IMAGE_BASE}/{size}{poster_path}" if poster_path else None


async def _get_json(
    client: httpx.AsyncClient,
    path: str,
    params: dict[str, Any],
    max_retries: int = MAX_RETRIES,
) -> dict[str, Any]:
    """GET with exponential backoff on network errors and 429/5xx. 4xx raises at once."""
    for attempt in range(1, max_retries + 1):
        try:
            async with _semaphore:
                response = await client.get(f"{TMDB_BASE}{path}", params=params)
            if response.status_code not in RETRYABLE_STATUS or attempt == max_retries:
                response.raise_for_status()
                return response.json()
            logger.warning("TMDB %s returned %d (attempt %d/%d)", path, response.status_code, attempt, max_retries)
        except httpx.TransportError as e:
            if attempt == max_retries:
                raise
            logger.warning("TMDB %s failed: %s (attempt %d/%d)", path, e, attempt, max_retries)
        await asyncio.sleep(RETRY_BASE_DELAY * 2 ** (attempt - 1))
    raise RuntimeError("unreachable")


async def get_details(
    client: httpx.AsyncClient, api_key: str, media_type: str, tmdb_id: int
) -> dict[str, Any]:
    data = await _get_json(client, f"/{media_type}/{tmdb_id}", {"api_key": api_key})
    return {**data, "media_type": media_type}


async def search(
    client: httpx.AsyncClient, api_key: str, query: str, media_type: Optional[str] = None
) -> Optional[dict[str, Any]]:
    """Search TMDB and return the best hit: an exact title match, else the first result."""
    endpoint = f"/search/{media_type}" if media_type in MEDIA_TYPES else "/search/multi"
    data = await _get_json(
        client,
        endpoint,
        {"api_key": api_key, "query": query, "include_adult": "false"},
    )
    results = data.get("results", [])
    if not results:
        return None

    wanted = query.lower()
    best = next(
        (
            item
            for item in results
            if (item.get("title") or "").lower() == wanted or (item.get("name") or "").lower() == wanted
        ),
        results[0],
    )
    if media_type in MEDIA_TYPES:
        best = {**best, "media_type": media_type}
    return best


def to_metadata(details: dict[str, Any]) -> ExternalMetadata:
    return ExternalMetadata(
        tmdb_id=details.get("id"),
        title=details.get("title") or details.get("name"),
        overview=details.get("overview") or "No description available.",
        release_date=details.get("release_date") or details.get("first_air_date") or None,
        vote_average=details.get("vote_average"),
        genres=[Genre(id=g.get("id"), name=g["name"]) for g in details.get("genres", []) if g.get("name")],
        poster_path=details.get("poster_path"),
        backdrop_path=details.get("backdrop_path"),
        original_language=details.get("original_language"),
        media_type=details.get("media_type") or "unknown",
    )


async def _lookup_by_id(
    client: httpx.AsyncClient, api_key: str, tmdb_id: int, media_type: Optional[str]
) -> Optional[dict[str, Any]]:
    # A hint is tried first; the other endpoint is the fallback.
    order = [media_type] + [t for t in MEDIA_TYPES if t != media_type] if media_type in MEDIA_TYPES else list(MEDIA_TYPES)
    for kind in order:
        try:
            return await get_details(client, api_key, kind, tmdb_id)
        except httpx.HTTPStatusError as e:
            if e.response.status_code != 404:
                raise
            logger.info("TMDB %s id %d not found", kind, tmdb_id)
    return None


async def lookup(
    api_key: str,
    title: str,
    media_type: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[ExternalMetadata]:
    """Resolve a title (or a numeric TMDB id) to metadata. Never raises; None means not found."""
    if not api_key:
        logger.warning("TMDB_API_KEY is not set, skipping lookup for %r", title)
        return None

    query = title.strip()
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=30.0, headers={"Accept": "application/json"})
    try:
        if query.isdigit():
            details = await _lookup_by_id(client, api_key, int(query), media_type)
        else:
            best = await search(client, api_key, query, media_type)
            if best is None:
                return None
            kind = best.get("media_type")
            if kind not in MEDIA_TYPES:
                logger.warning("Unsupported TMDB media type %r for %r", kind, query)
                return None
            details = await get_details(client, api_key, kind, best["id"])
        return to_metadata(details) if details else None
    except (httpx.HTTPError, ValueError, KeyError) as e:
        logger.warning("TMDB lookup failed for %r: %s", query, e)
        return None
    finally:
        if owns_client:
            await client.aclose()
