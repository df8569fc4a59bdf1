import asyncio
import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from commands import COLOR_INFO, Services, broadcast

logger = logging.getLogger(__name__)

RECENT_YEARS = 2
MAX_RECENT_TITLES = 5

_announce_lock = asyncio.Lock()
_variants = itertools.cycle(["promo", "collection"])
_scheduler: Optional[AsyncIOScheduler] = None


def promo_payload() -> dict[str, Any]:
    embed = {
        "title": "Movie Catalog",
        "description": "**Your destination for high-quality movie links.**",
        "color": COLOR_INFO,
        "fields": [
            {
                "name": "Download Options",
                "value": "- **1080p links**: shortened\n- **4K links**: direct",
                "inline": False,
            },
            {
                "name": "Quick Commands",
                "value": "`/getmovie` `/searchmovie` `/randommovie` `/requestmovie`",
                "inline": False,
            },
        ],
        "footer": {"text": "Use /help for all commands."},
    }
    return {"embeds": [embed]}


def collection_payload(recent: list[str]) -> dict[str, Any]:
    embed: dict[str, Any] = {
        "title": "Collection Update",
        "description": "**The library keeps growing.** Discover new releases and hidden gems.",
        "color": 0x9B59B6,
        "fields": [],
    }
    if recent:
        embed["fields"].append(
            {"name": "Recent Releases", "value": "\n".join(f"- {name}" for name in recent), "inline": False}
        )
    return {"embeds": [embed]}


async def run_announcement(svc: Services, variant: Optional[str] = None) -> int:
    """Post the promotional message to every configured channel.

    Returns the number of channels reached, or -1 if a run was already in progress.
    """
    if _announce_lock.locked():
        logger.info("Announcement already in progress, skipping.")
        return -1

    async with _announce_lock:
        variant = variant or next(_variants)
        if variant == "collection":
            this_year = datetime.now(timezone.utc).year
            movies = await svc.resolver.list_movies(year_from=this_year - RECENT_YEARS)
            payload = collection_payload([m.name for m in movies[:MAX_RECENT_TITLES]])
        else:
            payload = promo_payload()

        sent = await broadcast(svc, payload)
        logger.info("Scheduled %s announcement sent to %d channel(s)", variant, sent)
        return sent


def start_scheduler(svc: Services, cron_expr: str) -> None:
    """Create and start the APScheduler with the announcement job."""
    global _scheduler

    minute, hour, day, month, day_of_week = cron_expr.split()

    _scheduler = AsyncIOScheduler()
    _scheduler.add_job(
        run_announcement,
        "cron",
        args=[svc],
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=day_of_week,
    )
    _scheduler.start()
    logger.info("Scheduler started. Cron: %s", cron_expr)


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown()
        _scheduler = None
