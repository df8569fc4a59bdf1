import logging
import uuid
from typing import NamedTuple, Optional

from database import RecordStore
from errors import AlreadyCataloged, InvalidInput, NotFound
from models import MediaRecord, MovieUpdate, utcnow
from resolver import find_exact
from validation import (
    check_languages,
    normalize_csv,
    parse_languages,
    parse_urls,
    parse_watch_links,
    split_csv,
    validate_url,
)

logger = logging.getLogger(__name__)


class DuplicateSweep(NamedTuple):
    count: int
    removed: list[MediaRecord]


def next_movie_id(movies: list[MediaRecord]) -> str:
    numeric = [int(m.id) for m in movies if m.id is not None and m.id.isdigit()]
    return str(max(numeric, default=0) + 1)


class CatalogManager:
    def __init__(self, store: RecordStore):
        self.store = store

    async def add(self, movie: MediaRecord) -> MediaRecord:
        if not movie.languages:
            raise InvalidInput("You must provide at least one valid language.")

        movies = await self.store.load_movies()
        taken = {m.id for m in movies}
        if movie.id is None:
            movie.id = next_movie_id(movies)
        elif movie.id in taken:
            # Two entries can share an external id after manual edits; keep ids distinct.
            movie.id = f"custom_{uuid.uuid4().hex[:12]}"
        if movie.added_at is None:
            movie.added_at = utcnow()

        movies.append(movie)
        await self.store.save_movies(movies)
        logger.info("Saved movie %r with id %s", movie.name, movie.id)
        return movie

    async def get(self, movie_id: str) -> MediaRecord:
        for movie in await self.store.load_movies():
            if movie.id == str(movie_id):
                return movie
        raise NotFound("Movie", str(movie_id))

    async def update(
        self,
        search_name: str,
        changes: MovieUpdate,
        allowed_languages: Optional[list[str]] = None,
    ) -> tuple[MediaRecord, list[str]]:
        """Apply a partial update to the record ``search_name`` resolves to.

        Returns the updated record and the names of the fields that changed.
        """
        movies = await self.store.load_movies()
        movie = find_exact(movies, search_name)
        if movie is None:
            raise NotFound("Movie", search_name)

        fields: dict = {}

        if changes.languages is not None:
            fields["languages"] = parse_languages(changes.languages, allowed_languages)

        if changes.add_languages is not None or changes.remove_languages is not None:
            current = list(fields.get("languages", movie.languages))
            added = normalize_csv(changes.add_languages)
            removed = normalize_csv(changes.remove_languages)
            check_languages(added + removed, allowed_languages)
            for lang in added:
                if lang not in current:
                    current.append(lang)
            current = [lang for lang in current if lang not in removed]
            if not current:
                raise InvalidInput("A movie must keep at least one language.")
            fields["languages"] = current

        if changes.poster_url is not None:
            poster = changes.poster_url.strip()
            fields["custom_poster_url"] = validate_url(poster) if poster else None

        if changes.watch_links is not None:
            fields["watch_links"] = parse_watch_links(changes.watch_links, add_scheme=True)

        if changes.add_screenshot_links is not None or changes.remove_screenshot_links is not None:
            added = parse_urls(changes.add_screenshot_links)
            removed = split_csv(changes.remove_screenshot_links)
            screenshots = list(movie.screenshot_links)
            for link in added:
                if link not in screenshots:
                    screenshots.append(link)
            fields["screenshot_links"] = [link for link in screenshots if link not in removed]

        if changes.new_name is not None:
            new_name = changes.new_name.strip()
            if not new_name:
                raise InvalidInput("New name must not be empty.")
            if new_name != movie.name:
                if new_name.lower() != movie.name.lower():
                    clash = find_exact(movies, new_name)
                    if clash is not None and clash is not movie:
                        raise AlreadyCataloged(clash)
                fields["name"] = new_name

        if changes.add_aliases is not None or changes.remove_aliases is not None:
            removed = normalize_csv(changes.remove_aliases)
            aliases = list(movie.aliases)
            for alias in normalize_csv(changes.add_aliases):
                if alias not in aliases:
                    aliases.append(alias)
            fields["aliases"] = [alias for alias in aliases if alias not in removed]

        if not fields:
            raise InvalidInput("No changes were provided.")

        for key, value in fields.items():
            setattr(movie, key, value)
        movie.updated_at = utcnow()
        await self.store.save_movies(movies)
        logger.info("Updated movie %s (%s)", movie.id, ", ".join(fields))
        return movie, list(fields)

    async def delete(self, movie_id: str) -> MediaRecord:
        movies = await self.store.load_movies()
        target = next((m for m in movies if m.id == str(movie_id)), None)
        if target is None:
            raise NotFound("Movie", str(movie_id))
        await self.store.save_movies([m for m in movies if m is not target])
        logger.info("Deleted movie %r (id %s)", target.name, target.id)
        return target

    async def delete_unidentified(self, name: str) -> MediaRecord:
        """Remove a hand-added record that has no id, matched by exact name."""
        movies = await self.store.load_movies()
        wanted = name.strip().lower()
        target = next((m for m in movies if m.id is None and m.name.lower() == wanted), None)
        if target is None:
            raise NotFound("Movie", name)
        await self.store.save_movies([m for m in movies if m is not target])
        logger.info("Deleted movie %r (no id)", target.name)
        return target

    async def remove_duplicates(self, dry_run: bool = False) -> DuplicateSweep:
        """Keep the first record for each case-insensitive name, drop the rest."""
        movies = await self.store.load_movies()
        seen: set[str] = set()
        kept, removed = [], []
        for movie in movies:
            key = movie.name.lower()
            if key in seen:
                removed.append(movie)
            else:
                seen.add(key)
                kept.append(movie)

        if removed and not dry_run:
            await self.store.save_movies(kept)
            logger.info("Removed %d duplicate movie(s)", len(removed))
        return DuplicateSweep(count=len(removed), removed=removed)
