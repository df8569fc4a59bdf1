"""Free-text lookup over the movie catalog.

``resolve_exact`` tries name, then alias, then id, all case-insensitive.
``resolve_candidates`` returns substring matches ranked by, in order:
exact name, name starts with the query, earlier position of the query in the
name, shorter name. Python's sort is stable, so records that tie on every key
keep their file order.
"""

import random
from typing import Optional, Union

from database import RecordStore
from models import MediaRecord

FEATURED_MIN_RATING = 7.0


def _normalize(query: Union[str, int, None]) -> str:
    if query is None:
        return ""
    return str(query).strip().lower()


def find_exact(movies: list[MediaRecord], query: Union[str, int]) -> Optional[MediaRecord]:
    needle = _normalize(query)
    if not needle:
        return None

    for movie in movies:
        if movie.name.lower() == needle:
            return movie
    for movie in movies:
        if any(alias.lower() == needle for alias in movie.aliases):
            return movie
    for movie in movies:
        if movie.id is not None and movie.id.lower() == needle:
            return movie
    return None


def _is_candidate(movie: MediaRecord, needle: str) -> bool:
    name = movie.name.lower()
    if needle in name:
        return True
    if any(needle in alias.lower() for alias in movie.aliases):
        return True
    title = (movie.external_metadata.title or "").lower() if movie.external_metadata else ""
    return bool(title) and needle in title and title != name


def rank_key(movie: MediaRecord, needle: str) -> tuple[bool, bool, int, int]:
    name = movie.name.lower()
    # Alias-only and title-only matches have no position in the name and get -1.
    return (name != needle, not name.startswith(needle), name.find(needle), len(name))


def find_candidates(movies: list[MediaRecord], query: Union[str, int]) -> list[MediaRecord]:
    needle = _normalize(query)
    if not needle:
        return []
    candidates = [movie for movie in movies if _is_candidate(movie, needle)]
    candidates.sort(key=lambda movie: rank_key(movie, needle))
    return candidates


def filter_language(movies: list[MediaRecord], language: str) -> list[MediaRecord]:
    """Records in ``language``, best rated first.

    Records without languages fall back to the metadata's original language.
    """
    wanted = language.strip().lower()
    if not wanted:
        return []
    matches = []
    for movie in movies:
        languages = [lang.lower() for lang in movie.languages]
        if not languages and movie.external_metadata and movie.external_metadata.original_language:
            languages = [movie.external_metadata.original_language.lower()]
        if any(wanted in lang for lang in languages):
            matches.append(movie)
    matches.sort(key=lambda m: -(m.rating or 0))
    return matches


def filter_rating(movies: list[MediaRecord], min_rating: float) -> list[MediaRecord]:
    matches = [m for m in movies if m.rating is not None and m.rating >= min_rating]
    matches.sort(key=lambda m: -m.rating)
    return matches


def filter_year(
    movies: list[MediaRecord], year_from: Optional[int] = None, year_to: Optional[int] = None
) -> list[MediaRecord]:
    """Inclusive release-year range; records without a release date never match."""
    matches = []
    for movie in movies:
        year = movie.release_year
        if year is None:
            continue
        if year_from is not None and year < year_from:
            continue
        if year_to is not None and year > year_to:
            continue
        matches.append(movie)
    matches.sort(key=lambda m: (-m.release_year, m.name.lower()))
    return matches


class MovieResolver:
    def __init__(self, store: RecordStore):
        self.store = store

    async def resolve_exact(self, query: Union[str, int]) -> Optional[MediaRecord]:
        return find_exact(await self.store.load_movies(), query)

    async def resolve_candidates(self, query: Union[str, int]) -> list[MediaRecord]:
        return find_candidates(await self.store.load_movies(), query)

    async def list_movies(
        self,
        language: Optional[str] = None,
        min_rating: Optional[float] = None,
        year_from: Optional[int] = None,
        year_to: Optional[int] = None,
    ) -> list[MediaRecord]:
        """All records sorted by name, narrowed by whichever filters are given.

        The last filter applied decides the order.
        """
        movies = sorted(await self.store.load_movies(), key=lambda m: m.name.lower())
        if language:
            movies = filter_language(movies, language)
        if min_rating is not None:
            movies = filter_rating(movies, min_rating)
        if year_from is not None or year_to is not None:
            movies = filter_year(movies, year_from, year_to)
        return movies

    async def random_movie(self, featured_only: bool = False) -> Optional[MediaRecord]:
        movies = await self.store.load_movies()
        if featured_only:
            movies = [
                m
                for m in movies
                if (m.rating or 0) >= FEATURED_MIN_RATING
                and m.external_metadata
                and m.external_metadata.overview
            ]
        if not movies:
            return None
        return random.choice(movies)
