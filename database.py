"""Whole-collection JSON persistence.

Every ``load`` re-reads the backing file and every ``save`` rewrites it, so
callers always follow read-modify-write-full-collection. There is no cache and
no transaction spanning two collections: a caller that touches movies and
requests saves them one after the other, and a crash in between leaves both
files valid but out of step.
"""

import asyncio
import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol

from pydantic import BaseModel, TypeAdapter, ValidationError

from errors import StoreIOError
from models import GuildSettings, MediaRecord, RequestRecord, UnshortenedLink

logger = logging.getLogger(__name__)


class Collection(str, Enum):
    MOVIES = "movies"
    REQUESTS = "requests"
    SETTINGS = "settings"
    UNSHORTENED_LINKS = "unshortened_links"


_MOVIES = TypeAdapter(list[MediaRecord])
_REQUESTS = TypeAdapter(list[RequestRecord])
_GUILDS = TypeAdapter(dict[str, GuildSettings])
_UNSHORTENED = TypeAdapter(list[UnshortenedLink])


class Backend(Protocol):
    async def read(self, collection: Collection) -> Optional[Any]: ...

    async def write(self, collection: Collection, data: Any) -> None: ...


class JsonFileBackend:
    """One ``<collection>.json`` file per collection under ``data_dir``."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, collection: Collection) -> Path:
        return self.data_dir / f"{collection.value}.json"

    async def read(self, collection: Collection) -> Optional[Any]:
        path = self.path_for(collection)
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read %s: %s", path, e)
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Corrupt JSON in %s: %s", path, e)
            return None

    async def write(self, collection: Collection, data: Any) -> None:
        path = self.path_for(collection)
        payload = json.dumps(data, indent=4, ensure_ascii=False)
        try:
            await asyncio.to_thread(self._replace, path, payload)
        except OSError as e:
            raise StoreIOError(f"Failed to write {path}: {e}") from e

    @staticmethod
    def _replace(path: Path, payload: str) -> None:
        # Readers see either the old file or the new one, never a partial write.
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, path)


class MemoryBackend:
    """Keeps serialized collections in a dict. Used by tests."""

    def __init__(self, initial: Optional[dict[Collection, Any]] = None):
        self.data: dict[Collection, str] = {}
        for collection, value in (initial or {}).items():
            self.data[collection] = json.dumps(value)

    async def read(self, collection: Collection) -> Optional[Any]:
        raw = self.data.get(collection)
        return json.loads(raw) if raw is not None else None

    async def write(self, collection: Collection, data: Any) -> None:
        self.data[collection] = json.dumps(data)


class RecordStore:
    def __init__(self, backend: Backend):
        self.backend = backend

    @classmethod
    def from_path(cls, data_dir: Path) -> "RecordStore":
        return cls(JsonFileBackend(data_dir))

    async def _load(self, collection: Collection, model: type[BaseModel]) -> list:
        """Validate each record on its own; invalid ones are logged and skipped."""
        data = await self.backend.read(collection)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.error("Unreadable %s collection, expected a list; treating as empty", collection.value)
            return []
        records = []
        for index, item in enumerate(data):
            try:
                records.append(model.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping invalid %s record at index %d: %s", collection.value, index, e)
        return records

    async def _save(self, collection: Collection, adapter: TypeAdapter, value) -> None:
        data = adapter.dump_python(value, mode="json", by_alias=True)
        await self.backend.write(collection, data)

    async def load_movies(self) -> list[MediaRecord]:
        return await self._load(Collection.MOVIES, MediaRecord)

    async def save_movies(self, movies: list[MediaRecord]) -> None:
        await self._save(Collection.MOVIES, _MOVIES, movies)

    async def load_requests(self) -> list[RequestRecord]:
        return await self._load(Collection.REQUESTS, RequestRecord)

    async def save_requests(self, requests: list[RequestRecord]) -> None:
        await self._save(Collection.REQUESTS, _REQUESTS, requests)

    async def load_guild_settings(self) -> dict[str, GuildSettings]:
        data = await self.backend.read(Collection.SETTINGS)
        if not isinstance(data, dict):
            return {}
        raw = data.get("guildSettings")
        if not isinstance(raw, dict):
            return {}
        guilds = {}
        for guild_id, item in raw.items():
            try:
                guilds[str(guild_id)] = GuildSettings.model_validate(item)
            except ValidationError as e:
                logger.warning("Skipping invalid settings for guild %s: %s", guild_id, e)
        return guilds

    async def save_guild_settings(self, guilds: dict[str, GuildSettings]) -> None:
        data = {"guildSettings": _GUILDS.dump_python(guilds, mode="json", by_alias=True)}
        await self.backend.write(Collection.SETTINGS, data)

    async def set_movie_channel(self, guild_id: str, channel_id: str) -> GuildSettings:
        guilds = await self.load_guild_settings()
        guild = guilds.setdefault(str(guild_id), GuildSettings())
        guild.movie_channel_id = str(channel_id)
        await self.save_guild_settings(guilds)
        return guild

    async def get_guild_settings(self, guild_id: str) -> Optional[GuildSettings]:
        guilds = await self.load_guild_settings()
        return guilds.get(str(guild_id))

    async def load_unshortened_links(self) -> list[UnshortenedLink]:
        return await self._load(Collection.UNSHORTENED_LINKS, UnshortenedLink)

    async def add_unshortened_link(self, name: str, link: str) -> UnshortenedLink:
        links = await self.load_unshortened_links()
        entry = UnshortenedLink(name=name, link=link)
        links.append(entry)
        await self._save(Collection.UNSHORTENED_LINKS, _UNSHORTENED, links)
        return entry
