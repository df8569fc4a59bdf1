from pathlib import Path
from typing import Optional

import pytest

from commands import Services
from config import Settings
from database import MemoryBackend, RecordStore
from models import ExternalMetadata, MediaRecord


class FakeNotifier:
    """Records every message instead of talking to Discord."""

    def __init__(self, fail_for: Optional[set[str]] = None):
        self.fail_for = fail_for or set()
        self.user_messages: list[tuple[str, dict]] = []
        self.channel_messages: list[tuple[str, dict]] = []

    async def notify_user(self, user_id: str, payload: dict) -> bool:
        if user_id in self.fail_for:
            return False
        self.user_messages.append((user_id, payload))
        return True

    async def notify_channel(self, channel_id: str, payload: dict) -> bool:
        if channel_id in self.fail_for:
            return False
        self.channel_messages.append((channel_id, payload))
        return True

    async def aclose(self) -> None:
        pass


def make_movie(
    name: str,
    id: Optional[str] = None,
    aliases: tuple[str, ...] = (),
    languages: tuple[str, ...] = ("english",),
    title: Optional[str] = None,
    rating: Optional[float] = None,
    release_date: Optional[str] = None,
) -> MediaRecord:
    metadata = None
    if title or rating is not None or release_date:
        metadata = ExternalMetadata(
            title=title, vote_average=rating, release_date=release_date, overview="An overview."
        )
    return MediaRecord(
        id=id,
        name=name,
        aliases=list(aliases),
        languages=list(languages),
        watch_links={"1080p": f"https://example.com/{name.lower().replace(' ', '-')}"},
        external_metadata=metadata,
    )


@pytest.fixture
def data_dir(tmp_path) -> Path:
    """Returns path to a temporary data directory."""
    return tmp_path / "data"


@pytest.fixture
def store() -> RecordStore:
    return RecordStore(MemoryBackend())


@pytest.fixture
def file_store(data_dir) -> RecordStore:
    return RecordStore.from_path(data_dir)


@pytest.fixture
def settings(data_dir) -> Settings:
    return Settings(
        _env_file=None,
        data_dir=data_dir,
        tmdb_api_key="tmdb-key",
        gplinks_api_token="gp-token",
        discord_bot_token="",
        admin_user_ids=["admin"],
        global_request_channel_id="requests-channel",
    )


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def services(settings, store, notifier) -> Services:
    svc = Services.build(settings, store)
    svc.notifier = notifier
    return svc
