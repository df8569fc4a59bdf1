import json

import pytest

from catalog import CatalogManager
from conftest import make_movie
from database import Collection, JsonFileBackend, RecordStore
from errors import StoreIOError
from models import RequestRecord, RequestStatus


async def test_missing_files_load_as_empty(file_store):
    assert await file_store.load_movies() == []
    assert await file_store.load_requests() == []
    assert await file_store.load_guild_settings() == {}
    assert await file_store.load_unshortened_links() == []


async def test_movies_round_trip_through_file(file_store, data_dir):
    await file_store.save_movies([make_movie("Dune", id="438631", aliases=("dune 2021",), rating=8.0)])

    on_disk = json.loads((data_dir / "movies.json").read_text())
    assert on_disk[0]["name"] == "Dune"
    assert on_disk[0]["watchLinks"] == {"1080p": "https://example.com/dune"}
    assert on_disk[0]["tmdbDetails"]["vote_average"] == 8.0

    movies = await file_store.load_movies()
    assert len(movies) == 1
    assert movies[0].id == "438631"
    assert movies[0].aliases == ["dune 2021"]
    assert movies[0].rating == 8.0


async def test_reads_hand_written_file(data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "movies.json").write_text(
        json.dumps([{"id": 1, "name": "Jawan", "languages": ["hindi"], "watchLinks": {"4k": "https://x.com/j"}}])
    )
    store = RecordStore.from_path(data_dir)

    movies = await store.load_movies()

    assert movies[0].id == "1"
    assert movies[0].watch_links == {"4k": "https://x.com/j"}


async def test_corrupt_file_loads_as_empty(data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "requests.json").write_text("{not json")
    store = RecordStore.from_path(data_dir)

    assert await store.load_requests() == []


async def test_wrong_shape_loads_as_empty(data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "movies.json").write_text(json.dumps({"movies": "nope"}))
    store = RecordStore.from_path(data_dir)

    assert await store.load_movies() == []


async def test_invalid_records_are_skipped_not_discarded(data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "movies.json").write_text(
        json.dumps(
            [
                {"id": "1", "name": "Jawan", "languages": ["hindi"]},
                {"id": "2", "name": "Leo", "languages": ["tamil"]},
                {"id": "3", "name": "", "languages": ["english"]},
            ]
        )
    )
    store = RecordStore.from_path(data_dir)

    assert [m.name for m in await store.load_movies()] == ["Jawan", "Leo"]

    await CatalogManager(store).add(make_movie("Dune"))

    assert [m.name for m in await store.load_movies()] == ["Jawan", "Leo", "Dune"]


async def test_invalid_request_record_is_skipped(data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "requests.json").write_text(
        json.dumps(
            [
                {"id": "a", "movieName": "Inception", "requestedBy": "1"},
                {"id": "b", "movieName": "Leo", "requestedBy": "2", "requestedAt": "yesterday"},
            ]
        )
    )
    store = RecordStore.from_path(data_dir)

    assert [r.id for r in await store.load_requests()] == ["a"]


async def test_invalid_guild_entry_is_skipped(data_dir):
    data_dir.mkdir(parents=True)
    (data_dir / "settings.json").write_text(
        json.dumps({"guildSettings": {"g1": {"movieChannelId": "c1"}, "g2": "broken"}})
    )
    store = RecordStore.from_path(data_dir)

    assert list(await store.load_guild_settings()) == ["g1"]


async def test_write_failure_raises_store_io_error(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    store = RecordStore.from_path(blocker / "data")

    with pytest.raises(StoreIOError):
        await store.save_movies([make_movie("Dune")])


async def test_write_leaves_no_temp_file(file_store, data_dir):
    await file_store.save_requests([RequestRecord(id="r1", movie_name="Inception", requested_by="1")])
    assert sorted(p.name for p in data_dir.iterdir()) == ["requests.json"]


async def test_request_status_persists(file_store):
    request = RequestRecord(id="r1", movie_name="Inception", requested_by="1", status=RequestStatus.FULFILLED)
    await file_store.save_requests([request])

    loaded = await file_store.load_requests()

    assert loaded[0].status == RequestStatus.FULFILLED
    assert loaded[0].requested_at == request.requested_at


async def test_guild_settings(file_store, data_dir):
    await file_store.set_movie_channel("guild-1", "chan-1")
    await file_store.set_movie_channel("guild-2", "chan-2")
    await file_store.set_movie_channel("guild-1", "chan-3")

    on_disk = json.loads((data_dir / "settings.json").read_text())
    assert on_disk == {
        "guildSettings": {
            "guild-1": {"movieChannelId": "chan-3"},
            "guild-2": {"movieChannelId": "chan-2"},
        }
    }
    assert (await file_store.get_guild_settings("guild-2")).movie_channel_id == "chan-2"
    assert await file_store.get_guild_settings("guild-9") is None


async def test_unshortened_links_append(file_store):
    await file_store.add_unshortened_link("Dune", "https://example.com/a")
    await file_store.add_unshortened_link("Leo", "https://example.com/b")

    links = await file_store.load_unshortened_links()

    assert [(link.name, link.link) for link in links] == [
        ("Dune", "https://example.com/a"),
        ("Leo", "https://example.com/b"),
    ]


def test_path_for(tmp_path):
    backend = JsonFileBackend(tmp_path)
    assert backend.path_for(Collection.UNSHORTENED_LINKS) == tmp_path / "unshortened_links.json"
