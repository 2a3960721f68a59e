"""Tests for the read-only catalog API.

WHY: The catalog is how converted charts reach players. It must point
each level at its converted chart, hide levels that are missing files,
and reject malformed list queries the way clients expect.

HOW: FastAPI TestClient over create_app() with an injected ArchiveStore
and engine item, so the lifespan hook (database path, engine fetch) is
never needed.

RULES:
- All tests use the FastAPI TestClient (synchronous)
- The store is a fresh temp database per test
"""

import asyncio
import hashlib

import httpx
import pytest
from fastapi.testclient import TestClient

from chart_converter.server.app import create_app, load_engine
from chart_converter.store import (
    BACKGROUND_TYPE,
    BGM_TYPE,
    CONVERTED_CHART_TYPE,
    COVER_TYPE,
    SOURCE_CHART_TYPE,
    LevelRecord,
)

ENGINE = {
    "name": "pjsekai",
    "title": "Project Sekai",
    "background": {
        "thumbnail": {"hash": "thumb-hash", "url": "https://engine.test/bg/thumbnail"},
        "configuration": {"hash": "conf-hash", "url": "https://engine.test/bg/configuration"},
    },
}
BG_DATA = b"\x1f\x8b background data"
ALL_TYPES = [COVER_TYPE, BGM_TYPE, CONVERTED_CHART_TYPE, BACKGROUND_TYPE, SOURCE_CHART_TYPE]


def _add_level(store, name, index_, title="Song", types=ALL_TYPES):
    store.insert_level(LevelRecord(
        name=name, title=title, artists="Artist", author="Charter",
        description="About " + name, rating=25, index_=index_,
    ))
    for file_type in types:
        store.replace_file(name, file_type, file_type + "-hash", "https://cdn.test/" + name + "/" + file_type)


@pytest.fixture
def bg_data_path(tmp_path):
    path = tmp_path / "bgData.json.gz"
    path.write_bytes(BG_DATA)
    return path


@pytest.fixture
def client(archive_store, bg_data_path):
    _add_level(archive_store, "frpt-one", 2)
    _add_level(archive_store, "frpt-two", 1, types=[COVER_TYPE, BGM_TYPE, BACKGROUND_TYPE])
    _add_level(archive_store, "frpt-three", 3, title="Other Tune")
    return TestClient(create_app(store=archive_store, engine=ENGINE, bg_data_path=bg_data_path))


class TestHealthAndInfo:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    def test_version_header(self, client):
        resp = client.get("/health")
        assert resp.headers["Sonolus-Version"]

    def test_server_info(self, client):
        body = client.get("/sonolus/info").json()
        assert body["buttons"] == [{"type": "level"}]
        assert body["title"]

    def test_level_info_random_section(self, client):
        body = client.get("/sonolus/levels/info").json()
        section = body["sections"][0]
        assert section["title"] == "#RANDOM"
        names = {item["name"] for item in section["items"]}
        assert names == {"ptlv-one", "ptlv-three"}

    def test_result_info(self, client):
        assert client.get("/sonolus/levels/result/info").json() == {"submits": []}


class TestLevelList:
    def test_missing_page(self, client):
        resp = client.get("/sonolus/levels/list")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Missing page"

    @pytest.mark.parametrize("page", ["abc", "-1", "1.5"])
    def test_invalid_page(self, client, page):
        resp = client.get("/sonolus/levels/list", params={"page": page})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid request"

    def test_newest_first_and_hides_incomplete(self, client):
        body = client.get("/sonolus/levels/list", params={"page": "0"}).json()
        assert [item["name"] for item in body["items"]] == ["ptlv-three", "ptlv-one"]
        assert body["pageCount"] == 1

    def test_keywords(self, client):
        body = client.get(
            "/sonolus/levels/list", params={"page": "0", "keywords": "other  tune"}
        ).json()
        assert [item["name"] for item in body["items"]] == ["ptlv-three"]

    def test_page_past_end(self, client):
        body = client.get("/sonolus/levels/list", params={"page": "5"}).json()
        assert body["items"] == []
        assert body["pageCount"] == 1


class TestLevelDetails:
    def test_points_at_converted_chart(self, client):
        resp = client.get("/sonolus/levels/ptlv-one")
        assert resp.status_code == 200
        body = resp.json()
        item = body["item"]
        assert item["name"] == "ptlv-one"
        assert item["data"] == {
            "hash": CONVERTED_CHART_TYPE + "-hash",
            "url": "https://cdn.test/frpt-one/" + CONVERTED_CHART_TYPE,
        }
        assert item["engine"] == ENGINE
        assert item["useBackground"]["item"]["name"] == "ptlv-bg-one"
        assert body["description"] == "About frpt-one"

    def test_unknown_level(self, client):
        resp = client.get("/sonolus/levels/ptlv-nope")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Level not found"

    def test_level_missing_files(self, client):
        resp = client.get("/sonolus/levels/ptlv-two")
        assert resp.status_code == 404
        assert resp.json()["detail"] == "Level files missing"


class TestBackground:
    def test_background_item_fields(self, client):
        background = client.get("/sonolus/levels/ptlv-one").json()["item"]["useBackground"]["item"]
        assert background["version"] == 2
        assert background["subtitle"] == "Artist"
        assert background["thumbnail"] == ENGINE["background"]["thumbnail"]
        assert background["configuration"] == ENGINE["background"]["configuration"]
        assert background["image"] == {
            "hash": BACKGROUND_TYPE + "-hash",
            "url": "https://cdn.test/frpt-one/" + BACKGROUND_TYPE,
        }
        assert background["data"] == {
            "hash": hashlib.sha1(BG_DATA).hexdigest(),
            "url": "/assets/bgData.json.gz",
        }

    def test_serves_background_data(self, client):
        resp = client.get("/assets/bgData.json.gz")
        assert resp.status_code == 200
        assert resp.content == BG_DATA
        assert resp.headers["content-type"] == "application/gzip"

    def test_missing_asset(self, archive_store, tmp_path):
        _add_level(archive_store, "frpt-one", 1)
        client = TestClient(create_app(
            store=archive_store, engine=ENGINE, bg_data_path=tmp_path / "absent.json.gz",
        ))
        background = client.get("/sonolus/levels/ptlv-one").json()["item"]["useBackground"]["item"]
        assert background["data"] is None
        assert client.get("/assets/bgData.json.gz").status_code == 404

    def test_engine_without_background(self, archive_store, bg_data_path):
        _add_level(archive_store, "frpt-one", 1)
        client = TestClient(create_app(
            store=archive_store, engine={"name": "pjsekai"}, bg_data_path=bg_data_path,
        ))
        background = client.get("/sonolus/levels/ptlv-one").json()["item"]["useBackground"]["item"]
        assert background["thumbnail"] is None
        assert background["configuration"] is None


class TestRedirects:
    def test_root_opens_server(self, client):
        resp = client.get("/", follow_redirects=False)
        assert resp.status_code == 302
        assert resp.headers["location"] == "https://open.sonolus.com/testserver"

    def test_level_opens_level(self, client):
        resp = client.get("/levels/ptlv-one", follow_redirects=False)
        assert resp.status_code == 302
        assert resp.headers["location"] == "https://open.sonolus.com/testserver/levels/ptlv-one"


class TestLoadEngine:
    def test_first_item_with_absolute_urls(self):
        def handler(request):
            return httpx.Response(200, json={"items": [
                {"name": "pjsekai", "thumbnail": {"hash": "h", "url": "/repo/thumb"}},
                {"name": "other"},
            ]})

        engine = asyncio.run(load_engine(
            "https://engine.test/sonolus/engines/list",
            transport=httpx.MockTransport(handler),
        ))
        assert engine["name"] == "pjsekai"
        assert engine["thumbnail"]["url"] == "https://engine.test/repo/thumb"
