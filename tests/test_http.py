"""HTTP API, exercised through aiohttp's test client."""

import pytest
from aiohttp.test_utils import TestClient, TestServer

from airplayhub.http_api import create_app


@pytest.fixture
async def client(hub, tmp_path):
    webroot = tmp_path / "root"
    (webroot / "icons").mkdir(parents=True)
    (webroot / "Index.html").write_text("<html>hub</html>")
    (webroot / "icons" / "speaker.png").write_bytes(b"\x89PNG")
    async with TestClient(TestServer(create_app(hub, webroot=str(webroot)))) as client:
        yield client


async def test_start_and_stop_zone(client, hub, sink):
    resp = await client.get("/startzone/kitchen")
    assert resp.status == 200
    data = await resp.json()
    assert data["name"] == "Kitchen"
    assert data["enabled"] is True
    assert sink.handles[0].volume == 40

    resp = await client.get("/stopzone/Kitchen")
    data = await resp.json()
    assert data["enabled"] is False
    assert sink.handles[0].stopped


async def test_unknown_zone_is_200_with_error(client):
    for path in ("/startzone/Garage", "/stopzone/Garage", "/setvol/Garage/10",
                 "/hidezone/Garage", "/showzone/Garage"):
        resp = await client.get(path)
        assert resp.status == 200
        assert await resp.json() == {"error": "zone not found"}


async def test_setvol_returns_stored_volume(client, hub):
    resp = await client.get("/setvol/Office/45")
    assert await resp.json() == 45
    assert hub.state.registry.find_by_name("Office").volume == 45

    resp = await client.get("/setvol/Office/250")
    assert await resp.json() == 100


async def test_hide_and_show(client):
    await client.get("/hidezone/Office")
    resp = await client.get("/zones")
    assert [z["name"] for z in await resp.json()] == ["Kitchen"]

    await client.get("/showzone/Office")
    resp = await client.get("/zones")
    assert [z["name"] for z in await resp.json()] == ["Kitchen", "Office"]


async def test_trackinfo_empty_before_metadata(client):
    resp = await client.get("/trackinfo")
    assert await resp.json() == {}


async def test_status(client):
    await client.get("/startzone/Office")
    resp = await client.get("/status")
    data = await resp.json()
    assert data["mastervolume"] == 50
    assert data["active_zones"] == ["Office"]
    assert data["session"] == "idle"


async def test_index_redirect_and_static(client):
    resp = await client.get("/", allow_redirects=False)
    assert resp.status == 302
    assert resp.headers["Location"] == "/Index.html"

    resp = await client.get("/Index.html")
    assert resp.status == 200
    assert resp.headers["Cache-Control"] == "public, max-age=0"

    resp = await client.get("/icons/speaker.png")
    assert resp.status == 200
    assert resp.headers["Cache-Control"] == "public, max-age=31536000"


async def test_cors_headers(client):
    resp = await client.get("/zones")
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
