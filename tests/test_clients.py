import json
from contextlib import asynccontextmanager

import pytest
from aiohttp import test_utils, web

from catalog_sync.api.media_client import MediaClient
from catalog_sync.api.sheets_client import (
    SheetsClient,
    cell_value,
    extract_gviz_table,
    table_rows,
)
from catalog_sync.exceptions import MediaDownloadFailed, MediaProbeFailed, RemoteFetchFailed
from catalog_sync.models.config import SheetSource

from conftest import OLD_TOKEN


@asynccontextmanager
async def serve(app):
    server = test_utils.TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


def gviz_body(rows):
    table = {"cols": [], "rows": [{"c": [None if v is None else {"v": v} for v in r]} for r in rows]}
    payload = json.dumps({"version": "0.6", "status": "ok", "table": table})
    return f"/*O_o*/\ngoogle.visualization.Query.setResponse({payload});"


def test_extract_gviz_table():
    table = extract_gviz_table(gviz_body([["a", 1.0]]))
    assert table_rows(table) == [["a", "1"]]


@pytest.mark.parametrize("body", ["<html>login</html>", "google.visualization.Query.setResponse({bad);"])
def test_extract_gviz_table_rejects_garbage(body):
    with pytest.raises(RemoteFetchFailed):
        extract_gviz_table(body)


@pytest.mark.parametrize(
    "cell, expected",
    [
        (None, ""),
        ({"v": None}, ""),
        ({"v": "x"}, "x"),
        ({"v": 5.0}, "5"),
        ({"v": 2.5}, "2.5"),
        ({"v": True}, "true"),
    ],
)
def test_cell_value(cell, expected):
    assert cell_value(cell) == expected


def test_table_rows_skips_empty_rows_and_applies_start():
    table = {"rows": [{"c": [{"v": "h"}]}, {"c": []}, None, {"c": [{"v": "r1"}]}]}
    assert table_rows(table, start_row=1) == [["r1"]]


@pytest.mark.asyncio
async def test_sheets_client_reads_version_and_rows():
    tabs = {
        "20": [["version", "v42"]],
        "10": [["header"], ["sv.A.B", None, 3.0]],
    }
    seen = []

    async def handler(request):
        seen.append(request.match_info["sheet_id"])
        if request.query.get("tqx") != "out:json":
            return web.Response(status=400)
        rows = tabs.get(request.query.get("gid"))
        if rows is None:
            return web.Response(status=404)
        return web.Response(text=gviz_body(rows))

    app = web.Application()
    app.router.add_get("/spreadsheets/d/{sheet_id}/gviz/tq", handler)
    source = SheetSource(sheet_id="abc", items_gid="10", db_gid="20", features_gid="99")

    async with serve(app) as server:
        template = str(server.make_url("/")).rstrip("/") + "/spreadsheets/d/{sheet_id}/gviz/tq"
        async with SheetsClient(url_template=template) as client:
            assert await client.fetch_remote_version(source) == "v42"
            assert await client.fetch_tabular_rows(source, "10", 1) == [["sv.A.B", "", "3"]]
            with pytest.raises(RemoteFetchFailed):
                await client.fetch_tabular_rows(source, "99")
    assert seen == ["abc", "abc", "abc"]


@pytest.mark.asyncio
async def test_media_client_probe_and_download():
    async def image(request):
        return web.Response(
            body=b"jpegdata", content_type="image/jpeg", headers={"Last-Modified": OLD_TOKEN}
        )

    app = web.Application()
    app.router.add_get("/img.jpg", image)

    async with serve(app) as server:
        url = str(server.make_url("/img.jpg"))
        async with MediaClient(base_delay=0) as client:
            assert await client.probe_freshness(url) == OLD_TOKEN
            media = await client.download_payload(url)

    assert media.content == b"jpegdata"
    assert media.content_type == "image/jpeg"
    assert media.token == OLD_TOKEN


@pytest.mark.asyncio
async def test_media_client_missing_object():
    calls = []

    async def missing(request):
        calls.append(request.method)
        return web.Response(status=404)

    app = web.Application()
    app.router.add_get("/gone.jpg", missing)

    async with serve(app) as server:
        url = str(server.make_url("/gone.jpg"))
        async with MediaClient(base_delay=0) as client:
            with pytest.raises(MediaProbeFailed):
                await client.probe_freshness(url)
            with pytest.raises(MediaDownloadFailed):
                await client.download_payload(url)

    assert calls == ["HEAD", "GET"]


@pytest.mark.asyncio
async def test_media_client_retries_server_errors():
    calls = []

    async def flaky(request):
        calls.append(request.method)
        if len(calls) < 3:
            return web.Response(status=503)
        return web.Response(body=b"ok", content_type="image/png")

    app = web.Application()
    app.router.add_get("/flaky.png", flaky)

    async with serve(app) as server:
        url = str(server.make_url("/flaky.png"))
        async with MediaClient(max_attempts=3, base_delay=0) as client:
            media = await client.download_payload(url)

    assert media.content == b"ok"
    assert media.token is None
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_media_client_unreachable_host():
    app = web.Application()
    async with serve(app) as server:
        url = str(server.make_url("/a.jpg"))

    async with MediaClient(max_attempts=2, base_delay=0, timeout=2) as client:
        with pytest.raises(MediaProbeFailed):
            await client.probe_freshness(url)
        with pytest.raises(MediaDownloadFailed):
            await client.download_payload(url)
