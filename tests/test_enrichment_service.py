import asyncio
import json
from typing import List

import httpx
import pytest

from models.session import MapPhysicalData, ModEntry, Session
from services import config
from services.enrichment_service import (
    EnrichmentCache,
    apply_physical_data,
    enrich_sessions_with_maps,
    fetch_map_metadata,
    load_builtin_physical_data,
    parse_map_metadata,
    resolve_physical_table,
)
from services.exceptions import ConfigurationError, EnrichmentError

TEMPLATE = "https://maps.test/getdata.php?map={map}&mod={mod}"

MAP_PAYLOAD = {
    "title": "Bane Basin",
    "description": "Two bases, one canyon.",
    "image": "https://maps.test/img/isdf01.png",
    "teamNames": ["ISDF", "Scion"],
    "mods": {"1325933293": {"name": "VSR"}, "42": "Other"},
}


def _session(guid: str, map_file: str = "isdf01", mods=("1325933293",)) -> Session:
    return Session(
        id=guid,
        guid=None,
        name=guid,
        map_file=map_file,
        mods=tuple(ModEntry(id=m) for m in mods),
        primary_mod=mods[0] if mods else "0",
    )


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ── Metadata parsing ─────────────────────────────────────────────────────────


def test_parse_map_metadata() -> None:
    metadata = parse_map_metadata(MAP_PAYLOAD)
    assert metadata.name == "Bane Basin"
    assert metadata.team_names == ("ISDF", "Scion")
    assert metadata.mod_names == {"1325933293": "VSR", "42": "Other"}


def test_parse_map_metadata_accepts_name_and_missing_fields() -> None:
    metadata = parse_map_metadata({"name": "Plain", "teamNames": ["only one"]})
    assert metadata.name == "Plain"
    assert metadata.team_names is None
    assert metadata.description is None
    assert metadata.mod_names == {}


def test_parse_map_metadata_rejects_non_objects() -> None:
    with pytest.raises(EnrichmentError):
        parse_map_metadata(["not", "an", "object"])


# ── Metadata fetch ───────────────────────────────────────────────────────────


def test_fetch_map_metadata_is_memoized() -> None:
    urls: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        urls.append(str(request.url))
        return httpx.Response(200, json=MAP_PAYLOAD)

    cache = EnrichmentCache()

    async def go():
        async with _client(handler) as client:
            first = await fetch_map_metadata("isdf01", "0", client=client, cache=cache, url_template=TEMPLATE)
            second = await fetch_map_metadata("isdf01", "0", client=client, cache=cache, url_template=TEMPLATE)
            return first, second

    first, second = asyncio.run(go())
    assert first == second
    assert urls == ["https://maps.test/getdata.php?map=isdf01&mod=0"]
    assert ("isdf01", "0") in cache


def test_fetch_map_metadata_failure_returns_none(caplog) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    cache = EnrichmentCache()

    async def go():
        async with _client(handler) as client:
            return await fetch_map_metadata("gone", "0", client=client, cache=cache, url_template=TEMPLATE)

    assert asyncio.run(go()) is None
    assert len(cache) == 0
    assert "Map metadata unavailable" in caplog.text


def test_fetch_map_metadata_escapes_query_values() -> None:
    seen: List[httpx.QueryParams] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.params)
        return httpx.Response(200, json=MAP_PAYLOAD)

    async def go():
        async with _client(handler) as client:
            first = await fetch_map_metadata("a&mod=999#x+y", "42", client=client, url_template=TEMPLATE)
            second = await fetch_map_metadata("bad\x01map", "0", client=client, url_template=TEMPLATE)
            return first, second

    first, second = asyncio.run(go())
    assert first is not None and second is not None
    assert seen[0]["map"] == "a&mod=999#x+y"
    assert seen[0]["mod"] == "42"
    assert seen[1]["map"] == "bad\x01map"
    assert seen[1]["mod"] == "0"


def test_invalid_map_url_is_not_fatal(caplog) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.InvalidURL("Invalid non-printable ASCII character in URL")

    sessions = [_session("a", map_file="bad\x01map")]

    async def go():
        async with _client(handler) as client:
            return await enrich_sessions_with_maps(sessions, client=client, url_template=TEMPLATE)

    enriched = asyncio.run(go())
    assert enriched[0] is sessions[0]
    assert enriched[0].map is None
    assert "Cannot build map data URL" in caplog.text


def test_enrich_sessions_requests_each_key_once() -> None:
    urls: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        urls.append(str(request.url))
        if request.url.params["map"] == "broken":
            raise httpx.ConnectError("down", request=request)
        return httpx.Response(200, json=MAP_PAYLOAD)

    sessions = [_session("a"), _session("b"), _session("c", map_file="broken"), _session("d", map_file=None)]

    async def go():
        async with _client(handler) as client:
            return await enrich_sessions_with_maps(sessions, client=client, url_template=TEMPLATE)

    enriched = asyncio.run(go())

    assert sorted(urls) == [
        "https://maps.test/getdata.php?map=broken&mod=1325933293",
        "https://maps.test/getdata.php?map=isdf01&mod=1325933293",
    ]
    assert [s.id for s in enriched] == ["a", "b", "c", "d"]
    assert enriched[0].map.name == "Bane Basin"
    assert enriched[0].mods[0].name == "VSR"
    assert enriched[2] is sessions[2]
    assert enriched[3] is sessions[3]
    # originals untouched
    assert sessions[0].map is None
    assert sessions[0].mods[0].name is None


def test_cache_clear() -> None:
    cache = EnrichmentCache()
    cache.put(("m", "0"), parse_map_metadata(MAP_PAYLOAD))
    cache.builtin_physical = {}
    cache.clear()
    assert len(cache) == 0
    assert cache.builtin_physical is None


# ── Physical map data ────────────────────────────────────────────────────────

BUILTIN = {
    "isdf01": MapPhysicalData(map_file="isdf01", max_players=8, pools=6),
    "scion02": MapPhysicalData(map_file="scion02", max_players=4),
}


def test_resolve_without_caller_table_uses_builtin() -> None:
    assert resolve_physical_table(None, None, BUILTIN) == BUILTIN


def test_resolve_requires_mode_with_caller_table() -> None:
    with pytest.raises(ConfigurationError):
        resolve_physical_table({"isdf01": {"pools": 2}}, None, BUILTIN)
    with pytest.raises(ConfigurationError):
        resolve_physical_table({"isdf01": {"pools": 2}}, "sideways", BUILTIN)


def test_resolve_replace_ignores_builtin() -> None:
    table = resolve_physical_table({"custom": {"maxPlayers": 10}}, "replace", BUILTIN)
    assert set(table) == {"custom"}
    assert table["custom"].max_players == 10


def test_resolve_merge_overrides_by_map_file() -> None:
    table = resolve_physical_table(
        {"isdf01": {"pools": 2, "looseScrap": 40, "author": "me"}}, "merge", BUILTIN
    )
    assert set(table) == {"isdf01", "scion02"}
    assert table["isdf01"].pools == 2
    assert table["isdf01"].loose_scrap == 40
    assert table["isdf01"].max_players is None
    assert table["isdf01"].extra == {"author": "me"}


def test_load_builtin_physical_data(tmp_path) -> None:
    path = tmp_path / "maps.json"
    path.write_text(json.dumps({"isdf01": {"maxPlayers": 8}}), encoding="utf-8")
    table = load_builtin_physical_data(str(path))
    assert table["isdf01"].max_players == 8


def test_load_builtin_physical_data_defaults_to_empty(monkeypatch) -> None:
    monkeypatch.setattr(config, "MAP_PHYSICAL_DATA_PATH", None)
    assert load_builtin_physical_data() == {}


def test_load_builtin_physical_data_bad_file(tmp_path) -> None:
    path = tmp_path / "maps.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_builtin_physical_data(str(path))
    with pytest.raises(ConfigurationError):
        load_builtin_physical_data(str(tmp_path / "missing.json"))


def test_apply_physical_data_returns_copies() -> None:
    sessions = [_session("a"), _session("b", map_file="ISDF01"), _session("c", map_file="elsewhere")]
    enriched = apply_physical_data(sessions, BUILTIN)
    assert enriched[0].map_physical.max_players == 8
    assert enriched[1].map_physical.max_players == 8
    assert enriched[2].map_physical is None
    assert sessions[0].map_physical is None
