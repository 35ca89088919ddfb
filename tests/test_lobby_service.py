import asyncio
from datetime import datetime
from typing import List

import httpx
import pytest

from models.enums import FetchEvent, Phase
from models.session import MapPhysicalData
from services import config
from services.exceptions import AllRoutesFailedError, ConfigurationError
from services.fetch_service import Route
from services.lobby_service import FetchOptions, LobbyClient, fetch_and_assemble

TARGET = "http://lobby.test/lobbyServer"


@pytest.fixture
def lobby_payload(make_raw_session, encode_name):
    return {
        "GET": [
            make_raw_session(
                g="b2",
                n=encode_name("Second"),
                m="scion02",
                mm="1325933293",
                pl=[{"i": "S2", "n": encode_name("two"), "t": 1, "s": 10}],
            ),
            make_raw_session(
                g="a1",
                n=encode_name("First"),
                m="isdf01",
                mm="0",
                pl=[
                    {"i": "S1", "n": encode_name("one"), "t": 1},
                    {"i": "S2", "n": encode_name("two"), "t": 255},
                ],
            ),
        ]
    }


def _handler(payload, seen: List[str], lobby_ok: bool = True):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.host)
        if request.url.host == "lobby.test":
            return httpx.Response(200, json=payload) if lobby_ok else httpx.Response(502)
        if request.url.host == "maps.test":
            return httpx.Response(200, json={"title": f"Map {request.url.params['map']}"})
        return httpx.Response(403)

    return handler


def _run(handler, options=None, **kwargs):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await fetch_and_assemble(options, client=client, **kwargs)

    return asyncio.run(go())


def test_pipeline_without_enrichment(lobby_payload) -> None:
    seen: List[str] = []
    result = _run(_handler(lobby_payload, seen), FetchOptions(target_endpoint=TARGET))

    assert seen == ["lobby.test"]
    assert [s.name for s in result.sessions] == ["First", "Second"]
    assert result.sessions[1].phase is Phase.IN_GAME
    assert result.raw_response == lobby_payload
    assert set(result.player_index) == {"1", "2"}
    assert set(result.mod_index) == {"0", "1325933293"}
    assert result.enrichment.maps is False
    assert result.enrichment.physical_map_data is False
    assert datetime.fromisoformat(result.timestamp).tzinfo is not None
    assert all(s.map is None for s in result.sessions)


def test_pipeline_with_enrichment(lobby_payload, monkeypatch) -> None:
    monkeypatch.setattr(config, "MAP_DATA_URL", "https://maps.test/getdata.php?map={map}&mod={mod}")
    monkeypatch.setattr(config, "MAP_PHYSICAL_DATA_PATH", None)
    seen: List[str] = []

    options = FetchOptions(
        target_endpoint=TARGET,
        enrich_maps=True,
        enrich_physical_map_data=True,
        physical_map_data={"isdf01": MapPhysicalData(map_file="isdf01", max_players=8)},
        physical_map_data_mode="merge",
    )
    result = _run(_handler(lobby_payload, seen), options)

    first, second = result.sessions
    assert first.map.name == "Map isdf01"
    assert second.map.name == "Map scion02"
    assert first.map_physical.max_players == 8
    assert second.map_physical is None
    assert result.enrichment.maps and result.enrichment.physical_map_data
    assert seen.count("maps.test") == 2


def test_configuration_error_before_any_request(lobby_payload) -> None:
    seen: List[str] = []
    options = FetchOptions(
        target_endpoint=TARGET,
        enrich_physical_map_data=True,
        physical_map_data={"isdf01": {"pools": 3}},
    )

    with pytest.raises(ConfigurationError):
        _run(_handler(lobby_payload, seen), options)
    assert seen == []


def test_unknown_mode_is_configuration_error(lobby_payload) -> None:
    seen: List[str] = []
    options = FetchOptions(physical_map_data={}, physical_map_data_mode="overlay")

    with pytest.raises(ConfigurationError):
        _run(_handler(lobby_payload, seen), options)
    assert seen == []


def test_total_failure_propagates(lobby_payload) -> None:
    seen: List[str] = []
    events = []
    options = FetchOptions(target_endpoint=TARGET, on_status=lambda e, n: events.append(e))

    with pytest.raises(AllRoutesFailedError):
        _run(_handler(lobby_payload, seen, lobby_ok=False), options)
    assert events[-1] is FetchEvent.ALL_FAILED


def test_lobby_client_keeps_route_preference(lobby_payload, monkeypatch) -> None:
    monkeypatch.setattr(config, "CORS_PROXIES", ["https://p1.test/?", "https://good.test/?"])
    seen: List[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.host)
        if request.url.host == "good.test":
            return httpx.Response(200, json=lobby_payload)
        return httpx.Response(500)

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = LobbyClient(http)
            await client.fetch_and_assemble(FetchOptions(target_endpoint=TARGET))
            await client.fetch_and_assemble(FetchOptions(target_endpoint=TARGET))
            return client

    client = asyncio.run(go())

    assert seen == ["lobby.test", "p1.test", "good.test", "lobby.test", "good.test"]
    assert client.route_memory.last_successful == Route("https://good.test/?", "https://good.test/?")

    client.reset()
    assert client.route_memory.last_successful is None
