"""Tests for the OxfordAPI facade: endpoint mapping, typed results, groups."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from oxfd import Commands, Logs, OxfordAPI, OxfordAPIError, Servers
from oxfd.contracts import (
    Ban,
    CommandResult,
    JoinLog,
    KillLog,
    ModCall,
    Player,
    Queue,
    ServerInfo,
    Vehicle,
)

SERVER_PAYLOAD: dict[str, Any] = {
    "Name": "Oxford RP",
    "StyledName": "[UK] Oxford RP",
    "Description": "Serious roleplay",
    "Tags": ["uk", "serious"],
    "ThemeColour": "#1f6feb",
    "OwnerId": 1234,
    "CurrentPlayers": 12,
    "MaxPlayers": 40,
    "JoinCode": "oxrp",
    "CreatedAt": 1700000000,
    "Packages": [],
    "Weather": "Rain",
    "TimeOfDay": "Night",
}

PLAYER_PAYLOAD: dict[str, Any] = {
    "Username": "jdoe",
    "DisplayName": "J Doe",
    "UserId": 42,
    "Team": "Police",
    "WantedLevel": 0,
    "Permission": "Normal",
    "Callsign": "A-12",
    "Location": "High Street",
}

VEHICLE_PAYLOAD: dict[str, Any] = {
    "OwnerUserId": 42,
    "OwnerUsername": "jdoe",
    "Registration": "OX12 ABC",
    "Model": "Estate",
    "Electric": False,
    "ELS": True,
    "ELS_Style": "Traffic",
}


@pytest.fixture
def api() -> OxfordAPI:
    client = OxfordAPI("test-key", rate_limit="none")
    client.rest.execute = AsyncMock()  # type: ignore[method-assign]
    return client


def _returns(api: OxfordAPI, data: Any) -> AsyncMock:
    mock: AsyncMock = api.rest.execute  # type: ignore[assignment]
    mock.return_value = data
    return mock


class TestConstruction:
    def test_requires_server_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OXFD_SERVER_KEY", raising=False)
        with pytest.raises(ValueError, match="server_key"):
            OxfordAPI()

    def test_server_key_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OXFD_SERVER_KEY", "env-key")
        assert OxfordAPI().config.server_key == "env-key"

    def test_options_forwarded(self) -> None:
        api = OxfordAPI("k", rate_limit=2, max_retries=5, timeout_ms=500, base_url="http://x/")
        assert api.config.max_retries == 5
        assert api.config.timeout_ms == 500
        assert api.config.base_url == "http://x"
        assert api.rest.bucket is not None
        assert api.rest.bucket.capacity == 1

    def test_groups(self) -> None:
        api = OxfordAPI("k")
        assert isinstance(api.servers, Servers)
        assert isinstance(api.logs, Logs)
        assert isinstance(api.commands, Commands)


class TestServerEndpoints:
    @pytest.mark.asyncio
    async def test_get_server(self, api: OxfordAPI) -> None:
        execute = _returns(api, SERVER_PAYLOAD)

        server = await api.get_server()

        execute.assert_awaited_once_with("GET", "/server")
        assert isinstance(server, ServerInfo)
        assert server.name == "Oxford RP"
        assert server.current_players == 12
        assert server.theme_colour == "#1f6feb"

    @pytest.mark.asyncio
    async def test_get_players(self, api: OxfordAPI) -> None:
        execute = _returns(api, [PLAYER_PAYLOAD, {**PLAYER_PAYLOAD, "UserId": 43, "Callsign": None}])

        players = await api.servers.get_players()

        execute.assert_awaited_once_with("GET", "/server/players")
        assert [p.user_id for p in players] == [42, 43]
        assert all(isinstance(p, Player) for p in players)
        assert players[1].callsign is None

    @pytest.mark.asyncio
    async def test_get_queue(self, api: OxfordAPI) -> None:
        execute = _returns(api, {"total": 2, "users": [1, 2]})

        queue = await api.servers.get_queue()

        execute.assert_awaited_once_with("GET", "/server/queue")
        assert queue == Queue(total=2, users=[1, 2])

    @pytest.mark.asyncio
    async def test_get_bans(self, api: OxfordAPI) -> None:
        _returns(
            api,
            [
                {
                    "UserId": 7,
                    "Username": "griefer",
                    "Reason": "RDM",
                    "BannedBy": "mod",
                    "BannedById": 9,
                    "Expiry": 0,
                }
            ],
        )

        bans = await api.servers.get_bans()

        assert bans == [
            Ban(user_id=7, username="griefer", reason="RDM", banned_by="mod", banned_by_id=9, expiry=0)
        ]

    @pytest.mark.asyncio
    async def test_get_vehicles_els_aliases(self, api: OxfordAPI) -> None:
        execute = _returns(api, [VEHICLE_PAYLOAD])

        vehicles = await api.servers.get_vehicles()

        execute.assert_awaited_once_with("GET", "/server/vehicles")
        assert isinstance(vehicles[0], Vehicle)
        assert vehicles[0].els is True
        assert vehicles[0].els_style == "Traffic"
        assert vehicles[0].model_dump(by_alias=True)["ELS_Style"] == "Traffic"

    @pytest.mark.asyncio
    async def test_get_robberies(self, api: OxfordAPI) -> None:
        execute = _returns(api, [{"Name": "Bank", "Alarm": True, "Available": False}])

        robberies = await api.servers.get_robberies()

        execute.assert_awaited_once_with("GET", "/server/robberies")
        assert robberies[0].alarm is True

    @pytest.mark.asyncio
    async def test_unknown_fields_kept(self, api: OxfordAPI) -> None:
        _returns(api, {**SERVER_PAYLOAD, "NewField": "x"})
        server = await api.get_server()
        assert server.model_extra == {"NewField": "x"}


class TestLogEndpoints:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("method", "path"),
        [
            ("get_kill_logs", "/server/killlogs"),
            ("get_command_logs", "/server/commandlogs"),
            ("get_mod_calls", "/server/modcalls"),
            ("get_radio_calls", "/server/radiocalls"),
            ("get_join_logs", "/server/joinlogs"),
        ],
    )
    async def test_paths(self, api: OxfordAPI, method: str, path: str) -> None:
        execute = _returns(api, [])

        result = await getattr(api.logs, method)()

        execute.assert_awaited_once_with("GET", path)
        assert result == []

    @pytest.mark.asyncio
    async def test_kill_logs(self, api: OxfordAPI) -> None:
        _returns(
            api,
            [
                {
                    "Timestamp": 1700000000,
                    "KillerUserId": 1,
                    "KillerUsername": "a",
                    "VictimUserId": 2,
                    "VictimUsername": "b",
                    "Distance": 12.5,
                    "Weapon": "Pistol",
                }
            ],
        )
        logs = await api.get_kill_logs()
        assert isinstance(logs[0], KillLog)
        assert logs[0].distance == 12.5

    @pytest.mark.asyncio
    async def test_join_logs(self, api: OxfordAPI) -> None:
        _returns(api, [{"Timestamp": 1, "UserId": 2, "Username": "c", "Action": "left"}])
        logs = await api.logs.get_join_logs()
        assert logs == [JoinLog(timestamp=1, user_id=2, username="c", action="left")]

    @pytest.mark.asyncio
    async def test_mod_calls_nested_responders(self, api: OxfordAPI) -> None:
        _returns(
            api,
            [
                {
                    "Timestamp": 1,
                    "CallerUserId": 2,
                    "CallerUsername": "c",
                    "CallerDisplayName": "C",
                    "CaseId": "case-1",
                    "Responders": [{"UserId": 3, "Username": "mod"}],
                }
            ],
        )
        calls = await api.get_mod_calls()
        assert isinstance(calls[0], ModCall)
        assert calls[0].responders[0].username == "mod"

    @pytest.mark.asyncio
    async def test_empty_body_is_empty_list(self, api: OxfordAPI) -> None:
        _returns(api, None)
        assert await api.get_command_logs() == []


class TestResponseShape:
    @pytest.mark.asyncio
    async def test_object_where_list_expected(self, api: OxfordAPI) -> None:
        _returns(api, {"message": "not a list"})

        with pytest.raises(OxfordAPIError, match="Unexpected response shape: /server/players") as exc_info:
            await api.get_players()

        assert exc_info.value.status == 200

    @pytest.mark.asyncio
    async def test_missing_required_field(self, api: OxfordAPI) -> None:
        _returns(api, {"Name": "only a name"})

        with pytest.raises(OxfordAPIError, match="Unexpected response shape: /server") as exc_info:
            await api.get_server()

        assert "validation error" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_invalid_join_action(self, api: OxfordAPI) -> None:
        _returns(api, [{"Timestamp": 1, "UserId": 2, "Username": "c", "Action": "teleported"}])
        with pytest.raises(OxfordAPIError):
            await api.get_join_logs()


class TestExecuteCommand:
    @pytest.mark.asyncio
    async def test_posts_command(self, api: OxfordAPI) -> None:
        execute = _returns(api, {"message": "Success"})

        result = await api.commands.execute(":h Restart in 5")

        execute.assert_awaited_once_with("POST", "/server/command", {"command": ":h Restart in 5"})
        assert result == CommandResult(message="Success")

    @pytest.mark.asyncio
    async def test_empty_response(self, api: OxfordAPI) -> None:
        _returns(api, None)
        assert await api.execute_command(":m hi") == CommandResult()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", ["", None, 42, [":h hi"]])
    async def test_invalid_command_rejected_before_request(self, command: Any) -> None:
        api = OxfordAPI("k", rate_limit="auto")
        api.rest.execute = AsyncMock()  # type: ignore[method-assign]
        bucket = api.rest.bucket
        assert bucket is not None
        tokens_before = bucket.available_tokens

        with pytest.raises(TypeError, match="non-empty string"):
            await api.execute_command(command)

        api.rest.execute.assert_not_awaited()
        assert bucket.metrics.acquired_immediate == 0
        assert bucket.available_tokens == pytest.approx(tokens_before)


class TestEndToEnd:
    """Facade over a real HTTP round trip."""

    @pytest.mark.asyncio
    async def test_players_over_http(self) -> None:
        seen_keys: list[str | None] = []

        async def players(request: web.Request) -> web.Response:
            seen_keys.append(request.headers.get("server-key"))
            return web.json_response([PLAYER_PAYLOAD])

        app = web.Application()
        app.router.add_get("/v1/server/players", players)
        server = TestServer(app)
        await server.start_server()
        try:
            async with OxfordAPI("e2e-key", base_url=str(server.make_url("/v1"))) as api:
                result = await api.get_players()
        finally:
            await server.close()

        assert seen_keys == ["e2e-key"]
        assert result[0].username == "jdoe"
        assert api.rest.bucket is not None
        assert api.rest.bucket.metrics.acquired_immediate == 1
