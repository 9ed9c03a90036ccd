"""
Oxford API client facade.

Typed accessors for every endpoint plus grouped views:
    api.servers   -> server, players, queue, bans, vehicles, robberies
    api.logs      -> kill, command, mod call, radio call, join logs
    api.commands  -> execute(command)

All calls go through OxfordRestClient (admission gate + retry on 429).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, ValidationError

from oxfd.config import (
    DEFAULT_BASE_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_MS,
    ClientConfig,
    RateLimitMode,
)
from oxfd.connectors.rest_client import OxfordRestClient
from oxfd.contracts.models import (
    Ban,
    CommandLog,
    CommandResult,
    JoinLog,
    KillLog,
    ModCall,
    Player,
    Queue,
    RadioCall,
    Robbery,
    ServerInfo,
    Vehicle,
)
from oxfd.errors import OxfordAPIError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _shape_error(path: str, exc: ValidationError) -> OxfordAPIError:
    return OxfordAPIError(
        f"Unexpected response shape: {path}",
        200,
        f"{exc.error_count()} validation error(s): {exc.errors()[0]['msg']}",
    )


def _to_model(model: type[ModelT], data: Any, path: str) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise _shape_error(path, e) from e


def _to_models(model: type[ModelT], data: Any, path: str) -> list[ModelT]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise OxfordAPIError(
            f"Unexpected response shape: {path}",
            200,
            f"expected a list, got {type(data).__name__}",
        )
    try:
        return [model.model_validate(item) for item in data]
    except ValidationError as e:
        raise _shape_error(path, e) from e


class OxfordAPI:
    """
    Async client for the Oxford game server API.

    Usage:
        async with OxfordAPI("my-server-key") as api:
            players = await api.get_players()
            await api.commands.execute(":h Hello")
    """

    def __init__(
        self,
        server_key: str | None = None,
        *,
        rate_limit: str | float = RateLimitMode.AUTO.value,
        max_retries: int = DEFAULT_MAX_RETRIES,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        base_url: str = DEFAULT_BASE_URL,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            server_key: API key. Falls back to OXFD_SERVER_KEY.
            rate_limit: "auto" (~29 req/s with burst), "none", or seconds
                between requests.
            max_retries: Retries on 429.
            timeout_ms: Per-attempt request timeout in milliseconds.
            base_url: API base URL.
            sleep_fn: Coroutine used for the 429 retry delay.

        Raises:
            ValueError: If the server key is missing or an option is invalid.
        """
        config = ClientConfig(
            server_key=server_key or "",
            rate_limit=rate_limit,
            max_retries=max_retries,
            timeout_ms=timeout_ms,
            base_url=base_url,
        )
        self._rest = OxfordRestClient(config, sleep_fn=sleep_fn)

        self.servers = Servers(self)
        self.logs = Logs(self)
        self.commands = Commands(self)

    @property
    def rest(self) -> OxfordRestClient:
        """Underlying request executor."""
        return self._rest

    @property
    def config(self) -> ClientConfig:
        return self._rest.config

    async def close(self) -> None:
        """Close the HTTP session."""
        await self._rest.close()

    async def __aenter__(self) -> OxfordAPI:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _get(self, path: str) -> Any:
        return await self._rest.execute("GET", path)

    async def _post(self, path: str, body: Any) -> Any:
        return await self._rest.execute("POST", path, body)

    async def get_server(self) -> ServerInfo:
        """Fetch server name, owner, player counts and world state."""
        path = "/server"
        return _to_model(ServerInfo, await self._get(path), path)

    async def get_players(self) -> list[Player]:
        path = "/server/players"
        return _to_models(Player, await self._get(path), path)

    async def get_queue(self) -> Queue:
        """Fetch the join queue."""
        path = "/server/queue"
        return _to_model(Queue, await self._get(path), path)

    async def get_bans(self) -> list[Ban]:
        path = "/server/bans"
        return _to_models(Ban, await self._get(path), path)

    async def get_kill_logs(self) -> list[KillLog]:
        path = "/server/killlogs"
        return _to_models(KillLog, await self._get(path), path)

    async def get_command_logs(self) -> list[CommandLog]:
        path = "/server/commandlogs"
        return _to_models(CommandLog, await self._get(path), path)

    async def get_mod_calls(self) -> list[ModCall]:
        path = "/server/modcalls"
        return _to_models(ModCall, await self._get(path), path)

    async def get_vehicles(self) -> list[Vehicle]:
        path = "/server/vehicles"
        return _to_models(Vehicle, await self._get(path), path)

    async def get_robberies(self) -> list[Robbery]:
        path = "/server/robberies"
        return _to_models(Robbery, await self._get(path), path)

    async def get_radio_calls(self) -> list[RadioCall]:
        path = "/server/radiocalls"
        return _to_models(RadioCall, await self._get(path), path)

    async def get_join_logs(self) -> list[JoinLog]:
        path = "/server/joinlogs"
        return _to_models(JoinLog, await self._get(path), path)

    async def execute_command(self, command: str) -> CommandResult:
        """
        Run an admin command on the game server.

        Args:
            command: Command text, e.g. ":h Server restart in 5 minutes".

        Returns:
            Server acknowledgment.

        Raises:
            TypeError: If command is not a non-empty string. Raised before
                any admission token or network call is used.
        """
        if not isinstance(command, str) or not command:
            raise TypeError("command must be a non-empty string")

        path = "/server/command"
        logger.info("Executing server command", extra={"length": len(command)})
        data = await self._post(path, {"command": command})
        return _to_model(CommandResult, data if data is not None else {}, path)


class Servers:
    """Server state endpoints."""

    def __init__(self, api: OxfordAPI) -> None:
        self._api = api

    async def get_server(self) -> ServerInfo:
        return await self._api.get_server()

    async def get_players(self) -> list[Player]:
        return await self._api.get_players()

    async def get_queue(self) -> Queue:
        return await self._api.get_queue()

    async def get_bans(self) -> list[Ban]:
        return await self._api.get_bans()

    async def get_vehicles(self) -> list[Vehicle]:
        return await self._api.get_vehicles()

    async def get_robberies(self) -> list[Robbery]:
        return await self._api.get_robberies()


class Logs:
    """Server log endpoints."""

    def __init__(self, api: OxfordAPI) -> None:
        self._api = api

    async def get_kill_logs(self) -> list[KillLog]:
        return await self._api.get_kill_logs()

    async def get_command_logs(self) -> list[CommandLog]:
        return await self._api.get_command_logs()

    async def get_mod_calls(self) -> list[ModCall]:
        return await self._api.get_mod_calls()

    async def get_radio_calls(self) -> list[RadioCall]:
        return await self._api.get_radio_calls()

    async def get_join_logs(self) -> list[JoinLog]:
        return await self._api.get_join_logs()


class Commands:
    """Command execution."""

    def __init__(self, api: OxfordAPI) -> None:
        self._api = api

    async def execute(self, command: str) -> CommandResult:
        return await self._api.execute_command(command)
