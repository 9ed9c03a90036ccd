"""
Response contracts for the Oxford API.

The API speaks PascalCase; models expose snake_case attributes and accept
either spelling on input. Unknown fields are kept so new API fields do not
break older clients.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal


class ApiModel(BaseModel):
    """Base for PascalCase API payloads."""

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        alias_generator=to_pascal,
        populate_by_name=True,
    )


class ServerInfo(ApiModel):
    """GET /server"""

    name: str
    styled_name: str
    description: str
    tags: list[str] = Field(default_factory=list)
    theme_colour: str
    owner_id: int
    current_players: int = Field(..., ge=0)
    max_players: int = Field(..., ge=0)
    join_code: str
    created_at: int = Field(..., description="Unix timestamp (s)")
    packages: list[str] = Field(default_factory=list)
    weather: str
    time_of_day: str


class Player(ApiModel):
    """Entry of GET /server/players"""

    username: str
    display_name: str
    user_id: int
    team: str
    wanted_level: int = 0
    permission: str
    callsign: str | None = None
    location: str


class Queue(BaseModel):
    """GET /server/queue"""

    model_config = ConfigDict(frozen=True, extra="allow")

    total: int = Field(..., ge=0)
    users: list[int] = Field(default_factory=list)


class Ban(ApiModel):
    """Entry of GET /server/bans"""

    user_id: int
    username: str
    reason: str
    banned_by: str
    banned_by_id: int
    expiry: int


class KillLog(ApiModel):
    """Entry of GET /server/killlogs"""

    timestamp: int
    killer_user_id: int
    killer_username: str
    victim_user_id: int
    victim_username: str
    distance: float
    weapon: str


class CommandLog(ApiModel):
    """Entry of GET /server/commandlogs"""

    timestamp: int
    user_id: int
    username: str
    command: str
    args: list[str] = Field(default_factory=list)


class JoinLog(ApiModel):
    """Entry of GET /server/joinlogs"""

    timestamp: int
    user_id: int
    username: str
    action: Literal["joined", "left"]


class ModCallResponder(ApiModel):
    user_id: int
    username: str


class ModCall(ApiModel):
    """Entry of GET /server/modcalls"""

    timestamp: int
    caller_user_id: int
    caller_username: str
    caller_display_name: str
    case_id: str
    responders: list[ModCallResponder] = Field(default_factory=list)


class Vehicle(ApiModel):
    """Entry of GET /server/vehicles"""

    owner_user_id: int
    owner_username: str
    registration: str
    model: str
    electric: bool
    els: bool = Field(..., alias="ELS")
    els_style: str = Field(..., alias="ELS_Style")


class Robbery(ApiModel):
    """Entry of GET /server/robberies"""

    name: str
    alarm: bool
    available: bool


class RadioCall(ApiModel):
    """Entry of GET /server/radiocalls"""

    timestamp: int
    author_user_id: int
    author_username: str
    location: str
    description: str
    channel: str


class CommandResult(BaseModel):
    """POST /server/command acknowledgment."""

    model_config = ConfigDict(frozen=True, extra="allow")

    message: str = ""
