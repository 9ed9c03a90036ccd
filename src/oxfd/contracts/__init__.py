"""Response contracts for the Oxford API."""

from oxfd.contracts.models import (
    ApiModel,
    Ban,
    CommandLog,
    CommandResult,
    JoinLog,
    KillLog,
    ModCall,
    ModCallResponder,
    Player,
    Queue,
    RadioCall,
    Robbery,
    ServerInfo,
    Vehicle,
)

__all__ = [
    "ApiModel",
    "Ban",
    "CommandLog",
    "CommandResult",
    "JoinLog",
    "KillLog",
    "ModCall",
    "ModCallResponder",
    "Player",
    "Queue",
    "RadioCall",
    "Robbery",
    "ServerInfo",
    "Vehicle",
]
