"""
Async Python client for the Oxford game server API.

    from oxfd import OxfordAPI, RateLimitError

    async with OxfordAPI("my-server-key", rate_limit="auto") as api:
        server = await api.get_server()
"""

from oxfd.api import Commands, Logs, OxfordAPI, Servers
from oxfd.config import ClientConfig, RateLimitMode
from oxfd.errors import (
    AuthError,
    ErrorKind,
    OxfordAPIError,
    RateLimitError,
    ServerUnavailableError,
)

__version__ = "1.0.0"

__all__ = [
    "AuthError",
    "ClientConfig",
    "Commands",
    "ErrorKind",
    "Logs",
    "OxfordAPI",
    "OxfordAPIError",
    "RateLimitError",
    "RateLimitMode",
    "ServerUnavailableError",
    "Servers",
    "__version__",
]
