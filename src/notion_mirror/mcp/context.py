"""Objects shared by MCP tool handlers for the server's lifetime."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import Config
    from ..core.remote import RemoteClient
    from ..sync.engine import SyncEngine


@dataclass
class ServerContext:
    """Client, engine and pass lock handed to every tool handler.

    Attributes:
        client: Remote workspace client.
        engine: The engine whose node cache persists across tool calls.
        config: Runtime configuration.
        pass_lock: Held while a sync pass runs; passes never overlap.
    """

    client: RemoteClient
    engine: SyncEngine
    config: Config
    pass_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
