"""Remote workspace interface used by the sync engine."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class ChildSummary:
    """One child of a remote node.

    Attributes:
        id: Node id.
        type: Notion block type (``child_page``, ``paragraph``, ...).
        title: Page title for ``child_page`` children, else ``""``.
    """

    id: str
    type: str
    title: str = ""

    @property
    def is_page(self) -> bool:
        return self.type in ("child_page", "child_database")


@dataclass(frozen=True)
class ChildPage:
    """One page of a paginated child listing."""

    results: tuple[ChildSummary, ...] = field(default_factory=tuple)
    has_more: bool = False
    next_cursor: str | None = None


class RemoteClient(Protocol):
    """Operations the mirror performs against the remote workspace.

    ``blocks`` arguments are rendered Notion block payloads.  All methods
    raise ``NotionAPIError`` (or a ``requests`` transport error) on failure.
    """

    def verify_connection(self) -> str: ...

    def create_node(
        self,
        parent_id: str,
        title: str,
        properties: dict[str, str] | None = None,
        blocks: Sequence[dict[str, Any]] = (),
    ) -> str: ...

    def append_blocks(
        self, node_id: str, blocks: Sequence[dict[str, Any]]
    ) -> None: ...

    def list_children(
        self, node_id: str, cursor: str | None = None
    ) -> ChildPage: ...

    def delete_node(self, node_id: str) -> None: ...

    def node_exists(self, node_id: str) -> bool: ...
