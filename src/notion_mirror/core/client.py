import logging
import threading
from collections.abc import Sequence
from typing import Any

import requests

from ..config import Config
from .remote import ChildPage, ChildSummary

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
MAX_PAGE_SIZE = 100
MAX_TEXT_CHARS = 2000


class NotionAPIError(Exception):
    """Error response from the Notion API.

    Attributes:
        status: HTTP status code.
        code: Notion error code (``object_not_found``, ``rate_limited``, ...).
        message: Human-readable message from the response body.
    """

    def __init__(self, status: int, code: str = "", message: str = ""):
        self.status = status
        self.code = code
        self.message = message or f"HTTP {status}"
        super().__init__(f"Notion API error {status} ({code}): {self.message}")

    @property
    def retryable(self) -> bool:
        return self.status == 429 or self.status >= 500

    @property
    def not_found(self) -> bool:
        return self.status == 404

    @classmethod
    def from_response(cls, response: requests.Response) -> "NotionAPIError":
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return cls(
            response.status_code,
            str(body.get("code", "")),
            str(body.get("message", "")) or response.reason or "",
        )


def is_retryable_error(exc: BaseException) -> bool:
    """Return True for rate limits, 5xx responses, and transport failures."""
    if isinstance(exc, NotionAPIError):
        return exc.retryable
    return isinstance(exc, (requests.ConnectionError, requests.Timeout))


def _text(content: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": {"content": content[:MAX_TEXT_CHARS]}}]


class NotionClient:
    def __init__(self, config: Config):
        self.config = config
        self.base_url = NOTION_API_URL
        self._thread_local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update(
            {
                "Authorization": f"Bearer {self.config.token}",
                "Notion-Version": self.config.notion_version,
                "Content-Type": "application/json",
            }
        )
        return session

    def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Make a request to the Notion API and return the decoded body.

        Raises:
            NotionAPIError: On any non-2xx response.
            requests.ConnectionError, requests.Timeout: On transport failure.
        """
        response = self._get_session().request(
            method,
            f"{self.base_url}/{path.lstrip('/')}",
            json=payload,
            params=params,
            timeout=(10, 60),
        )
        if response.status_code >= 400:
            error = NotionAPIError.from_response(response)
            logger.debug("%s %s failed: %s", method, path, error)
            raise error
        if not response.content:
            return {}
        return response.json()

    def verify_connection(self) -> str:
        """
        Check the token by fetching the integration's bot user.
        Returns the bot's name (or id) if successful.
        """
        me = self._request("GET", "users/me")
        return str(me.get("name") or me.get("id") or "")

    def create_node(
        self,
        parent_id: str,
        title: str,
        properties: dict[str, str] | None = None,
        blocks: Sequence[dict[str, Any]] = (),
    ) -> str:
        """
        Create a page under *parent_id*.

        Args:
            parent_id: Parent page id
            title: Page title
            properties: Extra text properties (frontmatter); keys that are
                empty or equal to "title" are ignored
            blocks: Initial children (at most 100)

        Returns:
            The new page id
        """
        if len(blocks) > MAX_PAGE_SIZE:
            raise ValueError(
                f"Cannot create a page with {len(blocks)} children; "
                f"the limit is {MAX_PAGE_SIZE}"
            )

        page_properties: dict[str, Any] = {"title": {"title": _text(title)}}
        for key, value in (properties or {}).items():
            key = key.strip()
            if not key or key.lower() == "title":
                continue
            page_properties[key] = {"rich_text": _text(str(value))}

        payload: dict[str, Any] = {
            "parent": {"page_id": parent_id},
            "properties": page_properties,
        }
        if blocks:
            payload["children"] = list(blocks)

        page = self._request("POST", "pages", payload)
        logger.debug("Created page %s (%s) under %s", page["id"], title, parent_id)
        return page["id"]

    def append_blocks(
        self, node_id: str, blocks: Sequence[dict[str, Any]]
    ) -> None:
        """Append *blocks* (at most 100) to the end of *node_id*."""
        if not blocks:
            return
        if len(blocks) > MAX_PAGE_SIZE:
            raise ValueError(
                f"Cannot append {len(blocks)} blocks in one request; "
                f"the limit is {MAX_PAGE_SIZE}"
            )
        self._request(
            "PATCH", f"blocks/{node_id}/children", {"children": list(blocks)}
        )

    def list_children(
        self, node_id: str, cursor: str | None = None
    ) -> ChildPage:
        """Return one page of *node_id*'s children."""
        params: dict[str, Any] = {"page_size": MAX_PAGE_SIZE}
        if cursor:
            params["start_cursor"] = cursor
        data = self._request("GET", f"blocks/{node_id}/children", params=params)

        children = []
        for block in data.get("results", []):
            block_type = block.get("type", "")
            title = ""
            match block_type:
                case "child_page" | "child_database":
                    title = block.get(block_type, {}).get("title", "")
            children.append(ChildSummary(block["id"], block_type, title))

        return ChildPage(
            results=tuple(children),
            has_more=bool(data.get("has_more")),
            next_cursor=data.get("next_cursor"),
        )

    def delete_node(self, node_id: str) -> None:
        """Archive a block or page (Notion moves it to the trash)."""
        self._request("DELETE", f"blocks/{node_id}")

    def node_exists(self, node_id: str) -> bool:
        """
        Return True if *node_id* is a live (non-archived) page.

        A 404 means the page is gone or not shared with the integration.
        """
        try:
            page = self._request("GET", f"pages/{node_id}")
        except NotionAPIError as err:
            if err.not_found:
                return False
            raise
        return not (page.get("archived") or page.get("in_trash"))
