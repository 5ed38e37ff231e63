"""Content block model and Notion payload rendering.

A ``ContentBlock`` is one typed unit of page content.  Its text is held as
a tuple of ``RichText`` segments so that rewritten wiki links survive as
hyperlinks; everything else is a single unlinked segment.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .common import PLAIN_TEXT_LANGUAGE, split_ranges


class BlockType(str, Enum):
    """Block variants, valued by their Notion block type name."""

    HEADING = "heading"
    PARAGRAPH = "paragraph"
    BULLETED_ITEM = "bulleted_list_item"
    NUMBERED_ITEM = "numbered_list_item"
    CODE = "code"
    DIVIDER = "divider"


@dataclass(frozen=True)
class RichText:
    """A run of text, optionally hyperlinked."""

    text: str
    url: str | None = None

    def to_notion(self) -> dict[str, Any]:
        text: dict[str, Any] = {"content": self.text}
        if self.url:
            text["link"] = {"url": self.url}
        return {"type": "text", "text": text}


@dataclass(frozen=True)
class ContentBlock:
    """One block of converted content.

    Attributes:
        type: Block variant.
        rich_text: Text segments; empty for dividers.
        level: Heading level 1-3 (headings only).
        language: Notion language name (code blocks only).
    """

    type: BlockType
    rich_text: tuple[RichText, ...] = field(default_factory=tuple)
    level: int | None = None
    language: str | None = None

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def heading(cls, text: str, level: int) -> ContentBlock:
        return cls(
            BlockType.HEADING,
            _plain(text),
            level=min(max(level, 1), 3),
        )

    @classmethod
    def paragraph(cls, text: str) -> ContentBlock:
        return cls(BlockType.PARAGRAPH, _plain(text))

    @classmethod
    def bulleted_item(cls, text: str) -> ContentBlock:
        return cls(BlockType.BULLETED_ITEM, _plain(text))

    @classmethod
    def numbered_item(cls, text: str) -> ContentBlock:
        return cls(BlockType.NUMBERED_ITEM, _plain(text))

    @classmethod
    def code(cls, text: str, language: str = PLAIN_TEXT_LANGUAGE) -> ContentBlock:
        return cls(BlockType.CODE, _plain(text), language=language)

    @classmethod
    def divider(cls) -> ContentBlock:
        return cls(BlockType.DIVIDER)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def text(self) -> str:
        """Plain text of the block (all segments concatenated)."""
        return "".join(segment.text for segment in self.rich_text)

    @property
    def has_links(self) -> bool:
        return any(segment.url for segment in self.rich_text)

    def with_rich_text(self, rich_text: tuple[RichText, ...]) -> ContentBlock:
        """Return a copy of this block carrying *rich_text*."""
        return replace(self, rich_text=rich_text)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def notion_type(self) -> str:
        if self.type is BlockType.HEADING:
            return f"heading_{self.level or 1}"
        return self.type.value

    def to_notion(self) -> dict[str, Any]:
        """Render the Notion API block object for this block."""
        block_type = self.notion_type()
        if self.type is BlockType.DIVIDER:
            return {"object": "block", "type": block_type, "divider": {}}

        body: dict[str, Any] = {
            "rich_text": [segment.to_notion() for segment in self.rich_text]
        }
        if self.type is BlockType.CODE:
            body["language"] = self.language or PLAIN_TEXT_LANGUAGE
        return {"object": "block", "type": block_type, block_type: body}


def _plain(text: str) -> tuple[RichText, ...]:
    return (RichText(text),) if text else ()


# ---------------------------------------------------------------------------
# Size policy
# ---------------------------------------------------------------------------


def split_block(block: ContentBlock, limit: int) -> list[ContentBlock]:
    """Split *block* into same-typed siblings whose text fits *limit*.

    Cut points follow ``split_text`` (last line break inside the window,
    else a hard cut).  Link segments that straddle a cut are divided and
    keep their URL on both sides.
    """
    if block.type is BlockType.DIVIDER or len(block.text) <= limit:
        return [block]

    pieces: list[ContentBlock] = []
    for start, end in split_ranges(block.text, limit):
        segments = _slice_segments(block.rich_text, start, end)
        pieces.append(block.with_rich_text(segments))
    return pieces


def _slice_segments(
    segments: tuple[RichText, ...], start: int, end: int
) -> tuple[RichText, ...]:
    """Return the parts of *segments* covering text offsets [start, end)."""
    result: list[RichText] = []
    offset = 0
    for segment in segments:
        seg_start = offset
        seg_end = offset + len(segment.text)
        offset = seg_end
        lo = max(start, seg_start)
        hi = min(end, seg_end)
        if lo >= hi:
            continue
        result.append(
            RichText(segment.text[lo - seg_start : hi - seg_start], segment.url)
        )
    return tuple(result)
