"""Markdown to Notion block conversion.

Conversion is a single left-to-right pass over the document's lines.  Each
line is first classified into exactly one ``LineKind``; the converter then
acts on the classification with two pieces of state: whether a code fence
is open, and the paragraph lines accumulated so far.

Only the constructs Notion has a direct block for are recognised (headings,
paragraphs, flat list items, fenced code, dividers).  Inline Markdown is
carried as literal text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from .blocks import BlockType, ContentBlock, split_block
from .common import (
    MAX_BLOCK_CHARS,
    PLAIN_TEXT_LANGUAGE,
    markdown_to_notion_lang,
    strip_control_chars,
)
from .links import LinkResolver, rewrite_links

logger = logging.getLogger(__name__)

FENCE_MARKER = "```"
FRONTMATTER_DELIMITER = "---"

_HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.*?)\s*$")
_BULLET_PATTERN = re.compile(r"^\s*[-*+]\s+(.*)$")
_NUMBERED_PATTERN = re.compile(r"^\s*\d+[.)]\s+(.*)$")
_DIVIDER_PATTERN = re.compile(r"^\s*([-_*])(?:\s*\1){2,}\s*$")


# =============================================================================
# Frontmatter
# =============================================================================


def extract_frontmatter(text: str) -> tuple[dict[str, str], str]:
    """Split leading ``---`` frontmatter from a document.

    The interior is read as ``key: value`` lines; surrounding quotes are
    removed from values.  Lines without a colon or with an empty key are
    ignored.  Nested YAML structures are not interpreted.

    Args:
        text: Raw document text.

    Returns:
        ``(metadata, body)``.  When the text does not open with a delimiter
        line, or the block is never closed, metadata is empty and body is
        the whole text.
    """
    lines = text.split("\n")
    if not lines or lines[0].strip() != FRONTMATTER_DELIMITER:
        return {}, text

    closing = None
    for index in range(1, len(lines)):
        if lines[index].strip() == FRONTMATTER_DELIMITER:
            closing = index
            break
    if closing is None:
        return {}, text

    metadata: dict[str, str] = {}
    for line in lines[1:closing]:
        key, sep, value = line.partition(":")
        key = strip_control_chars(key).strip()
        if not sep or not key:
            continue
        metadata[key] = _strip_quotes(strip_control_chars(value).strip())

    body = "\n".join(lines[closing + 1 :])
    return metadata, body


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


# =============================================================================
# Line classification
# =============================================================================


class LineKind(str, Enum):
    """Classification of a single source line."""

    FENCE = "fence"
    CODE = "code"
    HEADING = "heading"
    BULLET = "bullet"
    NUMBERED = "numbered"
    DIVIDER = "divider"
    BLANK = "blank"
    TEXT = "text"


@dataclass(frozen=True)
class ClassifiedLine:
    """A source line tagged with its kind and extracted payload.

    Attributes:
        kind: Line classification.
        text: Payload text (heading/list text, code line, raw text line).
        level: Heading level, clamped to 1-3.
        language: Notion language for an opening fence.
    """

    kind: LineKind
    text: str = ""
    level: int | None = None
    language: str | None = None


def classify_line(line: str, in_fence: bool) -> ClassifiedLine:
    """Classify *line* given whether a code fence is currently open.

    Inside a fence every line is code except a closing fence marker.
    Outside a fence the rules are tried in order: fence, divider, heading,
    bullet, numbered item, blank, text.  Dividers are tested before bullets
    so that ``* * *`` is a rule, not a list item.
    """
    stripped = line.lstrip()

    if in_fence:
        if stripped.startswith(FENCE_MARKER):
            return ClassifiedLine(LineKind.FENCE)
        return ClassifiedLine(LineKind.CODE, line)

    if stripped.startswith(FENCE_MARKER):
        info = stripped[len(FENCE_MARKER) :]
        return ClassifiedLine(
            LineKind.FENCE, language=markdown_to_notion_lang(info)
        )

    if _DIVIDER_PATTERN.match(line):
        return ClassifiedLine(LineKind.DIVIDER)

    match = _HEADING_PATTERN.match(line)
    if match:
        level = min(len(match.group(1)), 3)
        return ClassifiedLine(LineKind.HEADING, match.group(2), level=level)

    match = _BULLET_PATTERN.match(line)
    if match:
        return ClassifiedLine(LineKind.BULLET, match.group(1).strip())

    match = _NUMBERED_PATTERN.match(line)
    if match:
        return ClassifiedLine(LineKind.NUMBERED, match.group(1).strip())

    if not line.strip():
        return ClassifiedLine(LineKind.BLANK)

    return ClassifiedLine(LineKind.TEXT, line)


# =============================================================================
# Converter
# =============================================================================


class BlockConverter:
    """Convert Markdown text into an ordered list of ``ContentBlock``.

    Args:
        max_block_chars: Per-block character limit; longer blocks are split
            into siblings of the same type.
    """

    def __init__(self, max_block_chars: int = MAX_BLOCK_CHARS) -> None:
        if max_block_chars < 1:
            raise ValueError(
                f"max_block_chars must be positive, got {max_block_chars}"
            )
        self.max_block_chars = max_block_chars

    def convert(
        self, text: str, link_resolver: LinkResolver | None = None
    ) -> list[ContentBlock]:
        """Convert document body *text* to blocks.

        Args:
            text: Markdown body (frontmatter already removed).
            link_resolver: Optional callback used to turn wiki links into
                hyperlinks; see ``rewrite_links``.

        Returns:
            Blocks in document order, each within ``max_block_chars``.
        """
        structural = self._scan(strip_control_chars(text))

        blocks: list[ContentBlock] = []
        for block in structural:
            if block.type not in (BlockType.CODE, BlockType.DIVIDER):
                block = block.with_rich_text(
                    rewrite_links(block.text, link_resolver)
                )
            blocks.extend(split_block(block, self.max_block_chars))
        return blocks

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _scan(self, text: str) -> list[ContentBlock]:
        blocks: list[ContentBlock] = []
        paragraph: list[str] = []
        code_lines: list[str] = []
        code_language: str | None = None
        in_fence = False

        def flush_paragraph() -> None:
            if paragraph:
                blocks.append(ContentBlock.paragraph("\n".join(paragraph)))
                paragraph.clear()

        for line in text.split("\n"):
            classified = classify_line(line, in_fence)

            match classified.kind:
                case LineKind.FENCE if in_fence:
                    blocks.append(
                        ContentBlock.code(
                            "\n".join(code_lines),
                            code_language or PLAIN_TEXT_LANGUAGE,
                        )
                    )
                    code_lines.clear()
                    in_fence = False
                case LineKind.FENCE:
                    flush_paragraph()
                    code_language = classified.language
                    in_fence = True
                case LineKind.CODE:
                    code_lines.append(classified.text)
                case LineKind.HEADING:
                    flush_paragraph()
                    blocks.append(
                        ContentBlock.heading(
                            classified.text, classified.level or 1
                        )
                    )
                case LineKind.BULLET:
                    flush_paragraph()
                    blocks.append(ContentBlock.bulleted_item(classified.text))
                case LineKind.NUMBERED:
                    flush_paragraph()
                    blocks.append(ContentBlock.numbered_item(classified.text))
                case LineKind.DIVIDER:
                    flush_paragraph()
                    blocks.append(ContentBlock.divider())
                case LineKind.BLANK:
                    flush_paragraph()
                case LineKind.TEXT:
                    paragraph.append(classified.text)

        if in_fence:
            logger.debug(
                "Unterminated code fence at end of input; emitting %d lines",
                len(code_lines),
            )
            blocks.append(
                ContentBlock.code(
                    "\n".join(code_lines),
                    code_language or PLAIN_TEXT_LANGUAGE,
                )
            )
        flush_paragraph()

        return blocks


def markdown_to_blocks(
    text: str,
    link_resolver: LinkResolver | None = None,
    max_block_chars: int = MAX_BLOCK_CHARS,
) -> list[ContentBlock]:
    """Convert Markdown *text* to blocks with a one-off ``BlockConverter``."""
    return BlockConverter(max_block_chars).convert(text, link_resolver)
