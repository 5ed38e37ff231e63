"""Format conversion from Markdown documents to Notion blocks."""

from .blocks import BlockType, ContentBlock, RichText, split_block
from .common import (
    MAX_BLOCK_CHARS,
    MAX_BLOCKS_PER_REQUEST,
    PLAIN_TEXT_LANGUAGE,
    markdown_to_notion_lang,
    split_text,
    strip_control_chars,
)
from .links import normalize_link_target, rewrite_links
from .markdown_to_blocks import (
    BlockConverter,
    ClassifiedLine,
    LineKind,
    classify_line,
    extract_frontmatter,
    markdown_to_blocks,
)

__all__ = [
    "BlockConverter",
    "BlockType",
    "ClassifiedLine",
    "ContentBlock",
    "LineKind",
    "MAX_BLOCKS_PER_REQUEST",
    "MAX_BLOCK_CHARS",
    "PLAIN_TEXT_LANGUAGE",
    "RichText",
    "classify_line",
    "extract_frontmatter",
    "markdown_to_blocks",
    "markdown_to_notion_lang",
    "normalize_link_target",
    "rewrite_links",
    "split_block",
    "split_text",
    "strip_control_chars",
]
