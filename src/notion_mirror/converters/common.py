"""Common types and utilities for Markdown to Notion block conversion."""

import re

# =============================================================================
# Remote limits
# =============================================================================
#
# Notion rejects a rich_text content string longer than 2000 characters and
# any request carrying more than 100 children.  The converter splits blocks
# to stay under the first limit; the engine batches requests well under the
# second.
# =============================================================================

MAX_BLOCK_CHARS = 2000
MAX_BLOCKS_PER_REQUEST = 100

# =============================================================================
# Code Block Language Mapping
# =============================================================================
#
# Markdown fences carry free-form language tags (```py, ```sh, ```c++).
# Notion accepts a fixed enumeration of language names and rejects the
# whole request for anything else, so every tag is normalised to a member
# of NOTION_LANGUAGES, falling back to plain text.
# =============================================================================

PLAIN_TEXT_LANGUAGE = "plain text"

NOTION_LANGUAGES: frozenset[str] = frozenset(
    {
        "abap",
        "arduino",
        "bash",
        "basic",
        "c",
        "c#",
        "c++",
        "clojure",
        "coffeescript",
        "css",
        "dart",
        "diff",
        "docker",
        "elixir",
        "elm",
        "erlang",
        "f#",
        "flow",
        "fortran",
        "gherkin",
        "glsl",
        "go",
        "graphql",
        "groovy",
        "haskell",
        "html",
        "java",
        "javascript",
        "json",
        "julia",
        "kotlin",
        "latex",
        "less",
        "lisp",
        "livescript",
        "lua",
        "makefile",
        "markdown",
        "markup",
        "matlab",
        "mermaid",
        "nix",
        "objective-c",
        "ocaml",
        "pascal",
        "perl",
        "php",
        PLAIN_TEXT_LANGUAGE,
        "powershell",
        "prolog",
        "protobuf",
        "python",
        "r",
        "reason",
        "ruby",
        "rust",
        "sass",
        "scala",
        "scheme",
        "scss",
        "shell",
        "sql",
        "swift",
        "typescript",
        "vb.net",
        "verilog",
        "vhdl",
        "visual basic",
        "webassembly",
        "xml",
        "yaml",
    }
)

# Markdown fence tag -> Notion language name
# Only aliases are listed; tags that already are Notion names pass through.
_LANGUAGE_ALIASES: dict[str, str] = {
    # Python
    "py": "python",
    "python3": "python",
    "py3": "python",
    # JavaScript / TypeScript
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    # Shells
    "sh": "shell",
    "zsh": "shell",
    "console": "shell",
    "shellscript": "shell",
    "ps": "powershell",
    "ps1": "powershell",
    "pwsh": "powershell",
    # C family
    "h": "c",
    "cpp": "c++",
    "cxx": "c++",
    "cc": "c++",
    "hpp": "c++",
    "cs": "c#",
    "csharp": "c#",
    "objc": "objective-c",
    "objectivec": "objective-c",
    "fs": "f#",
    "fsharp": "f#",
    "vb": "visual basic",
    # Others
    "golang": "go",
    "rb": "ruby",
    "rs": "rust",
    "kt": "kotlin",
    "kts": "kotlin",
    "hs": "haskell",
    "ex": "elixir",
    "exs": "elixir",
    "erl": "erlang",
    "clj": "clojure",
    "proto": "protobuf",
    "tex": "latex",
    "yml": "yaml",
    "md": "markdown",
    "htm": "html",
    "svg": "xml",
    "dockerfile": "docker",
    "make": "makefile",
    "mk": "makefile",
    "wasm": "webassembly",
    "gql": "graphql",
    "jsonc": "json",
    "patch": "diff",
    # Text/plaintext normalization
    "text": PLAIN_TEXT_LANGUAGE,
    "txt": PLAIN_TEXT_LANGUAGE,
    "plain": PLAIN_TEXT_LANGUAGE,
    "plaintext": PLAIN_TEXT_LANGUAGE,
}


def markdown_to_notion_lang(lang: str) -> str:
    """
    Convert a Markdown code fence language tag to a Notion language name.

    Args:
        lang: Fence info string (e.g., 'py', 'Bash ', 'c++ title="x"')

    Returns:
        Member of NOTION_LANGUAGES. Unknown or empty tags map to 'plain text'.

    Examples:
        >>> markdown_to_notion_lang("py")
        'python'
        >>> markdown_to_notion_lang("Rust")
        'rust'
        >>> markdown_to_notion_lang("brainfuck")
        'plain text'
    """
    tokens = lang.strip().lower().split()
    if not tokens:
        return PLAIN_TEXT_LANGUAGE
    token = tokens[0]

    if token in _LANGUAGE_ALIASES:
        return _LANGUAGE_ALIASES[token]
    if token in NOTION_LANGUAGES:
        return token
    return PLAIN_TEXT_LANGUAGE


# =============================================================================
# Text hygiene
# =============================================================================

# ASCII control characters except tab (0x09) and newline (0x0a)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f]")


def strip_control_chars(text: str) -> str:
    """Remove control characters the Notion API rejects.

    Carriage returns are in the stripped range, so CRLF line endings come
    out as LF.
    """
    return _CONTROL_CHARS.sub("", text)


def split_text(text: str, limit: int) -> list[str]:
    """Split *text* into fragments no longer than *limit* characters.

    Each cut is made at the last newline inside the window (the newline
    itself is dropped); when the window has no newline the cut falls
    exactly at *limit*.

    Args:
        text: Text to split.
        limit: Maximum fragment length (must be positive).

    Returns:
        Fragments in order.  Text already within the limit is returned
        as a single fragment.
    """
    return [text[start:end] for start, end in split_ranges(text, limit)]


def split_ranges(text: str, limit: int) -> list[tuple[int, int]]:
    """Return ``(start, end)`` offsets of the fragments ``split_text`` makes."""
    if limit < 1:
        raise ValueError(f"limit must be positive, got {limit}")

    ranges: list[tuple[int, int]] = []
    start = 0
    while len(text) - start > limit:
        window_end = start + limit
        cut = text.rfind("\n", start, window_end + 1)
        if cut > start:
            ranges.append((start, cut))
            start = cut + 1
        else:
            ranges.append((start, window_end))
            start = window_end
    if start < len(text) or not ranges:
        ranges.append((start, len(text)))
    return ranges
