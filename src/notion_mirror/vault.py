"""Vault access: document enumeration and encoding-aware reads.

``VaultSource`` is what the sync engine needs from a vault.
``FileSystemVault`` implements it over a local directory of ``.md`` files.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path, PurePosixPath
from typing import Protocol

from charset_normalizer import from_bytes

from .sync.models import DocumentRef

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".md"


class VaultSource(Protocol):
    def enumerate_documents(
        self, excluded_prefixes: Iterable[str] = ()
    ) -> list[DocumentRef]: ...

    def read_content(self, doc: DocumentRef) -> str: ...


# =============================================================================
# Path helpers
# =============================================================================


def is_excluded(local_path: str, excluded_prefixes: Iterable[str]) -> bool:
    """Return True if *local_path* is, or lies under, an excluded folder.

    Matching is by exact path or ``prefix/``, so excluding ``Notes``
    does not exclude ``Notes2/a.md``.
    """
    for prefix in excluded_prefixes:
        prefix = prefix.strip("/")
        if not prefix:
            continue
        if local_path == prefix or local_path.startswith(prefix + "/"):
            return True
    return False


def make_document_ref(local_path: str, mtime_ms: int | None = None) -> DocumentRef:
    """Build a ``DocumentRef`` from a vault-relative POSIX path."""
    posix = PurePosixPath(local_path)
    parent = str(posix.parent)
    return DocumentRef(
        local_path=str(posix),
        display_name=posix.stem,
        parent_path="" if parent == "." else parent,
        mtime_ms=mtime_ms,
    )


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes, then lets charset-normalizer pick the encoding.
    Empty files and failed detection fall back to UTF-8.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    raw = path.read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        return (raw.decode("utf-8", errors="replace"), "utf-8")

    encoding = result.encoding
    # ascii is a strict subset of utf-8
    if encoding == "ascii":
        encoding = "utf-8"
    return (str(result), encoding)


# =============================================================================
# File-system vault
# =============================================================================


class FileSystemVault:
    """A vault rooted at a local directory.

    Every ``*.md`` file is a document.  Path segments starting with ``.``
    (``.obsidian``, ``.trash``, the state directory) are skipped.

    Args:
        root: Vault directory.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def enumerate_documents(
        self, excluded_prefixes: Iterable[str] = ()
    ) -> list[DocumentRef]:
        """Return the vault's documents, sorted by ``local_path``.

        Raises:
            FileNotFoundError: If the vault directory does not exist.
            NotADirectoryError: If the vault path is not a directory.
        """
        if not self.root.exists():
            raise FileNotFoundError(f"Vault directory does not exist: {self.root}")
        if not self.root.is_dir():
            raise NotADirectoryError(f"Vault path is not a directory: {self.root}")

        excluded = list(excluded_prefixes)
        docs: list[DocumentRef] = []
        for path in self.root.rglob(f"*{DOCUMENT_SUFFIX}"):
            rel = path.relative_to(self.root)
            if any(part.startswith(".") for part in rel.parts):
                continue
            if not path.is_file():
                continue
            local_path = rel.as_posix()
            if is_excluded(local_path, excluded):
                continue
            try:
                mtime_ms = int(path.stat().st_mtime * 1000)
            except OSError:
                mtime_ms = None
            docs.append(make_document_ref(local_path, mtime_ms))

        docs.sort(key=lambda d: d.local_path)
        logger.debug("Enumerated %d documents under %s", len(docs), self.root)
        return docs

    def read_content(self, doc: DocumentRef) -> str:
        """Read *doc*'s text.

        Raises:
            OSError: If the file cannot be read.
        """
        content, encoding = read_file_with_encoding(
            self.root / PurePosixPath(doc.local_path)
        )
        if encoding != "utf-8":
            logger.debug("Decoded %s as %s", doc.local_path, encoding)
        return content
