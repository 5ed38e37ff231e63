"""Wiki-link rewriting.

Vault documents cross-reference each other with ``[[target]]``,
``[[target|label]]`` and ``![[target]]`` (embed) syntax.  Those references
mean nothing to Notion, so each one is turned into a hyperlink to the
target's mirrored page when its node id is already known, and into its
plain label otherwise.  Forward references to documents the current pass
has not reached yet therefore degrade to text until the next pass.
"""

from __future__ import annotations

import re
from typing import Callable

from .blocks import RichText

WIKILINK_PATTERN = re.compile(r"(!?)\[\[([^\[\]|]+?)(?:\|([^\[\]]*))?\]\]")

LinkResolver = Callable[[str], str | None]


def normalize_link_target(target: str) -> str:
    """Strip heading (``#``) and block (``^``) anchors from a link target."""
    for marker in ("#", "^"):
        index = target.find(marker)
        if index != -1:
            target = target[:index]
    return target.strip()


def link_label(target: str, label: str | None) -> str:
    """Return the text shown for a link: its alias, else the raw target."""
    if label is not None and label.strip():
        return label.strip()
    return target.strip()


def rewrite_links(
    text: str, resolve_url: LinkResolver | None = None
) -> tuple[RichText, ...]:
    """Split *text* into rich text segments with wiki links rewritten.

    Args:
        text: Block text possibly containing wiki links.
        resolve_url: Callback mapping a link target to a page URL, or
            ``None`` when the target is unknown.  Without a callback every
            link degrades to its label.

    Returns:
        Segments whose concatenated text is *text* with each link replaced
        by its label.  Adjacent plain segments are merged.
    """
    segments: list[RichText] = []
    position = 0

    for match in WIKILINK_PATTERN.finditer(text):
        if match.start() > position:
            _append(segments, RichText(text[position : match.start()]))
        raw_target = match.group(2)
        label = link_label(raw_target, match.group(3))
        url = None
        target = normalize_link_target(raw_target)
        if resolve_url is not None and target:
            url = resolve_url(target)
        _append(segments, RichText(label, url))
        position = match.end()

    if position < len(text):
        _append(segments, RichText(text[position:]))

    return tuple(segments)


def _append(segments: list[RichText], segment: RichText) -> None:
    if not segment.text:
        return
    if segments and segment.url is None and segments[-1].url is None:
        segments[-1] = RichText(segments[-1].text + segment.text)
    else:
        segments.append(segment)
