"""Text normalization for deterministic command resolution."""

from __future__ import annotations

import re

_CONTRACTIONS: tuple[tuple[str, str], ...] = (
    ("won't", "will not"),
    ("don't", "do not"),
    ("can't", "cannot"),
    ("i'll", "i will"),
    ("i'm", "i am"),
)

_MULTISPACE_RE = re.compile(r"\s+")
_SEPARATOR_RE = re.compile(r"[,;]")
_SENTENCE_END_RE = re.compile(r"[.!?]+")

BOT_MENTION_RE = re.compile(r"@fit.?bounty", flags=re.IGNORECASE)


def normalize_text(text: str) -> str:
    """Normalize a post for rules-based command matching.

    Normalization is intentionally conservative:
        - Lowercase and trim.
        - Expand a handful of common contractions.
        - Collapse whitespace to single spaces.
        - Collapse `,`/`;` to `,` and runs of `.`/`!`/`?` to a single `.`.

    Mentions (`@handle`) and numbers are preserved as-is so rule capture groups can see them.
    """

    value = (text or "").lower().strip()

    # Typographic apostrophes are common on mobile clients.
    value = value.replace("’", "'")

    for contraction, expansion in _CONTRACTIONS:
        value = value.replace(contraction, expansion)

    value = _MULTISPACE_RE.sub(" ", value)
    value = _SEPARATOR_RE.sub(",", value)
    value = _SENTENCE_END_RE.sub(".", value)
    return value


def mentions_bot(text: str) -> bool:
    """Whether the text addresses the bot (`@fitbounty` and close spellings)."""

    return BOT_MENTION_RE.search(text or "") is not None
