"""Best-effort resolution of a recipient mention to a network identity key.

Resolution is single-candidate and never searches a directory:
    1) a token that is itself an `npub` bech32 encoding is decoded directly;
    2) otherwise the first `p` tag of the triggering message that holds a 64-hex key (and is not the
       bot's own key) is used.

When neither applies the result is `None`. Display names cannot be mapped to keys without an
external identity directory, so a `None` key is an expected outcome, not an error.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from bech32 import bech32_decode, convertbits

logger = logging.getLogger(__name__)

_HEX_KEY_RE = re.compile(r"^[0-9a-f]{64}$")
_NPUB_HRP = "npub"


def decode_npub(token: str) -> str | None:
    """Decode an `npub1...` bech32 string into a lowercase hex public key.

    Returns:
        The 64-char hex key, or `None` if the token is not a valid npub.
    """

    hrp, data = bech32_decode((token or "").strip().lower())
    if hrp != _NPUB_HRP or data is None:
        return None

    raw = convertbits(data, 5, 8, False)
    if raw is None or len(raw) != 32:
        return None
    return bytes(raw).hex()


def _first_tagged_key(tags: Sequence[Sequence[str]], exclude: set[str]) -> str | None:
    for tag in tags:
        if len(tag) < 2 or tag[0] != "p":
            continue
        candidate = str(tag[1]).lower()
        if _HEX_KEY_RE.fullmatch(candidate) and candidate not in exclude:
            return candidate
    return None


def resolve_recipient_key(
        recipient: str | None,
        tags: Sequence[Sequence[str]] = (),
        *,
        bot_identity_key: str | None = None,
) -> str | None:
    """Resolve a recipient handle (without `@`) to a hex identity key, if possible."""

    if not recipient:
        return None

    if recipient.startswith(_NPUB_HRP + "1"):
        key = decode_npub(recipient)
        if key is None:
            logger.warning("invalid npub recipient=%s", recipient[:16])
        return key

    exclude = {bot_identity_key.lower()} if bot_identity_key else set()
    key = _first_tagged_key(tags, exclude)
    if key is None:
        logger.debug("recipient key unresolved recipient=%s", recipient)
    return key
