"""Decoder for the obfuscated stream payload of the scraped-HTML backend.

Payload shape: ``#h`` (or ``#``) + base64 text with ``//_//<trash>``
fragments spliced in.  Decoding strategies are tried in order, first
success wins:

1. Strip the known trash table (two passes), strict base64.
2. Strip any ``//..._//`` marker, lenient base64.
3. Split on the ``//_//`` separator, decode each segment, concatenate.

If every strategy fails the raw payload is returned so the caller can
still look for plain URLs in it.
"""

from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Callable

import structlog

from playerscout.domain.entities.media import StreamKind, StreamVariant

log = structlog.get_logger(__name__)

PAYLOAD_PREFIXES = ("#h", "#")
TRASH_SEPARATOR = "//_//"
TRASH_TOKENS = (
    "JCQhIUAkJEBeIUAjJCRA",
    "QEBAQEAhIyMhXl5e",
    "IyMjI14hISMjIUBA",
    "Xl5eIUAjIyEhIyM=",
    "JCQjISFAIyFAIyM=",
)
_TRASH_PASSES = 2

_TRASH_MARKER_RE = re.compile(r"//[^/]+_//")

# [1080p Ultra]https://... or https://...,[720p]https://...
_VARIANT_RE = re.compile(r"\[([^\]]+)\]([^,\[]+)")
_URL_RE = re.compile(r"https?://[^\s,\[\]]+")


def _b64decode(data: str, *, strict: bool) -> str:
    """Decode base64 text to UTF-8, raising ``ValueError`` on failure."""
    if strict:
        if len(data) % 4:
            raise ValueError("base64 length is not a multiple of 4")
    else:
        padding = -len(data) % 4
        data += "=" * padding
    return base64.b64decode(data, validate=True).decode("utf-8")


def _strip_trash_table(body: str) -> str:
    for _ in range(_TRASH_PASSES):
        for token in TRASH_TOKENS:
            body = body.replace(TRASH_SEPARATOR + token, "")
    return _b64decode(body, strict=True)


def _strip_trash_markers(body: str) -> str:
    body = _TRASH_MARKER_RE.sub("", body).replace(TRASH_SEPARATOR, "")
    return _b64decode(body, strict=False)


def _decode_segments(body: str) -> str:
    segments = [s for s in body.split(TRASH_SEPARATOR) if s]
    if not segments:
        raise ValueError("empty payload")
    return "".join(_b64decode(s, strict=False) for s in segments)


DECODE_STRATEGIES: tuple[tuple[str, Callable[[str], str]], ...] = (
    ("trash_table", _strip_trash_table),
    ("trash_markers", _strip_trash_markers),
    ("segments", _decode_segments),
)


def _payload_bodies(raw: str) -> list[str]:
    """Candidate bodies for every sentinel prefix *raw* starts with."""
    return [raw[len(p) :] for p in PAYLOAD_PREFIXES if raw.startswith(p)]


def is_obfuscated(raw: str) -> bool:
    return raw.startswith(PAYLOAD_PREFIXES)


def decode(raw: str) -> str:
    """Reverse the payload obfuscation.

    Returns *raw* unchanged when it lacks the sentinel prefix or when no
    strategy can decode it.
    """
    bodies = _payload_bodies(raw)
    if not bodies:
        return raw

    for strategy_name, strategy in DECODE_STRATEGIES:
        for body in bodies:
            try:
                decoded = strategy(body)
            except (ValueError, binascii.Error):
                continue
            log.debug("payload_decoded", strategy=strategy_name)
            return decoded

    log.warning("payload_decode_failed", length=len(raw))
    return raw


def classify_stream_url(url: str) -> StreamKind:
    """Guess the stream kind from extension/keyword."""
    lowered = url.lower()
    if ".m3u8" in lowered or ":hls:" in lowered:
        return StreamKind.HLS
    if ".mpd" in lowered or "dash" in lowered:
        return StreamKind.DASH
    return StreamKind.PROGRESSIVE


def extract_variants(decoded: str) -> list[StreamVariant]:
    """Parse ``[label]url`` pairs in order of appearance.

    An empty list means "no playable stream", which callers must treat
    as a resolution failure.
    """
    variants: list[StreamVariant] = []
    for match in _VARIANT_RE.finditer(decoded):
        label = match.group(1).strip()
        url_match = _URL_RE.search(match.group(2))
        if url_match is None:
            continue
        url = url_match.group(0)
        variants.append(
            StreamVariant(url=url, kind=classify_stream_url(url), label=label)
        )
    return variants
