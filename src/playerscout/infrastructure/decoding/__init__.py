from .payload_decoder import (
    TRASH_SEPARATOR,
    TRASH_TOKENS,
    classify_stream_url,
    decode,
    extract_variants,
    is_obfuscated,
)

__all__ = [
    "TRASH_SEPARATOR",
    "TRASH_TOKENS",
    "classify_stream_url",
    "decode",
    "extract_variants",
    "is_obfuscated",
]
