"""
Utility functions and helpers for lyric-fetcher
Common functions for string matching, text cleanup and one-time-code generation
"""

import base64
import hashlib
import hmac
import platform
import re
import sys
from typing import Iterable, List, Optional, Sequence

from rapidfuzz.distance import JaroWinkler


# Minimum macOS major version the providers run on
MINIMUM_MACOS_MAJOR = 14

# Applied in order
HTML_ENTITY_REPLACEMENTS = [
    ("&apos;", "'"),
    ("&quot;", '"'),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&#39;", "'"),
    ("&#x27;", "'"),
    ("\\\n", "\n"),
]


def clean_field(value: Optional[str]) -> str:
    """
    Trim surrounding whitespace from an optional metadata field

    Args:
        value: Raw value from the media player (may be None)

    Returns:
        Trimmed string, empty when value is None
    """
    if value is None:
        return ""
    return value.strip()


def all_present(*values: Optional[str]) -> bool:
    """Return True when every value is non-empty after trimming."""
    return all(clean_field(value) for value in values)


def calculate_similarity(str1: str, str2: str) -> float:
    """
    Calculate string similarity using the Jaro-Winkler metric

    Comparison is case-sensitive and done on the raw strings; callers trim
    their input first.

    Args:
        str1: First string
        str2: Second string

    Returns:
        Similarity score between 0.0 and 1.0
    """
    if not str1 or not str2:
        return 0.0

    if str1 == str2:
        return 1.0

    return JaroWinkler.similarity(str1, str2)


def count_above(scores: Iterable[float], threshold: float) -> int:
    """Count scores strictly greater than threshold."""
    return sum(1 for score in scores if score > threshold)


def unescape_html_entities(text: str) -> str:
    """
    Replace the HTML entities NetEase leaves in its lyric payloads

    Only a fixed set of entities is handled (&apos; &quot; &amp; &lt; &gt;
    &#39; &#x27;) plus backslash-escaped newlines.

    Args:
        text: Raw lyric text

    Returns:
        Text with the known entities replaced
    """
    for entity, replacement in HTML_ENTITY_REPLACEMENTS:
        text = text.replace(entity, replacement)
    return text


def derive_totp_secret(message: Sequence[int]) -> str:
    """
    Turn the obfuscated secret document into the TOTP secret string

    Each value is XORed with ((index % 33) + 9), truncated to a byte, and the
    decimal representations are concatenated.

    Args:
        message: Integers from the remote secret document

    Returns:
        Secret as a string of decimal digits
    """
    processed = [(value ^ ((index % 33) + 9)) & 0xFF for index, value in enumerate(message)]
    return "".join(str(byte) for byte in processed)


def secret_to_key(secret: str) -> bytes:
    """
    Encode the secret string to the byte key used for HOTP

    The secret is taken as UTF-8, base32 encoded and decoded again, which
    also validates it as a key.
    """
    encoded = base64.b32encode(secret.encode('utf-8'))
    return base64.b32decode(encoded)


def generate_hotp(key: bytes, counter: int, digits: int = 6) -> str:
    """
    Generate an HMAC-based one-time password (RFC 4226, SHA-1)

    Args:
        key: Shared secret
        counter: Moving factor (for time-based codes: unix_time // 30)
        digits: Number of digits in the code

    Returns:
        Zero-padded numeric code
    """
    if counter < 0:
        raise ValueError(f"HOTP counter must be non-negative, got {counter}")

    digest = hmac.new(key, counter.to_bytes(8, 'big'), hashlib.sha1).digest()
    offset = digest[-1] & 0x0F
    binary = int.from_bytes(digest[offset:offset + 4], 'big') & 0x7FFFFFFF
    return str(binary % (10 ** digits)).zfill(digits)


def is_valid_spotify_id(track_id: Optional[str], length: int = 22) -> bool:
    """Spotify catalogue ids are exactly 22 characters; local files are not."""
    return track_id is not None and len(track_id) == length


def parse_version(version: str) -> List[int]:
    """
    Parse a dotted version string into integers

    Non-numeric components stop the parse, so "14.2.1" -> [14, 2, 1] and
    "" -> [].
    """
    parts = []
    for component in version.split('.'):
        match = re.match(r'^\d+', component)
        if not match:
            break
        parts.append(int(match.group()))
    return parts


def is_supported_platform() -> bool:
    """
    Check whether the host operating system can run the providers

    macOS must be 14 (Sonoma) or newer. Every other operating system passes.
    """
    if sys.platform != 'darwin':
        return True

    version = parse_version(platform.mac_ver()[0])
    if not version:
        return False
    return version[0] >= MINIMUM_MACOS_MAJOR

