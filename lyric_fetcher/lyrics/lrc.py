"""
LRC text parsing

Converts LRC formatted lyrics ("[mm:ss.xx]line") into LyricLine tuples.
Supports several timestamps on one line, two or three digit fractions, the
[offset:+/-ms] tag and ignores every other ID tag ([ar:], [ti:], [by:] ...).
"""

import re
from typing import List, Tuple

from .models import LyricLine, sorted_lines

TIMESTAMP_PATTERN = re.compile(r'\[(\d{1,3}):(\d{1,2})(?:[.:](\d{1,3}))?\]')
OFFSET_PATTERN = re.compile(r'^\[offset:\s*([+-]?\d+)\s*\]', re.IGNORECASE)


def _timestamp_to_ms(minutes: str, seconds: str, fraction: str) -> float:
    total = int(minutes) * 60_000 + int(seconds) * 1000
    if fraction:
        # ".5" is half a second, ".05" fifty milliseconds, ".005" five
        total += int(fraction.ljust(3, '0')[:3])
    return float(total)


def parse_lrc(text: str) -> Tuple[LyricLine, ...]:
    """
    Parse LRC text into time-synchronised lines

    Args:
        text: Raw LRC document

    Returns:
        Lines sorted ascending by start time. Lines without a timestamp are
        skipped, so plain (unsynced) text yields an empty tuple.
    """
    if not text:
        return ()

    offset_ms = 0
    parsed: List[LyricLine] = []

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        offset_match = OFFSET_PATTERN.match(line)
        if offset_match:
            offset_ms = int(offset_match.group(1))
            continue

        stamps = []
        position = 0
        while True:
            match = TIMESTAMP_PATTERN.match(line, position)
            if not match:
                break
            stamps.append(_timestamp_to_ms(*match.groups()))
            position = match.end()

        if not stamps:
            continue

        words = line[position:].strip()
        for stamp in stamps:
            parsed.append(LyricLine(start_time_ms=stamp, words=words))

    if offset_ms:
        # A positive offset makes lyrics appear sooner
        parsed = [
            LyricLine(start_time_ms=max(0.0, line.start_time_ms - offset_ms), words=line.words)
            for line in parsed
        ]

    return sorted_lines(parsed)
