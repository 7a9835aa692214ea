"""Single byte-range parsing for audio playback (RFC 9110 §14)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from app.core.errors import RangeNotSatisfiableError

_RANGE_SPEC = re.compile(r"^(\d*)-(\d*)$")


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.end}/{size}"


def parse_range_header(header: Optional[str], size: int) -> Optional[ByteRange]:
    """Resolve a ``Range`` header against a resource of ``size`` bytes.

    Returns None when the whole resource should be sent: no header, a unit
    other than bytes, a malformed value or a multi-range request (all of
    which a server may ignore). Raises RangeNotSatisfiableError when the
    syntax is valid but no byte of the resource is selected.
    """
    if not header:
        return None

    unit, _, ranges = header.strip().partition("=")
    if unit.strip().lower() != "bytes" or not ranges or "," in ranges:
        return None

    match = _RANGE_SPEC.match(ranges.strip())
    if not match:
        return None
    first, last = match.groups()

    if not first and not last:
        return None

    if not first:
        # Suffix range: the final N bytes
        suffix = int(last)
        if suffix == 0 or size == 0:
            raise RangeNotSatisfiableError(size, detail=f"Range {header!r} selects no bytes")
        return ByteRange(max(0, size - suffix), size - 1)

    start = int(first)
    if last and int(last) < start:
        return None
    if start >= size:
        raise RangeNotSatisfiableError(size, detail=f"Range {header!r} starts beyond {size} bytes")

    end = min(int(last), size - 1) if last else size - 1
    return ByteRange(start, end)
