"""Conversion of textual bit rates."""

from __future__ import annotations

import re

_INTEGER = re.compile(r"[+-]?\d+")

_KBPS_FACTOR = {
    "Kbps": 1,
    "Mbps": 1000,
    "Gbps": 1000000,
    "Tbps": 1000000000,
}

_UINT64 = (1 << 64) - 1


def bit_rate_to_kbps(bitrate: str) -> int:
    """Convert ``"<value> <unit>"`` to kbps.

    A non-numeric value or an unknown unit yields 0; a missing unit raises
    ValueError.
    """
    parts = bitrate.split(" ")
    if not _INTEGER.fullmatch(parts[0]):
        return 0
    digit = int(parts[0])
    if len(parts) < 2:
        raise ValueError(f"bit rate needs a unit: {bitrate!r}")
    unit = parts[1]
    if unit == "bps":
        quotient = abs(digit) // 1000
        kbps = -quotient if digit < 0 else quotient
    elif unit in _KBPS_FACTOR:
        kbps = digit * _KBPS_FACTOR[unit]
    else:
        kbps = 0
    return kbps & _UINT64