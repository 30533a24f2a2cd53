from __future__ import annotations

from typing import Optional

MAX_FIELD_BITS = 32


def mask_for_width(width: int) -> int:
    return (1 << width) - 1


def fits_width(value: int, width: int) -> bool:
    if value < 0:
        return False
    return value <= mask_for_width(width)


def parse_number(s: str) -> Optional[int]:
    """Parse a decimal or 0x/0b/0o prefixed integer, None if ``s`` is not one."""
    s = s.strip()
    if not s:
        return None
    try:
        return int(s, 0)
    except ValueError:
        # int(s, 0) refuses decimal with leading zeros ("007")
        try:
            return int(s, 10)
        except ValueError:
            return None


def set_bits(buf: bytearray, addr: int, width: int, value: int) -> None:
    # LSB of value lands on bit (addr & 7) of byte addr >> 3
    for i in range(width):
        j = addr + i
        if value & (1 << i):
            buf[j >> 3] |= 1 << (j & 7)
        else:
            buf[j >> 3] &= ~(1 << (j & 7)) & 0xFF


def get_bits(buf: bytes, addr: int, width: int) -> int:
    value = 0
    for i in range(width):
        j = addr + i
        if buf[j >> 3] & (1 << (j & 7)):
            value |= 1 << i
    return value
