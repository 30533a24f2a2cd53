from __future__ import annotations


def hexdump(data: bytes, total_bits: int = 0, width: int = 16) -> str:
    """Hex listing of a packed image; the bit column is the first bit of each row."""
    lines = []
    for i in range(0, len(data), width):
        chunk = data[i : i + width]
        hexpart = " ".join(f"{b:02X}" for b in chunk)
        lines.append(f"{i:06X}  bit {i * 8:<7d} {hexpart}")
    if total_bits and total_bits % 8:
        lines.append(f"(last byte holds {total_bits % 8} valid bits)")
    return "\n".join(lines)
