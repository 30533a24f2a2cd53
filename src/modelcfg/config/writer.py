from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Iterator, Union

from modelcfg.config.bitfield import Bitfield, BitfieldTable
from modelcfg.config.session import Session
from modelcfg.errors import AllocationError, MissingBitfieldError, ValidationError
from modelcfg.utils.bits import get_bits, set_bits
from modelcfg.utils.logger import get_logger

log = get_logger(__name__)


class OutputFormat(str, Enum):
    BIT = "BIT"
    WORD = "WORD"
    DETAIL = "DETAIL"
    TCL = "TCL"
    BIN = "BIN"

    @classmethod
    def parse(cls, name: Union[str, "OutputFormat"]) -> "OutputFormat":
        if isinstance(name, OutputFormat):
            return name
        try:
            return cls(name.upper())
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise ValidationError(f"unsupported format '{name}' (expected one of {choices})") from None


def walk_bitfields(table: BitfieldTable) -> Iterator[Bitfield]:
    """Yield bitfields in address order, checking that they tile [0, total_bits)."""
    if table.total_bits <= 0:
        raise AllocationError("nothing to write: model has no bits")
    addr = 0
    while addr < table.total_bits:
        b = table.bitfields.get(addr)
        if b is None or b.addr != addr:
            raise MissingBitfieldError(f"no bitfield starts at bit address {addr}", addr)
        yield b
        addr += b.size
    if addr != table.total_bits:
        raise MissingBitfieldError(f"bitfields end at {addr}, expected {table.total_bits}", addr)


def pack_image(table: BitfieldTable) -> bytearray:
    """Pack every value LSB first into a buffer rounded up to whole 32-bit words."""
    data = bytearray(((table.total_bits + 31) // 32) * 4)
    for b in walk_bitfields(table):
        set_bits(data, b.addr, b.size, b.value)
    return data


def _header(session: Session, fmt: OutputFormat) -> list[str]:
    return [
        f"// Feature Bitstream: {session.feature}",
        f"// Model: {session.model}",
        f"// Total Bits: {session.total_bits}",
        f"// Format: {fmt.value}",
    ]


def _bit_lines(session: Session) -> list[str]:
    data = pack_image(session.table)
    return ["1" if get_bits(data, i, 1) else "0" for i in range(session.total_bits)]


def _word_lines(session: Session) -> list[str]:
    data = pack_image(session.table)
    total = session.total_bits
    word_count = (total + 31) // 32
    lines = []
    for i in range(word_count):
        word = int.from_bytes(data[i * 4 : i * 4 + 4], "little")
        line = f"{word:08X}"
        if i + 1 == word_count and total % 32:
            line += f" // (Valid LSBits: {total % 32}, Dummy MSBits: {32 - total % 32})"
        lines.append(line)
    return lines


def _detail_lines(session: Session) -> list[str]:
    width = session.table.max_name_length
    lines = []
    block_name = None
    for b in walk_bitfields(session.table):
        if b.block_name != block_name:
            lines.append(f"Block {b.block_name} [{b.user_name}]")
            lines.append("  Attributes:")
            block_name = b.block_name
        lines.append(
            f"    {b.name:<{width}} - Addr: 0x{b.addr:08X}, Size: {b.size:2d}, Value: (0x{b.value:08X}) {b.value}"
        )
    return lines


def _tcl_lines(session: Session) -> list[str]:
    lines = [f"model_config set_model -feature {session.feature} {session.model}"]
    for b in walk_bitfields(session.table):
        lines.append(f"model_config set_attr -instance {b.instance_name} -name {b.name} -value {b.value}")
    return lines


_RENDERERS = {
    OutputFormat.BIT: _bit_lines,
    OutputFormat.WORD: _word_lines,
    OutputFormat.DETAIL: _detail_lines,
    OutputFormat.TCL: _tcl_lines,
}


def render(session: Session, fmt: Union[str, OutputFormat]) -> Union[str, bytes]:
    fmt = OutputFormat.parse(fmt)
    if fmt is OutputFormat.BIN:
        data = pack_image(session.table)
        return bytes(data[: (session.total_bits + 7) // 8])
    lines = _header(session, fmt) + _RENDERERS[fmt](session)
    return "\n".join(lines) + "\n"


def write(session: Session, fmt: Union[str, OutputFormat], path: Path) -> None:
    fmt = OutputFormat.parse(fmt)
    # render fully first: a layout error must not leave a truncated file
    out = render(session, fmt)
    path = Path(path)
    if isinstance(out, bytes):
        with path.open("wb") as f:
            f.write(out)
    else:
        with path.open("w", encoding="utf-8", newline="\n") as f:
            f.write(out)
    log.info("Feature %s: wrote %s (%d bits) to %s", session.feature, fmt.value, session.total_bits, path)
