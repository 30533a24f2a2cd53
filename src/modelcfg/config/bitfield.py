from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, Optional

from modelcfg.device.model import DeviceBlock, DeviceEnumType, DeviceModel
from modelcfg.errors import AllocationError, OverlapError, RangeError
from modelcfg.utils.bits import MAX_FIELD_BITS, fits_width
from modelcfg.utils.logger import get_logger

log = get_logger(__name__)


@dataclass(eq=False)
class Bitfield:
    block_name: str
    user_name: str
    name: str
    addr: int
    size: int
    value: int = 0
    enum_type: Optional[DeviceEnumType] = None

    @property
    def instance_name(self) -> str:
        return self.user_name or self.block_name

    def matches(self, instance: str, name: str) -> bool:
        if self.name != name or not instance:
            return False
        return self.block_name == instance or self.user_name == instance


class OccupancyMask:
    """Scratch bitmap proving that no bit is claimed twice and none is left out."""

    def __init__(self) -> None:
        self._mask = bytearray()

    def __len__(self) -> int:
        return len(self._mask)

    def grow(self, total_bits: int) -> None:
        while (total_bits + 7) // 8 > len(self._mask):
            self._mask.append(0)

    def claim(self, addr: int, size: int, owner: str) -> None:
        for j in range(addr, addr + size):
            if self._mask[j >> 3] & (1 << (j & 7)):
                raise OverlapError(f"bit {j} of '{owner}' (addr={addr}, size={size}) is already allocated", addr, owner)
        for j in range(addr, addr + size):
            self._mask[j >> 3] |= 1 << (j & 7)

    def verify(self, total_bits: int) -> None:
        if total_bits <= 0:
            raise AllocationError("model does not define any attribute bit")
        if (total_bits + 7) // 8 != len(self._mask):
            raise AllocationError(f"occupancy mask is {len(self._mask)} bytes for {total_bits} bits")
        full = total_bits // 8
        for i in range(full):
            if self._mask[i] != 0xFF:
                raise AllocationError(f"unallocated bit(s) in byte {i} (mask=0x{self._mask[i]:02X})")
        if total_bits % 8:
            expected = (1 << (total_bits % 8)) - 1
            if self._mask[-1] != expected:
                raise AllocationError(
                    f"unallocated bit(s) in last byte (mask=0x{self._mask[-1]:02X}, expected=0x{expected:02X})"
                )


@dataclass
class BitfieldTable:
    total_bits: int = 0
    max_name_length: int = 0
    bitfields: Dict[int, Bitfield] = field(default_factory=dict)
    # (instance, name) -> lowest addressed match, block name and alias both
    _index: Dict[tuple[str, str], Bitfield] = field(default_factory=dict, init=False, repr=False)

    def __len__(self) -> int:
        return len(self.bitfields)

    def ordered(self) -> Iterator[Bitfield]:
        for addr in sorted(self.bitfields):
            yield self.bitfields[addr]

    def add(self, b: Bitfield) -> None:
        self.bitfields[b.addr] = b
        for key in {b.block_name, b.user_name}:
            if not key:
                continue
            prev = self._index.get((key, b.name))
            if prev is None or b.addr < prev.addr:
                self._index[(key, b.name)] = b

    def find(self, instance: str, name: str) -> Optional[Bitfield]:
        b = self._index.get((instance, name))
        if b is None or not b.matches(instance, name):
            return None
        return b

    def snapshot(self) -> dict[int, int]:
        return {addr: b.value for addr, b in self.bitfields.items()}

    def restore(self, values: dict[int, int]) -> None:
        for addr, value in values.items():
            self.bitfields[addr].value = value


class BitfieldAllocator:
    def __init__(self, device: DeviceModel):
        self.device = device
        self.table = BitfieldTable()
        self._mask = OccupancyMask()

    def allocate(self, block: DeviceBlock) -> BitfieldTable:
        self._create_bitfields(block, name="", addr_name="0", offset=0)
        self._mask.verify(self.table.total_bits)
        log.info(
            "Allocated model=%s bitfields=%d total_bits=%d",
            block.name,
            len(self.table),
            self.table.total_bits,
        )
        return self.table

    def _add_bitfield(
        self,
        block_name: str,
        user_name: str,
        name: str,
        addr: int,
        size: int,
        default: int,
        enum_type: Optional[DeviceEnumType],
    ) -> None:
        owner = f"{block_name}.{name}" if block_name else name
        if size == 0 or size > MAX_FIELD_BITS:
            raise RangeError(f"attribute '{owner}' has invalid size {size} (expected 1..{MAX_FIELD_BITS})")
        if not fits_width(default, size):
            raise RangeError(f"default value {default} of '{owner}' does not fit {size} bit(s)")

        if addr + size > self.table.total_bits:
            self.table.total_bits = addr + size
            self._mask.grow(self.table.total_bits)
        self.table.max_name_length = max(self.table.max_name_length, len(name))

        self._mask.claim(addr, size, owner)
        self.table.add(
            Bitfield(
                block_name=block_name,
                user_name=user_name,
                name=name,
                addr=addr,
                size=size,
                value=default,
                enum_type=enum_type,
            )
        )

    def _create_bitfields(self, block: DeviceBlock, name: str, addr_name: str, offset: int) -> None:
        if block.attributes:
            user_name = self.device.get_customer_name(name)
            # top level attributes are reported under the model block name
            block_name = name or block.name
            for aname, attr in block.attributes.items():
                addr = offset + attr.address
                log.debug("bitfield %s.%s addr=%d (%s + %d) size=%d", block_name, aname, addr, addr_name, attr.address, attr.size)
                self._add_bitfield(
                    block_name,
                    user_name,
                    aname,
                    addr,
                    attr.size,
                    attr.default or 0,
                    attr.enum_type,
                )

        for iname, inst in block.instances.items():
            child_name = f"{name}.{iname}" if name else iname
            self._create_bitfields(
                inst.block,
                name=child_name,
                addr_name=f"{addr_name} + {inst.address}",
                offset=offset + inst.address,
            )


def allocate(device: DeviceModel, block: DeviceBlock) -> BitfieldTable:
    return BitfieldAllocator(device).allocate(block)
