from __future__ import annotations

import random

import pytest

from modelcfg.config.bitfield import OccupancyMask, allocate
from modelcfg.device.model_loader import build_device
from modelcfg.errors import AllocationError, OverlapError, RangeError


def _allocate(doc: dict, top: str):
    dev = build_device(doc)
    return allocate(dev, dev.get_block(top))


def _assert_tiled(table) -> None:
    assert sum(b.size for b in table.bitfields.values()) == table.total_bits
    covered = set()
    for b in table.bitfields.values():
        bits = set(range(b.addr, b.addr + b.size))
        assert not (covered & bits)
        covered |= bits
    assert covered == set(range(table.total_bits))


def test_allocate_simple_device(simple_device) -> None:
    table = allocate(simple_device, simple_device.get_block("top"))

    assert table.total_bits == 40
    assert table.max_name_length == 4
    assert [(b.block_name, b.user_name, b.name, b.addr, b.size) for b in table.ordered()] == [
        ("top", "", "wide", 0, 32),
        ("u0", "CORE", "x", 32, 4),
        ("u0", "CORE", "y", 36, 4),
    ]
    _assert_tiled(table)


def test_allocate_nested_paths_and_defaults(io_device) -> None:
    table = allocate(io_device, io_device.get_block("demo_io"))

    assert table.total_bits == 58
    _assert_tiled(table)
    assert table.bitfields[0].value == 0xA5
    mode = table.find("bank1.io1", "MODE")
    assert mode is not None
    assert mode.addr == 33 + 15
    assert mode.value == 3
    vref = table.find("HP_BANK_1", "VREF")
    assert vref is not None and vref.addr == 33 and vref.value == 8


def _random_tree(rng: random.Random) -> tuple[dict, str, int]:
    blocks: dict = {}

    def gen(depth: int) -> tuple[str, int]:
        name = f"b{len(blocks)}"
        blocks[name] = None
        items = [("attr", f"a{k}", rng.randint(1, 32)) for k in range(rng.randint(0, 3))]
        if depth < 3:
            for k in range(rng.randint(0, 2)):
                child, csize = gen(depth + 1)
                items.append(("inst", f"i{k}", child, csize))
        if not items:
            items.append(("attr", "a0", rng.randint(1, 32)))
        rng.shuffle(items)

        attrs, insts, cursor = {}, {}, 0
        for it in items:
            if it[0] == "attr":
                attrs[it[1]] = {"address": cursor, "size": it[2]}
                cursor += it[2]
            else:
                insts[it[1]] = {"block": it[2], "address": cursor}
                cursor += it[3]
        blocks[name] = {"attributes": attrs, "instances": insts}
        return name, cursor

    top, total = gen(0)
    return {"name": "random", "blocks": blocks}, top, total


@pytest.mark.parametrize("seed", range(25))
def test_random_trees_allocate_without_gaps(seed: int) -> None:
    doc, top, total = _random_tree(random.Random(seed))

    table = _allocate(doc, top)

    assert table.total_bits == total
    _assert_tiled(table)


def test_overlapping_attributes_fail() -> None:
    doc = {
        "blocks": {
            "top": {
                "attributes": {
                    "a": {"address": 0, "size": 4},
                    "b": {"address": 3, "size": 4},
                }
            }
        }
    }
    with pytest.raises(OverlapError) as ei:
        _allocate(doc, "top")
    assert ei.value.addr == 3
    assert ei.value.field == "top.b"


def test_instance_overlapping_parent_attribute_fails() -> None:
    doc = {
        "blocks": {
            "leaf": {"attributes": {"v": {"address": 0, "size": 2}}},
            "top": {
                "attributes": {"ctrl": {"address": 0, "size": 8}},
                "instances": {"u": {"block": "leaf", "address": 7}},
            },
        }
    }
    with pytest.raises(OverlapError):
        _allocate(doc, "top")


@pytest.mark.parametrize("size", [0, 33])
def test_invalid_width_is_range_error(size: int) -> None:
    doc = {"blocks": {"top": {"attributes": {"a": {"address": 0, "size": size}}}}}
    with pytest.raises(RangeError):
        _allocate(doc, "top")


def test_default_wider_than_field_is_range_error() -> None:
    doc = {"blocks": {"top": {"attributes": {"a": {"address": 0, "size": 2, "default": 4}}}}}
    with pytest.raises(RangeError):
        _allocate(doc, "top")


def test_gap_in_layout_is_allocation_error() -> None:
    doc = {
        "blocks": {
            "top": {
                "attributes": {
                    "a": {"address": 0, "size": 2},
                    "b": {"address": 3, "size": 1},
                }
            }
        }
    }
    with pytest.raises(AllocationError):
        _allocate(doc, "top")


def test_model_without_attributes_is_allocation_error() -> None:
    doc = {"blocks": {"top": {}}}
    with pytest.raises(AllocationError):
        _allocate(doc, "top")


def test_occupancy_mask_partial_last_byte() -> None:
    mask = OccupancyMask()
    mask.grow(11)
    assert len(mask) == 2
    mask.claim(0, 8, "a")
    mask.claim(8, 3, "b")
    mask.verify(11)

    with pytest.raises(OverlapError):
        mask.claim(10, 1, "c")


def test_occupancy_mask_detects_missing_bit() -> None:
    mask = OccupancyMask()
    mask.grow(16)
    mask.claim(0, 8, "a")
    mask.claim(9, 7, "b")
    with pytest.raises(AllocationError):
        mask.verify(16)


def test_find_by_block_name_and_alias(io_device) -> None:
    table = allocate(io_device, io_device.get_block("demo_io"))

    for b in table.ordered():
        assert table.find(b.block_name, b.name) is b
        if b.user_name:
            assert table.find(b.user_name, b.name) is b
    assert table.find("bank0", "VREF") is table.find("HP_BANK_0", "VREF")
    assert table.find("bank0", "MODE") is None
    assert table.find("", "ID") is None


def test_find_prefers_lowest_address_on_shared_alias() -> None:
    doc = {
        "customer_names": {"a": "SHARED", "b": "SHARED"},
        "blocks": {
            "leaf": {"attributes": {"v": {"address": 0, "size": 4}}},
            "top": {
                "instances": {
                    "b": {"block": "leaf", "address": 4},
                    "a": {"block": "leaf", "address": 0},
                }
            },
        },
    }
    table = _allocate(doc, "top")

    assert table.find("SHARED", "v").addr == 0
    assert table.find("b", "v").addr == 4
