from __future__ import annotations

import random

import pytest

from modelcfg.config import writer
from modelcfg.config.registry import FeatureRegistry
from modelcfg.device.model import ModelLibrary
from modelcfg.device.model_loader import build_device
from modelcfg.errors import MissingBitfieldError, ValidationError
from modelcfg.shell.shell import ModelConfigShell
from modelcfg.utils.bits import get_bits

HEADER = [
    "// Feature Bitstream: f",
    "// Model: top",
    "// Total Bits: 40",
]


@pytest.fixture
def loaded(session):
    session.set_attr("top", "wide", "0x12345678")
    session.set_attr("u0", "x", "0xA")
    session.set_attr("u0", "y", "FAST")
    return session


def _lines(path) -> list[str]:
    return path.read_text().splitlines()


def test_word_format(loaded, tmp_path) -> None:
    out = tmp_path / "out.word"
    writer.write(loaded, "WORD", out)

    assert _lines(out) == HEADER + [
        "// Format: WORD",
        "12345678",
        "0000003A // (Valid LSBits: 8, Dummy MSBits: 24)",
    ]


def test_word_format_aligned_has_no_annotation(tmp_path) -> None:
    dev = build_device({"blocks": {"top": {"attributes": {"w": {"address": 0, "size": 32, "default": 7}}}}})
    reg = FeatureRegistry(library=ModelLibrary([dev]))
    reg.set_model("top", feature="g")
    out = tmp_path / "out.word"

    reg.write("word", out)

    assert _lines(out)[-1] == "00000007"


def test_bit_format(loaded, tmp_path) -> None:
    out = tmp_path / "out.bit"
    writer.write(loaded, writer.OutputFormat.BIT, out)

    lines = _lines(out)
    assert lines[:4] == HEADER + ["// Format: BIT"]
    bits = lines[4:]
    assert len(bits) == 40
    assert "".join(reversed(bits[:32])) == format(0x12345678, "032b")
    assert bits[32:36] == ["0", "1", "0", "1"]
    assert bits[36:40] == ["1", "1", "0", "0"]


def test_bin_format_round_trip(loaded, tmp_path) -> None:
    out = tmp_path / "out.bin"
    writer.write(loaded, "BIN", out)

    data = out.read_bytes()
    assert len(data) == 5
    assert data == bytes([0x78, 0x56, 0x34, 0x12, 0x3A])
    for b in loaded.table.ordered():
        assert get_bits(data, b.addr, b.size) == b.value


def test_bin_round_trip_random_values(registry, tmp_path) -> None:
    s = registry.set_model("demo_io", feature="io")
    rng = random.Random(7)
    expected = {}
    for b in s.table.ordered():
        v = rng.randrange(1 << b.size)
        s.set_attr(b.instance_name, b.name, str(v))
        expected[b.addr] = v
    out = tmp_path / "io.bin"

    registry.write("BIN", out)

    data = out.read_bytes()
    assert len(data) == (58 + 7) // 8
    for b in s.table.ordered():
        assert get_bits(data, b.addr, b.size) == expected[b.addr]


def test_detail_format(loaded, tmp_path) -> None:
    out = tmp_path / "out.detail"
    writer.write(loaded, "DETAIL", out)

    assert _lines(out) == HEADER + [
        "// Format: DETAIL",
        "Block top []",
        "  Attributes:",
        "    wide - Addr: 0x00000000, Size: 32, Value: (0x12345678) 305419896",
        "Block u0 [CORE]",
        "  Attributes:",
        "    x    - Addr: 0x00000020, Size:  4, Value: (0x0000000A) 10",
        "    y    - Addr: 0x00000024, Size:  4, Value: (0x00000003) 3",
    ]


def test_tcl_format(loaded, tmp_path) -> None:
    out = tmp_path / "out.tcl"
    writer.write(loaded, "TCL", out)

    assert _lines(out) == HEADER + [
        "// Format: TCL",
        "model_config set_model -feature f top",
        "model_config set_attr -instance top -name wide -value 305419896",
        "model_config set_attr -instance CORE -name x -value 10",
        "model_config set_attr -instance CORE -name y -value 3",
    ]


def test_tcl_output_replays_through_shell(loaded, registry, simple_device, tmp_path) -> None:
    script = tmp_path / "out.tcl"
    writer.write(loaded, "TCL", script)

    fresh = FeatureRegistry(library=ModelLibrary([simple_device]))
    sh = ModelConfigShell(registry=fresh)

    assert sh.run_file(script)
    assert fresh.get_attr("top", "wide", feature="f") == 0x12345678
    assert fresh.get_attr("u0", "x") == 10
    assert fresh.get_attr("u0", "y") == 3


def test_missing_bitfield_aborts_before_writing(loaded, tmp_path) -> None:
    del loaded.table.bitfields[32]
    out = tmp_path / "out.word"

    with pytest.raises(MissingBitfieldError) as ei:
        writer.write(loaded, "WORD", out)

    assert ei.value.addr == 32
    assert not out.exists()


def test_unknown_format(loaded, tmp_path) -> None:
    with pytest.raises(ValidationError):
        writer.write(loaded, "HEX", tmp_path / "out.hex")


def test_pack_image_rounds_to_words(loaded) -> None:
    data = writer.pack_image(loaded.table)
    assert len(data) == 8
    assert data[5:] == b"\x00\x00\x00"
