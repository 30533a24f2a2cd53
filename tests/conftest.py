from __future__ import annotations

import logging
from pathlib import Path

import pytest

from modelcfg.config.registry import FeatureRegistry
from modelcfg.device.model import ModelLibrary
from modelcfg.device.model_loader import build_device, load_device

EXAMPLES = Path(__file__).resolve().parents[1] / "examples"

# top.wide[0:32] + u0 (leaf) x[32:36] y[36:40] -> 40 bits
SIMPLE_DEVICE = {
    "name": "simple",
    "enums": {"speed": {"SLOW": 0, "MEDIUM": 1, "FAST": 3}},
    "customer_names": {"u0": "CORE"},
    "blocks": {
        "leaf": {
            "attributes": {
                "x": {"address": 0, "size": 4},
                "y": {"address": 4, "size": 4, "enum": "speed"},
            }
        },
        "top": {
            "attributes": {"wide": {"address": 0, "size": 32}},
            "instances": {"u0": {"block": "leaf", "address": 32}},
        },
    },
}


@pytest.fixture
def simple_device():
    return build_device(SIMPLE_DEVICE)


@pytest.fixture
def io_device():
    return load_device(EXAMPLES / "io_bank.yaml")


@pytest.fixture
def registry(simple_device, io_device) -> FeatureRegistry:
    lib = ModelLibrary()
    lib.add_device(simple_device)
    lib.add_device(io_device)
    return FeatureRegistry(library=lib)


@pytest.fixture
def session(registry):
    return registry.set_model("top", feature="f")


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    added = [h for h in root.handlers if h not in handlers]
    root.handlers[:] = handlers
    root.setLevel(level)
    for h in added:
        h.close()
