from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Literal, Optional, Union

from modelcfg.config import writer
from modelcfg.config.api import ApiSetting
from modelcfg.config.session import Session
from modelcfg.device.model import DeviceBlock, DeviceModel, ModelLibrary
from modelcfg.errors import FeatureNotBound, ModelNotFound
from modelcfg.utils.logger import get_logger

log = get_logger(__name__)

RicKind = Literal["block", "attribute", "instance"]


@dataclass(frozen=True)
class RicEntry:
    kind: RicKind
    depth: int
    name: str
    path: str = ""
    user_name: str = ""
    addr: int = 0
    addr_name: str = ""
    size: int = 0
    default: int = 0
    location: tuple[int, int, int] = (0, 0, 0)
    has_attributes: bool = False

    def format(self) -> str:
        space = "    " * self.depth
        if self.kind == "block":
            if self.has_attributes:
                return f"{space}Block: {self.name} ({self.path} -> [{self.user_name}])"
            return f"{space}Block: {self.name}"
        if self.kind == "attribute":
            return (
                f"{space}  Attribute {self.name} - Address: {self.addr} ({self.addr_name}), "
                f"Size: {self.size}, Default: {self.default}"
            )
        x, y, z = self.location
        return f"{space}  Instance{self.depth} {self.name}: Addr {self.addr_name} (X:{x} Y:{y} Z:{z})"


def walk_ric(device: DeviceModel, block: DeviceBlock) -> Iterator[RicEntry]:
    """Pre-order walk of a raw model tree: a block, its attributes, then each instance subtree."""

    def visit(blk: DeviceBlock, depth: int, path: str, addr_name: str, offset: int) -> Iterator[RicEntry]:
        yield RicEntry(
            kind="block",
            depth=depth,
            name=blk.name,
            path=path,
            user_name=device.get_customer_name(path),
            has_attributes=bool(blk.attributes),
        )
        for aname, attr in blk.attributes.items():
            yield RicEntry(
                kind="attribute",
                depth=depth,
                name=aname,
                path=path,
                addr=offset + attr.address,
                addr_name=addr_name,
                size=attr.size,
                default=attr.default or 0,
            )
        for iname, inst in blk.instances.items():
            yield RicEntry(
                kind="instance",
                depth=depth,
                name=iname,
                path=path,
                addr=offset + inst.address,
                addr_name=f"{offset} + {inst.address}",
                location=inst.location,
            )
            child = f"{path}.{iname}" if path else iname
            yield from visit(inst.block, depth + 1, child, f"{addr_name} + {inst.address}", offset + inst.address)

    yield from visit(block, 0, "", "0", 0)


@dataclass
class FeatureRegistry:
    """Feature name -> session table, passed explicitly to whoever issues commands."""

    library: ModelLibrary = field(default_factory=ModelLibrary)
    sessions: Dict[str, Session] = field(default_factory=dict)
    current_feature: Optional[str] = None

    def _resolve_model(self, model: str) -> tuple[DeviceModel, DeviceBlock]:
        dev = self.library.get_device_model(model)
        if dev is None:
            raise ModelNotFound(f"Could not find device model '{model}'")
        block = dev.get_block(model)
        if block is None:
            raise ModelNotFound(f"Device '{dev.name}' has no block '{model}'")
        return dev, block

    def session(self, feature: Optional[str] = None, command: str = "access") -> Session:
        name = feature or self.current_feature
        if not name:
            raise FeatureNotBound(f"model_config is not able to '{command}' because missing 'feature' input")
        s = self.sessions.get(name)
        if s is None:
            raise FeatureNotBound(f"Device model for feature '{name}' is not set")
        self.current_feature = name
        return s

    def set_model(self, model: str, feature: Optional[str] = None) -> Session:
        name = feature or self.current_feature
        if not name:
            raise FeatureNotBound("model_config is not able to 'set_model' because missing 'feature' input")
        dev, block = self._resolve_model(model)
        # build before replacing: a broken model keeps the previous session
        s = Session.create(name, model, dev, block)
        if name in self.sessions:
            log.info("Feature %s: replacing session for model %s", name, self.sessions[name].model)
        self.sessions[name] = s
        self.current_feature = name
        log.info("Feature %s: bound to model %s (%d bits)", name, model, s.total_bits)
        return s

    def set_api(self, path: Union[Path, str, dict], feature: Optional[str] = None) -> None:
        self.session(feature, "set_api").set_api(path)

    def set_attr(self, instance: str, name: str, value: str, feature: Optional[str] = None) -> Optional[ApiSetting]:
        return self.session(feature, "set_attr").set_attr(instance, name, value)

    def get_attr(self, instance: str, name: str, feature: Optional[str] = None) -> int:
        return self.session(feature, "get_attr").get_attr(instance, name)

    def set_design(self, path: Union[Path, str, dict], feature: Optional[str] = None) -> int:
        return self.session(feature, "set_design").set_design(path)

    def write(self, fmt: Any, path: Union[Path, str], feature: Optional[str] = None) -> None:
        writer.write(self.session(feature, "write"), fmt, Path(path))

    def dump_ric(self, model: str, path: Union[Path, str]) -> int:
        """Write the addressing of every block/attribute of ``model``; no session is involved."""
        dev, block = self._resolve_model(model)
        lines = [e.format() for e in walk_ric(dev, block)]
        with Path(path).open("w", encoding="utf-8") as f:
            for ln in lines:
                f.write(ln + "\n")
        log.info("Dumped %d RIC line(s) of model %s to %s", len(lines), model, path)
        return len(lines)
