from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional

from modelcfg.errors import UnknownEnumValue


@dataclass(frozen=True)
class DeviceEnumType:
    name: str
    values: Dict[str, int] = field(default_factory=dict)

    def get_enum_value(self, label: str) -> int:
        if label not in self.values:
            raise UnknownEnumValue(f"'{label}' is not a value of enum type '{self.name}'")
        return self.values[label]


@dataclass(frozen=True)
class DeviceAttribute:
    name: str
    address: int  # bit address local to the owning block
    size: int
    default: Optional[int] = None
    enum_type: Optional[DeviceEnumType] = None


@dataclass(frozen=True)
class DeviceInstance:
    name: str
    address: int  # logical bit offset inside the parent block
    block: "DeviceBlock"
    location: tuple[int, int, int] = (0, 0, 0)


@dataclass(frozen=True)
class DeviceBlock:
    name: str
    attributes: Dict[str, DeviceAttribute] = field(default_factory=dict)
    instances: Dict[str, DeviceInstance] = field(default_factory=dict)


@dataclass(frozen=True)
class DeviceModel:
    name: str
    blocks: Dict[str, DeviceBlock] = field(default_factory=dict)
    enums: Dict[str, DeviceEnumType] = field(default_factory=dict)
    customer_names: Dict[str, str] = field(default_factory=dict)

    def get_block(self, name: str) -> Optional[DeviceBlock]:
        return self.blocks.get(name)

    def get_customer_name(self, path: str) -> str:
        """User alias of a dotted instance path, empty if the device gives none."""
        return self.customer_names.get(path, "")


@dataclass
class ModelLibrary:
    """Device models known to the process, addressed by top block name."""

    devices: list[DeviceModel] = field(default_factory=list)

    def add_device(self, device: DeviceModel) -> None:
        self.devices.append(device)

    def get_device_model(self, model: str) -> Optional[DeviceModel]:
        # later devices shadow earlier ones
        for dev in reversed(self.devices):
            if model in dev.blocks:
                return dev
        return None

    def model_names(self) -> list[str]:
        names: set[str] = set()
        for dev in self.devices:
            names.update(dev.blocks)
        return sorted(names)
