from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from modelcfg.device.model import (
    DeviceAttribute,
    DeviceBlock,
    DeviceEnumType,
    DeviceInstance,
    DeviceModel,
)
from modelcfg.errors import ValidationError
from modelcfg.utils.logger import get_logger

log = get_logger(__name__)


class AttributeDoc(BaseModel):
    address: int = Field(..., ge=0)
    size: int = Field(..., ge=0)
    default: Optional[int] = Field(default=None, ge=0)
    enum: Optional[str] = None


class InstanceDoc(BaseModel):
    block: str
    address: int = Field(default=0, ge=0)
    location: tuple[int, int, int] = (0, 0, 0)


class BlockDoc(BaseModel):
    attributes: Dict[str, AttributeDoc] = Field(default_factory=dict)
    instances: Dict[str, InstanceDoc] = Field(default_factory=dict)


class DeviceDoc(BaseModel):
    name: Optional[str] = None
    enums: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    customer_names: Dict[str, str] = Field(default_factory=dict)
    blocks: Dict[str, BlockDoc] = Field(..., min_length=1)


def build_device(data: Any, default_name: str = "device") -> DeviceModel:
    try:
        doc = DeviceDoc.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid device model '{default_name}'\n{exc}") from exc

    enums = {n: DeviceEnumType(name=n, values=dict(v)) for n, v in doc.enums.items()}
    resolved: dict[str, DeviceBlock] = {}
    in_progress: list[str] = []

    def resolve(name: str) -> DeviceBlock:
        if name in resolved:
            return resolved[name]
        if name in in_progress:
            chain = " -> ".join(in_progress + [name])
            raise ValidationError(f"block instantiation cycle: {chain}")
        entry = doc.blocks.get(name)
        if entry is None:
            raise ValidationError(f"block not found: {name}")

        in_progress.append(name)
        attrs: dict[str, DeviceAttribute] = {}
        for aname, a in entry.attributes.items():
            enum_type = None
            if a.enum is not None:
                enum_type = enums.get(a.enum)
                if enum_type is None:
                    raise ValidationError(f"attribute {name}.{aname} uses unknown enum '{a.enum}'")
            attrs[aname] = DeviceAttribute(
                name=aname,
                address=a.address,
                size=a.size,
                default=a.default,
                enum_type=enum_type,
            )

        insts: dict[str, DeviceInstance] = {}
        for iname, i in entry.instances.items():
            insts[iname] = DeviceInstance(
                name=iname,
                address=i.address,
                block=resolve(i.block),
                location=i.location,
            )
        in_progress.pop()

        block = DeviceBlock(name=name, attributes=attrs, instances=insts)
        resolved[name] = block
        return block

    for bname in doc.blocks:
        resolve(bname)

    device = DeviceModel(
        name=doc.name or default_name,
        blocks=resolved,
        enums=enums,
        customer_names=dict(doc.customer_names),
    )
    log.info("Loaded device=%s blocks=%d enums=%d", device.name, len(resolved), len(enums))
    return device


def load_device(path: Path) -> DeviceModel:
    """Load a YAML (or JSON) device model file."""
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValidationError(f"Cannot parse device model {path}: {exc}") from exc
    if data is None:
        raise ValidationError(f"Empty device model: {path}")
    return build_device(data, default_name=path.stem)
