from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Optional, Union

from modelcfg.config.api import ApiCatalog, ApiSetting
from modelcfg.config.bitfield import Bitfield, BitfieldTable, allocate
from modelcfg.config.documents import ApiCatalogDoc, DesignDoc, load_document, validate_document
from modelcfg.device.model import DeviceBlock, DeviceModel
from modelcfg.errors import BitfieldNotFound, PresetNotFound, RangeError, UnknownEnumValue
from modelcfg.utils.bits import fits_width, parse_number
from modelcfg.utils.logger import get_logger

log = get_logger(__name__)


@dataclass
class Session:
    """Bitfield layout, presets and values of one feature bound to one model."""

    feature: str
    model: str
    device: DeviceModel
    table: BitfieldTable
    catalog: ApiCatalog = field(default_factory=ApiCatalog)

    @classmethod
    def create(cls, feature: str, model: str, device: DeviceModel, block: DeviceBlock) -> "Session":
        return cls(feature=feature, model=model, device=device, table=allocate(device, block))

    @property
    def total_bits(self) -> int:
        return self.table.total_bits

    # --- presets ---
    def add_api(self, name: str, doc: Any) -> None:
        self.catalog.add_api(name, doc)

    def set_api(self, source: Union[Path, str, dict]) -> None:
        if isinstance(source, dict):
            data, where = source, "<document>"
        else:
            data, where = load_document(Path(source)), str(source)
        doc = validate_document(ApiCatalogDoc, data, source=where)
        self.catalog.add_catalog(doc)
        log.info("Feature %s: loaded %d API group(s) from %s", self.feature, len(doc.root), where)

    # --- attributes ---
    def get_bitfield(self, instance: str, name: str) -> Bitfield:
        b = self.table.find(instance, name)
        if b is None:
            raise BitfieldNotFound(f"Could not find bitfield '{name}' for block instance '{instance}'")
        return b

    def get_attr(self, instance: str, name: str) -> int:
        return self.get_bitfield(instance, name).value

    def set_attr_value(self, instance: str, name: str, value: str) -> int:
        b = self.get_bitfield(instance, name)
        v = parse_number(value)
        if v is None:
            if b.enum_type is None:
                raise UnknownEnumValue(
                    f"'{value}' is not a number and bitfield '{instance}.{name}' has no enum type"
                )
            v = b.enum_type.get_enum_value(value)
        if not fits_width(v, b.size):
            raise RangeError(f"value {value} does not fit {b.size}-bit bitfield '{instance}.{name}'")
        log.debug("set_attr %s.%s = %d (addr=%d size=%d)", instance, name, v, b.addr, b.size)
        b.value = v
        return v

    def set_attr(self, instance: str, name: str, value: str) -> Optional[ApiSetting]:
        """Assign an attribute, or expand the API preset ``name``/``value``.

        Presets are replayed in declared order. If any assignment fails, every
        value written by this call is rolled back. Returns the preset that was
        applied, if any.
        """
        group = self.catalog.get_group(name)
        if group is None:
            self.set_attr_value(instance, name, value)
            return None

        setting = group.get_setting(value)
        if setting is None:
            raise PresetNotFound(f"Could not find '{name}' API setting '{value}'")
        if setting.is_equation:
            log.warning(
                "API setting %s=%s of %s is an instance equation (%s); not expanded",
                name,
                value,
                instance,
                setting.instance_equation,
            )
            return setting
        with self.transaction():
            for attr in setting.attributes:
                self.set_attr_value(instance, attr.name, attr.value)
        return setting

    # --- design ---
    def set_design(self, source: Union[Path, str, dict]) -> int:
        """Replay the ``config_attributes`` of a design document.

        Returns the number of attribute assignments made.
        """
        if isinstance(source, dict):
            data, where = source, "<document>"
        else:
            data, where = load_document(Path(source)), str(source)
        doc = validate_document(DesignDoc, data, source=where)

        if doc.instances is None:
            log.warning('"instances" object is not defined, skip the design file "%s"', where)
            return 0
        if not doc.instances:
            log.warning('"instances" object is defined but empty, skip the design file "%s"', where)
            return 0

        count = 0
        with self.transaction():
            for inst in doc.instances:
                for attributes in inst.attribute_maps():
                    for name, value in attributes.items():
                        self.set_attr(inst.location, name, value)
                        count += 1
        log.info("Feature %s: applied %d design attribute(s) from %s", self.feature, count, where)
        return count

    @contextmanager
    def transaction(self) -> Iterator[None]:
        saved = self.table.snapshot()
        try:
            yield
        except Exception:
            self.table.restore(saved)
            raise
