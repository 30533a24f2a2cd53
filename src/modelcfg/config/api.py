from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from modelcfg.config.documents import ApiCatalogDoc, ApiGroupDoc, InstanceEntry, validate_document
from modelcfg.utils.logger import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ApiAttribute:
    name: str
    value: str


@dataclass(frozen=True)
class ApiSetting:
    name: str
    instance_equation: Optional[str] = None
    attributes: tuple[ApiAttribute, ...] = ()

    @property
    def is_equation(self) -> bool:
        return self.instance_equation is not None


@dataclass(frozen=True)
class ApiGroup:
    name: str
    settings: Dict[str, ApiSetting] = field(default_factory=dict)

    def get_setting(self, name: str) -> Optional[ApiSetting]:
        return self.settings.get(name)

    @classmethod
    def from_doc(cls, name: str, doc: ApiGroupDoc) -> "ApiGroup":
        settings: dict[str, ApiSetting] = {}
        for sname, entries in doc.root.items():
            if isinstance(entries[0], InstanceEntry):
                settings[sname] = ApiSetting(name=sname, instance_equation=entries[0].instance)
            else:
                attrs = tuple(ApiAttribute(name=e.attr, value=e.value) for e in entries)
                settings[sname] = ApiSetting(name=sname, attributes=attrs)
        return cls(name=name, settings=settings)


@dataclass
class ApiCatalog:
    groups: Dict[str, ApiGroup] = field(default_factory=dict)

    def __contains__(self, name: str) -> bool:
        return name in self.groups

    def get_group(self, name: str) -> Optional[ApiGroup]:
        return self.groups.get(name)

    def add_api(self, name: str, doc: Union[ApiGroupDoc, Any]) -> ApiGroup:
        if not isinstance(doc, ApiGroupDoc):
            doc = validate_document(ApiGroupDoc, doc, source=f"for API group '{name}'")
        group = ApiGroup.from_doc(name, doc)
        if name in self.groups:
            log.info("Replacing API group %s", name)
        self.groups[name] = group
        log.debug("API group %s settings=%s", name, ",".join(group.settings))
        return group

    def add_catalog(self, doc: ApiCatalogDoc) -> None:
        for name, group_doc in doc.root.items():
            self.add_api(name, group_doc)
