"""Typed intermediates for the JSON/YAML documents consumed by a session.

Documents are validated completely before any session state is touched, so a
malformed file never leaves half-applied presets or attributes behind.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional, Type, TypeVar, Union

import yaml
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, RootModel, model_validator
from pydantic import ValidationError as PydanticValidationError

from modelcfg.errors import ValidationError


def _to_text(v: Any) -> Any:
    # numbers are accepted where the documents expect strings: "value": 3
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


Text = Annotated[str, BeforeValidator(_to_text), Field(min_length=1)]


class InstanceEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    instance: Text


class AttrEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    attr: Text
    value: Text


ApiEntry = Union[InstanceEntry, AttrEntry]


class ApiGroupDoc(RootModel[Dict[str, List[ApiEntry]]]):
    @model_validator(mode="after")
    def _check_settings(self) -> "ApiGroupDoc":
        if not self.root:
            raise ValueError("API group does not define any setting")
        for name, entries in self.root.items():
            if not entries:
                raise ValueError(f"API setting '{name}' is empty")
            n_inst = sum(1 for e in entries if isinstance(e, InstanceEntry))
            if n_inst and (n_inst > 1 or len(entries) > 1):
                raise ValueError(f"API setting '{name}' mixes an instance equation with other entries")
        return self


class ApiCatalogDoc(RootModel[Dict[str, ApiGroupDoc]]):
    @model_validator(mode="after")
    def _check_groups(self) -> "ApiCatalogDoc":
        if not self.root:
            raise ValueError("API document does not define any group")
        return self


AttributeMap = Dict[str, Text]


class DesignInstanceDoc(BaseModel):
    # netlist instances carry much more than we need (module, name, ...)
    model_config = ConfigDict(extra="allow")

    location: Optional[Text] = None
    config_attributes: Optional[Union[AttributeMap, List[AttributeMap]]] = None

    @model_validator(mode="after")
    def _check_attributes(self) -> "DesignInstanceDoc":
        if self.config_attributes is None:
            return self
        if self.location is None:
            raise ValueError("instance with config_attributes must define a location")
        if not self.config_attributes:
            raise ValueError(f"config_attributes of '{self.location}' is empty")
        for m in self.attribute_maps():
            if not m:
                raise ValueError(f"config_attributes of '{self.location}' holds an empty map")
        return self

    def attribute_maps(self) -> list[Dict[str, str]]:
        if self.config_attributes is None:
            return []
        if isinstance(self.config_attributes, dict):
            return [self.config_attributes]
        return list(self.config_attributes)


class DesignDoc(BaseModel):
    model_config = ConfigDict(extra="allow")

    instances: Optional[List[DesignInstanceDoc]] = None


M = TypeVar("M", bound=BaseModel)


def validate_document(model: Type[M], data: Any, source: str = "<document>") -> M:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {model.__name__} {source}\n{exc}") from exc


def load_document(path: Path) -> Any:
    """Read a JSON or YAML document; the top level must be a mapping."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValidationError(f"Cannot parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValidationError(f"{path} must start with a mapping")
    return data
