"""
Log record models submitted to the Helicone custom-log endpoint.

Field names on the wire are camelCase (`providerRequest`, `startTime`, ...)
and the inner `json` payloads are caller-defined, so they are typed as a
generic JSON value rather than any business schema.
"""
from __future__ import annotations
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_serializer, field_validator, model_validator

from heliconelog.core.timing import TimingEnvelope


def _freeze(v: Any) -> Any:
    if isinstance(v, Mapping):
        return MappingProxyType({k: _freeze(x) for k, x in v.items()})
    if isinstance(v, (list, tuple)):
        return tuple(_freeze(x) for x in v)
    return v


def _thaw(v: Any) -> Any:
    if isinstance(v, Mapping):
        return {k: _thaw(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_thaw(x) for x in v]
    return v


class _WireModel(BaseModel):
    """
    Frozen model whose nested payloads are frozen too: dicts become read-only
    mappings and lists become tuples once validated. They are thawed back to
    plain JSON types on dump.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    _frozen_fields: ClassVar[Tuple[str, ...]] = ()

    @field_validator("*", mode="before")
    @classmethod
    def _thaw_input(cls, v):
        return _thaw(v) if isinstance(v, (Mapping, tuple)) else v

    @model_validator(mode="after")
    def _freeze_containers(self):
        for name in self._frozen_fields:
            self.__dict__[name] = _freeze(self.__dict__[name])
        return self


class RequestDescriptor(_WireModel):
    _frozen_fields: ClassVar[Tuple[str, ...]] = ("payload", "meta")

    url: str
    payload: JsonValue = Field(default_factory=dict, alias="json")
    meta: Dict[str, str] = Field(default_factory=dict)

    @field_serializer("payload", "meta")
    def _dump_frozen(self, v):
        return _thaw(v)


class ResponseDescriptor(_WireModel):
    _frozen_fields: ClassVar[Tuple[str, ...]] = ("payload", "headers")

    payload: JsonValue = Field(default_factory=dict, alias="json")
    status: int
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_serializer("payload", "headers")
    def _dump_frozen(self, v):
        return _thaw(v)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class LogRecord(_WireModel):
    provider_request: RequestDescriptor = Field(alias="providerRequest")
    provider_response: ResponseDescriptor = Field(alias="providerResponse")
    timing: TimingEnvelope

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "LogRecord":
        return cls.model_validate(data)


__all__ = ["JsonValue", "RequestDescriptor", "ResponseDescriptor", "LogRecord"]
