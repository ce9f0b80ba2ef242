"""Shared schema pieces: object metadata, conditions and the record base."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, TypeVar

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    ValidationError,
    field_validator,
)
from pydantic.alias_generators import to_camel

from configsync.exceptions import ConfigurationError
from configsync.models.keys import RecordKey
from configsync.services.datetime_service import format_rfc3339, parse_datetime

SpecT = TypeVar("SpecT", bound=BaseModel)


def _parse_timestamp(value: Any) -> Any:
    if isinstance(value, str | datetime):
        return parse_datetime(value)
    return value


Timestamp = Annotated[
    datetime,
    BeforeValidator(_parse_timestamp),
    PlainSerializer(format_rfc3339, return_type=str, when_used="json"),
]

NonEmptyStr = Annotated[str, Field(min_length=1)]


class ApiModel(BaseModel):
    """Base for models mirroring camelCase API objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ObjectMeta(ApiModel):
    """The subset of metav1.ObjectMeta the operator relies on."""

    name: str
    namespace: str = "default"
    uid: str = ""
    generation: int = 0
    resource_version: str | None = None
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: Timestamp | None = None


class ConditionStatus(StrEnum):
    """Tri-state status of a condition."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Condition(ApiModel):
    """A metav1.Condition entry."""

    type: str
    status: ConditionStatus = ConditionStatus.UNKNOWN
    reason: str = ""
    message: str = ""
    last_transition_time: Timestamp | None = None
    observed_generation: int = 0


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one human-readable line."""
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "spec"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


class CustomRecord(ApiModel):
    """A namespaced custom resource with an unparsed spec.

    ``spec`` stays a raw mapping so that a record with an invalid spec can
    still carry a finalizer and report status.
    """

    metadata: ObjectMeta
    spec: dict[str, Any] = Field(default_factory=dict)

    @field_validator("spec", mode="before")
    @classmethod
    def spec_none_is_empty(cls, v: Any) -> Any:
        """Treat an explicit null spec as empty."""
        _ = cls
        return {} if v is None else v

    @property
    def key(self) -> RecordKey:
        return RecordKey(self.metadata.namespace, self.metadata.name)

    @property
    def is_deleting(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def _parse_spec(self, spec_cls: type[SpecT]) -> SpecT:
        try:
            return spec_cls.model_validate(self.spec)
        except ValidationError as exc:
            msg = f"Invalid spec: {describe_validation_error(exc)}"
            raise ConfigurationError(msg) from exc
