"""Pydantic models describing a tool's name, parameters, return shape and constraints.

Descriptors are frozen: once registered they never change. Parameter and
return types are a closed set of tags; values outside the declared set are
rejected at validation time rather than passed through untyped.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from agentrt.core.errors import InvalidDescriptor
from agentrt.core.types import Sensitivity

RESULT_TARGET = "$result"

_NAME_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")


class ParamType(str, Enum):
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"
    NULL = "null"


def type_conforms(value: Any, type_tag: ParamType) -> bool:
    """Return True when ``value`` is an instance of the declared type tag."""
    # bool is a subclass of int; keep the two apart.
    if type_tag is ParamType.STRING:
        return isinstance(value, str)
    if type_tag is ParamType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if type_tag is ParamType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if type_tag is ParamType.BOOLEAN:
        return isinstance(value, bool)
    if type_tag is ParamType.ARRAY:
        return isinstance(value, (list, tuple))
    if type_tag is ParamType.OBJECT:
        return isinstance(value, dict)
    if type_tag is ParamType.NULL:
        return value is None
    return False


class ConstraintKind(str, Enum):
    MINIMUM = "minimum"
    MAXIMUM = "maximum"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"
    PATTERN = "pattern"
    ONE_OF = "one_of"
    MAX_BYTES = "max_bytes"


class ParameterSpec(BaseModel):
    """One declared tool parameter."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: ParamType
    required: bool = False
    default: Any = None
    description: str = ""
    sensitivity: Sensitivity = Sensitivity.PUBLIC

    @field_validator("name")
    @classmethod
    def name_is_identifier(cls, v: str) -> str:
        if not v or not _NAME_RE.match(v):
            raise ValueError(f"invalid parameter name: {v!r}")
        return v

    @property
    def has_default(self) -> bool:
        # None only counts as a default when a null-typed parameter sets it explicitly.
        if self.default is not None:
            return True
        return self.type is ParamType.NULL and "default" in self.model_fields_set

    @model_validator(mode="after")
    def default_matches_type(self) -> ParameterSpec:
        if self.has_default and not type_conforms(self.default, self.type):
            raise ValueError(
                f"default for '{self.name}' does not match declared type '{self.type.value}'"
            )
        if self.required and self.has_default:
            raise ValueError(f"required parameter '{self.name}' cannot declare a default")
        return self


class ReturnSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: ParamType = ParamType.OBJECT
    description: str = ""


class Constraint(BaseModel):
    """A pre- or post-condition on one parameter or on the result.

    ``target`` names a parameter for ``pre`` constraints, and ``$result`` or
    ``$result.<field>`` for ``post`` constraints.
    """

    model_config = ConfigDict(frozen=True)

    target: str
    kind: ConstraintKind
    value: Any
    phase: Literal["pre", "post"] = "pre"

    @model_validator(mode="after")
    def value_fits_kind(self) -> Constraint:
        kind, value = self.kind, self.value
        if kind in (ConstraintKind.MINIMUM, ConstraintKind.MAXIMUM):
            if not type_conforms(value, ParamType.NUMBER):
                raise ValueError(f"{kind.value} constraint needs a numeric value")
        elif kind in (ConstraintKind.MIN_LENGTH, ConstraintKind.MAX_LENGTH, ConstraintKind.MAX_BYTES):
            if not type_conforms(value, ParamType.INTEGER) or value < 0:
                raise ValueError(f"{kind.value} constraint needs a non-negative integer")
        elif kind is ConstraintKind.PATTERN:
            if not isinstance(value, str):
                raise ValueError("pattern constraint needs a string")
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"invalid pattern: {e}") from e
        elif kind is ConstraintKind.ONE_OF:
            if not isinstance(value, (list, tuple)) or not value:
                raise ValueError("one_of constraint needs a non-empty list")
        return self


class ToolDescriptor(BaseModel):
    """Schema of one capability, independent of its implementation."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    parameters: tuple[ParameterSpec, ...] = ()
    returns: ReturnSpec = ReturnSpec()
    constraints: tuple[Constraint, ...] = ()
    allow_extra: bool = False

    @field_validator("name")
    @classmethod
    def name_is_stable_identifier(cls, v: str) -> str:
        if not v or not _NAME_RE.match(v):
            raise ValueError(f"invalid tool name: {v!r}")
        return v

    @model_validator(mode="after")
    def check_references(self) -> ToolDescriptor:
        names = [p.name for p in self.parameters]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate parameter names: {', '.join(dupes)}")
        for c in self.constraints:
            if c.phase == "pre" and c.target not in names:
                raise ValueError(f"constraint targets unknown parameter '{c.target}'")
            if c.phase == "post" and not (
                c.target == RESULT_TARGET or c.target.startswith(RESULT_TARGET + ".")
            ):
                raise ValueError(f"post constraint target must start with '{RESULT_TARGET}'")
        return self

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolDescriptor:
        """Build a descriptor from its schema dict, raising ``InvalidDescriptor`` on error."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            name = data.get("name", "?") if isinstance(data, dict) else "?"
            raise InvalidDescriptor(f"Invalid descriptor for '{name}': {e}") from e

    def parameter(self, name: str) -> ParameterSpec | None:
        for p in self.parameters:
            if p.name == name:
                return p
        return None

    def constraints_for(self, phase: str) -> list[Constraint]:
        return [c for c in self.constraints if c.phase == phase]

    def to_schema(self) -> dict[str, Any]:
        """Return the descriptor as a plain JSON-compatible dict.

        ``default`` is only present on parameters that declare one.
        """
        schema = self.model_dump(mode="json")
        for spec, dumped in zip(self.parameters, schema["parameters"]):
            if not spec.has_default:
                dumped.pop("default", None)
        return schema
