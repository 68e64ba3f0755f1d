"""Tests for descriptor schema checks and argument/result validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from agentrt.core.errors import InvalidDescriptor, ToolValidationError
from agentrt.tools.descriptor import (
    Constraint,
    ConstraintKind,
    ParameterSpec,
    ParamType,
    ReturnSpec,
    ToolDescriptor,
    type_conforms,
)
from agentrt.tools.validation import check_result, validate_arguments


def _reader(**overrides) -> ToolDescriptor:
    fields = {
        "name": "file_reader",
        "description": "Read a file",
        "parameters": [
            ParameterSpec(name="path", type=ParamType.STRING, required=True),
            ParameterSpec(name="encoding", type=ParamType.STRING, default="utf-8"),
            ParameterSpec(name="limit", type=ParamType.INTEGER),
        ],
        "returns": ReturnSpec(type=ParamType.OBJECT, description="file content"),
    }
    fields.update(overrides)
    return ToolDescriptor(**fields)


class TestTypeConformance:
    @pytest.mark.parametrize(
        ("value", "tag", "expected"),
        [
            ("x", ParamType.STRING, True),
            (1, ParamType.STRING, False),
            (3, ParamType.INTEGER, True),
            (True, ParamType.INTEGER, False),
            (3.5, ParamType.INTEGER, False),
            (3, ParamType.NUMBER, True),
            (3.5, ParamType.NUMBER, True),
            (False, ParamType.NUMBER, False),
            (True, ParamType.BOOLEAN, True),
            ([1], ParamType.ARRAY, True),
            ({"a": 1}, ParamType.OBJECT, True),
            (None, ParamType.NULL, True),
            (None, ParamType.OBJECT, False),
        ],
    )
    def test_closed_type_tags(self, value, tag, expected):
        assert type_conforms(value, tag) is expected


class TestDescriptorSchema:
    def test_unknown_type_tag_rejected(self):
        with pytest.raises(ValidationError):
            ParameterSpec(name="x", type="any")

    def test_duplicate_parameter_names_rejected(self):
        with pytest.raises(ValidationError):
            ToolDescriptor(
                name="dup",
                parameters=[
                    ParameterSpec(name="a", type=ParamType.STRING),
                    ParameterSpec(name="a", type=ParamType.INTEGER),
                ],
            )

    def test_default_must_match_type(self):
        with pytest.raises(ValidationError):
            ParameterSpec(name="limit", type=ParamType.INTEGER, default="ten")

    def test_required_parameter_cannot_have_default(self):
        with pytest.raises(ValidationError):
            ParameterSpec(name="path", type=ParamType.STRING, required=True, default="/")

    def test_pre_constraint_must_target_declared_parameter(self):
        with pytest.raises(ValidationError):
            _reader(
                constraints=[Constraint(target="nope", kind=ConstraintKind.MAX_LENGTH, value=3)]
            )

    def test_post_constraint_must_target_result(self):
        with pytest.raises(ValidationError):
            _reader(
                constraints=[
                    Constraint(target="path", kind=ConstraintKind.MAX_BYTES, value=10, phase="post")
                ]
            )

    def test_constraint_value_checked_against_kind(self):
        with pytest.raises(ValidationError):
            Constraint(target="limit", kind=ConstraintKind.MINIMUM, value="low")
        with pytest.raises(ValidationError):
            Constraint(target="path", kind=ConstraintKind.PATTERN, value="(unclosed")

    def test_from_dict_wraps_errors(self):
        with pytest.raises(InvalidDescriptor) as exc_info:
            ToolDescriptor.from_dict({"name": "has space"})
        assert exc_info.value.code == "invalid_descriptor"

    def test_schema_roundtrip(self):
        descriptor = _reader(
            constraints=[Constraint(target="limit", kind=ConstraintKind.MINIMUM, value=1)]
        )
        assert ToolDescriptor.from_dict(descriptor.to_schema()) == descriptor

    def test_null_parameter_can_declare_none_default(self):
        explicit = ParameterSpec(name="cursor", type=ParamType.NULL, default=None)
        implicit = ParameterSpec(name="cursor", type=ParamType.NULL)

        assert explicit.has_default
        assert not implicit.has_default
        assert not ParameterSpec(name="limit", type=ParamType.INTEGER).has_default

    def test_schema_only_lists_declared_defaults(self):
        descriptor = _reader(
            parameters=[
                ParameterSpec(name="encoding", type=ParamType.STRING, default="utf-8"),
                ParameterSpec(name="limit", type=ParamType.INTEGER),
                ParameterSpec(name="cursor", type=ParamType.NULL, default=None),
            ]
        )

        params = {p["name"]: p for p in descriptor.to_schema()["parameters"]}

        assert params["encoding"]["default"] == "utf-8"
        assert "default" not in params["limit"]
        assert params["cursor"]["default"] is None
        rebuilt = ToolDescriptor.from_dict(descriptor.to_schema())
        assert [p.has_default for p in rebuilt.parameters] == [True, False, True]


class TestValidateArguments:
    def test_missing_required_parameter(self):
        with pytest.raises(ToolValidationError) as exc_info:
            validate_arguments(_reader(), {})

        err = exc_info.value
        assert err.code == "tool_validation_error"
        assert err.recoverable is True
        assert "missing required parameter 'path'" in err.errors

    def test_defaults_are_filled(self):
        args = validate_arguments(_reader(), {"path": "/tmp/a.txt"})
        assert args == {"path": "/tmp/a.txt", "encoding": "utf-8"}

    def test_explicit_none_default_is_filled(self):
        descriptor = _reader(
            parameters=[
                ParameterSpec(name="path", type=ParamType.STRING, required=True),
                ParameterSpec(name="cursor", type=ParamType.NULL, default=None),
            ]
        )
        args = validate_arguments(descriptor, {"path": "/tmp/a.txt"})
        assert args == {"path": "/tmp/a.txt", "cursor": None}

    def test_type_mismatch_reported(self):
        with pytest.raises(ToolValidationError) as exc_info:
            validate_arguments(_reader(), {"path": "/tmp/a", "limit": True})
        assert "'limit' should be integer, got boolean" in exc_info.value.errors

    def test_unknown_parameter_rejected(self):
        with pytest.raises(ToolValidationError) as exc_info:
            validate_arguments(_reader(), {"path": "/a", "mode": "rb"})
        assert "unknown parameter 'mode'" in exc_info.value.errors

    def test_extra_parameters_allowed_when_declared(self):
        args = validate_arguments(_reader(allow_extra=True), {"path": "/a", "mode": "rb"})
        assert args["mode"] == "rb"

    def test_all_problems_reported_together(self):
        with pytest.raises(ToolValidationError) as exc_info:
            validate_arguments(_reader(), {"limit": "ten", "mode": "rb"})
        assert len(exc_info.value.errors) == 3

    def test_arguments_must_be_an_object(self):
        with pytest.raises(ToolValidationError):
            validate_arguments(_reader(), ["path"])

    @pytest.mark.parametrize(
        ("constraint", "args"),
        [
            (Constraint(target="limit", kind=ConstraintKind.MINIMUM, value=1), {"limit": 0}),
            (Constraint(target="limit", kind=ConstraintKind.MAXIMUM, value=100), {"limit": 101}),
            (Constraint(target="path", kind=ConstraintKind.MAX_LENGTH, value=4), {}),
            (Constraint(target="path", kind=ConstraintKind.MIN_LENGTH, value=50), {}),
            (Constraint(target="path", kind=ConstraintKind.PATTERN, value=r"/srv/.*"), {}),
            (
                Constraint(target="encoding", kind=ConstraintKind.ONE_OF, value=["ascii"]),
                {},
            ),
            (Constraint(target="path", kind=ConstraintKind.MAX_BYTES, value=5), {}),
        ],
    )
    def test_pre_constraints(self, constraint, args):
        descriptor = _reader(constraints=[constraint])
        with pytest.raises(ToolValidationError):
            validate_arguments(descriptor, {"path": "/tmp/report.txt", **args})

    def test_constraints_pass_for_valid_values(self):
        descriptor = _reader(
            constraints=[
                Constraint(target="limit", kind=ConstraintKind.MINIMUM, value=1),
                Constraint(target="limit", kind=ConstraintKind.MAXIMUM, value=100),
                Constraint(target="path", kind=ConstraintKind.PATTERN, value=r"/tmp/.*"),
                Constraint(target="encoding", kind=ConstraintKind.ONE_OF, value=["utf-8"]),
            ]
        )
        args = validate_arguments(descriptor, {"path": "/tmp/a", "limit": 10})
        assert args["limit"] == 10


class TestCheckResult:
    def test_return_type_mismatch(self):
        assert check_result(_reader(), "plain text") == ["result should be object, got str"]

    def test_matching_result_has_no_violations(self):
        assert check_result(_reader(), {"content": "hi"}) == []

    def test_post_constraint_on_field(self):
        descriptor = _reader(
            constraints=[
                Constraint(
                    target="$result.content",
                    kind=ConstraintKind.MAX_LENGTH,
                    value=3,
                    phase="post",
                )
            ]
        )
        assert check_result(descriptor, {"content": "ok"}) == []
        assert check_result(descriptor, {"content": "too long"})
        assert check_result(descriptor, {}) == ["result is missing '$result.content'"]
