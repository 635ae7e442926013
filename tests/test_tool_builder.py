from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel, Field

from agent_engine.models import ExecutionResult
from agent_engine.tool_builder import (
    APPROVAL_REQUIRED_ERROR,
    ApprovalSpec,
    FollowUp,
    define_tool,
    make_json_schema_validator,
    pydantic_validator,
    with_confirm_flag,
)

STRICT_SCHEMA = {
    "type": "object",
    "required": ["x"],
    "properties": {"x": {"type": "string"}},
    "additionalProperties": False,
}

# ---------------------------------------------------------------------------
# JSON schema subset validator
# ---------------------------------------------------------------------------


def test_validator_missing_required():
    outcome = make_json_schema_validator(STRICT_SCHEMA)({})
    assert outcome.valid is False
    assert any("x" in error for error in outcome.errors)


def test_validator_rejects_unknown_property():
    outcome = make_json_schema_validator(STRICT_SCHEMA)({"x": "ok", "y": 1})
    assert outcome.valid is False
    assert any("y" in error for error in outcome.errors)


def test_validator_accepts_valid_input():
    outcome = make_json_schema_validator(STRICT_SCHEMA)({"x": "ok"})
    assert outcome.valid is True
    assert outcome.value == {"x": "ok"}


def test_validator_type_checks():
    validate = make_json_schema_validator(
        {
            "type": "object",
            "properties": {
                "n": {"type": "number"},
                "flag": {"type": "boolean"},
                "count": {"type": "integer"},
                "tags": {"type": "array", "items": {"type": "string"}},
                "meta": {"type": "object"},
            },
        }
    )

    assert validate({"n": 1.5, "flag": False, "count": 3, "tags": ["a"], "meta": {"k": [1]}}).valid

    outcome = validate({"n": True, "flag": "yes", "count": 2.5, "tags": ["a", 2]})
    assert outcome.valid is False
    assert "Property 'n' expected number, got boolean" in outcome.errors
    assert "Property 'flag' expected boolean, got string" in outcome.errors
    assert "Property 'count' expected integer, got number" in outcome.errors
    assert "Property 'tags[1]' expected string, got number" in outcome.errors


def test_validator_allows_extra_keys_when_open():
    validate = make_json_schema_validator({"type": "object", "properties": {}})
    assert validate({"anything": 1}).valid


def test_validator_rejects_non_object_root():
    outcome = make_json_schema_validator({"type": "array"})({})
    assert outcome.valid is False
    assert "Root schema.type must be 'object'" in outcome.errors


def test_pydantic_validator_returns_model_instance():
    class Args(BaseModel):
        name: str
        size: int = Field(gt=0)

    validate = pydantic_validator(Args)

    good = validate({"name": "a", "size": 2})
    assert good.valid and isinstance(good.value, Args)

    bad = validate({"size": 0})
    assert bad.valid is False
    assert any(error.startswith("name:") for error in bad.errors)
    assert any(error.startswith("size:") for error in bad.errors)


# ---------------------------------------------------------------------------
# define_tool
# ---------------------------------------------------------------------------


def test_define_tool_runs_handler_with_validated_args(context):
    handler = MagicMock(return_value=ExecutionResult(success=True, result="ran"))
    tool = define_tool("t", "desc", STRICT_SCHEMA, handler)

    result = tool.execute({"x": "ok"}, context)

    assert result.success is True
    assert result.result == "ran"
    handler.assert_called_once_with({"x": "ok"}, context)


def test_define_tool_validation_failure_skips_handler(context):
    handler = MagicMock()
    tool = define_tool("t", "desc", STRICT_SCHEMA, handler)

    result = tool.execute({"x": 5, "y": 1}, context)

    assert result.success is False
    assert result.result is None
    assert "Property 'x' expected string, got number" in result.error
    assert "Unknown property: y" in result.error
    handler.assert_not_called()


def test_define_tool_requires_handler_or_approval():
    with pytest.raises(ValueError, match="needs a handler"):
        define_tool("t", "desc", STRICT_SCHEMA)


# ---------------------------------------------------------------------------
# Approval gate
# ---------------------------------------------------------------------------


def _gated_tool(handler):
    return define_tool(
        name="rm",
        description="Remove a path.",
        parameters=with_confirm_flag(
            {
                "type": "object",
                "properties": {"path": {"type": "string"}},
                "required": ["path"],
                "additionalProperties": False,
            }
        ),
        handler=handler,
        approval=ApprovalSpec(
            message=lambda args, ctx: f"Delete {args['path']} for {ctx.agent_id}?",
            follow_up=FollowUp("rm_approved", lambda args: {"path": args["path"]}),
        ),
    )


@pytest.mark.parametrize(
    "args",
    [
        {"path": "/tmp/a"},
        {"path": "/tmp/a", "confirm": True},
        {"path": "/tmp/a", "confirm": False},
    ],
)
def test_approval_gate_never_reaches_handler(args, context):
    handler = MagicMock()
    tool = _gated_tool(handler)

    result = tool.execute(args, context)

    handler.assert_not_called()
    assert result.success is False
    assert result.error == APPROVAL_REQUIRED_ERROR
    assert result.result["approval_required"] is True
    assert result.result["message"] == "Delete /tmp/a for test-agent?"
    assert result.result["execute_tool_name"] == "rm_approved"
    assert result.result["execute_args"] == {"path": "/tmp/a"}
    assert "rm_approved" in result.result["instruction"]


def test_approval_gate_validates_first(context):
    result = _gated_tool(MagicMock()).execute({}, context)

    assert result.success is False
    assert result.result is None
    assert "Missing required property: path" in result.error


def test_approval_without_follow_up_omits_execute_fields(context):
    tool = define_tool(
        name="risky",
        description="Risky.",
        parameters={"type": "object", "properties": {}},
        approval=ApprovalSpec(message=lambda args, ctx: "Are you sure?"),
    )

    result = tool.execute({}, context)

    assert result.result["approval_required"] is True
    assert "execute_tool_name" not in result.result
    assert "execute_args" not in result.result
    assert tool.requires_approval is True


def test_with_confirm_flag_does_not_mutate_input():
    schema = {"type": "object", "properties": {"a": {"type": "string"}}, "required": ["a"]}
    flagged = with_confirm_flag(schema)

    assert "confirm" not in schema["properties"]
    assert flagged["properties"]["confirm"]["type"] == "boolean"
    assert flagged["required"] == ["a"]
