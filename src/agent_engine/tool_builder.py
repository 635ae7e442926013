# tool_builder.py
# Single constructor for every tool: schema validation, approval gate, handler.
#
# Gate order per invocation:
#   validate → (approval spec? return approval request, never execute)
#   → handler
#
# An approval-gated tool never runs its handler. Execution happens only
# through the follow-up tool named in the approval request, which is a
# separate (usually hidden) registry entry. No argument, `confirm`
# included, opens the gate.

import copy
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, NamedTuple

from pydantic import BaseModel, ValidationError

from agent_engine.models import ApprovalRequest, ExecutionContext, ExecutionResult
from agent_engine.tool_registry import Tool

APPROVAL_REQUIRED_ERROR = "Approval required"


class ValidationOutcome(NamedTuple):
    valid: bool
    value: Any = None
    errors: tuple[str, ...] = ()


Validator = Callable[[dict[str, Any]], ValidationOutcome]
Handler = Callable[[Any, ExecutionContext], ExecutionResult]


@dataclass(frozen=True)
class FollowUp:
    """Binding to the tool that commits an approved action."""

    tool_name: str
    build_args: Callable[[Any], dict[str, Any]]


@dataclass(frozen=True)
class ApprovalSpec:
    message: Callable[[Any, ExecutionContext], str]
    follow_up: FollowUp | None = None


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _matches(value: Any, expected: str) -> bool:
    actual = _json_type(value)
    if expected == "integer":
        return actual == "number" and isinstance(value, int)
    if expected in ("string", "number", "boolean", "array", "object", "null"):
        return actual == expected
    # Unknown type keywords are not enforced.
    return True


def make_json_schema_validator(schema: dict[str, Any]) -> Validator:
    """
    Runtime validator for a JSON Schema subset.

    Supports an object root, `required`, per-property `type`
    (string|number|integer|boolean|array|object), homogeneous array
    `items.type`, and `additionalProperties: false`. Nested objects are
    accepted as opaque.
    """
    root_type = schema.get("type")
    properties: dict[str, dict[str, Any]] = schema.get("properties") or {}
    required = list(schema.get("required") or [])
    closed = schema.get("additionalProperties") is False

    def validate(args: dict[str, Any]) -> ValidationOutcome:
        errors: list[str] = []

        if root_type is not None and root_type != "object":
            errors.append("Root schema.type must be 'object'")

        for key in required:
            if key not in args:
                errors.append(f"Missing required property: {key}")

        for key, value in args.items():
            prop = properties.get(key)
            if prop is None:
                if closed:
                    errors.append(f"Unknown property: {key}")
                continue

            expected = prop.get("type")
            if not expected:
                continue
            if not _matches(value, expected):
                errors.append(f"Property '{key}' expected {expected}, got {_json_type(value)}")
                continue

            item_type = (prop.get("items") or {}).get("type") if expected == "array" else None
            if item_type:
                for index, item in enumerate(value):
                    if not _matches(item, item_type):
                        errors.append(
                            f"Property '{key}[{index}]' expected {item_type}, got {_json_type(item)}"
                        )

        if errors:
            return ValidationOutcome(valid=False, errors=tuple(errors))
        return ValidationOutcome(valid=True, value=args)

    return validate


def pydantic_validator(model: type[BaseModel]) -> Validator:
    """Validate into a typed model instance; the handler receives the instance."""

    def validate(args: dict[str, Any]) -> ValidationOutcome:
        try:
            return ValidationOutcome(valid=True, value=model.model_validate(args))
        except ValidationError as exc:
            errors = tuple(
                f"{'.'.join(str(part) for part in err['loc']) or 'args'}: {err['msg']}"
                for err in exc.errors()
            )
            return ValidationOutcome(valid=False, errors=errors)

    return validate


def with_confirm_flag(parameters: dict[str, Any]) -> dict[str, Any]:
    """
    Add an optional boolean `confirm` property to an approval tool's schema.

    Models expect some way to signal consent; the gate ignores the value.
    """
    schema = copy.deepcopy(parameters)
    schema.setdefault("properties", {})["confirm"] = {
        "type": "boolean",
        "description": "Ignored. The action always needs explicit user approval first.",
    }
    return schema


# ---------------------------------------------------------------------------
# Constructor
# ---------------------------------------------------------------------------


def _instruction(follow_up: FollowUp | None) -> str:
    if follow_up is None:
        return "Explain the action to the user and ask for explicit approval before retrying."
    return (
        "Show the message to the user and ask for explicit approval. Only if the user "
        f"approves, call '{follow_up.tool_name}' with execute_args."
    )


def define_tool(
    name: str,
    description: str,
    parameters: dict[str, Any],
    handler: Handler | None = None,
    *,
    validate: Validator | None = None,
    approval: ApprovalSpec | None = None,
    hidden: bool = False,
) -> Tool:
    if handler is None and approval is None:
        raise ValueError(f"Tool '{name}' needs a handler or an approval spec")
    validator = validate or make_json_schema_validator(parameters)

    def execute(args: dict[str, Any], context: ExecutionContext) -> ExecutionResult:
        outcome = validator(args)
        if not outcome.valid:
            message = "; ".join(outcome.errors or ("Invalid arguments",))
            return ExecutionResult(success=False, result=None, error=message)

        # Construction guarantees a handler whenever there is no approval spec.
        if approval is None:
            return handler(outcome.value, context)

        follow_up = approval.follow_up
        request = ApprovalRequest(
            message=approval.message(outcome.value, context),
            instruction=_instruction(follow_up),
            execute_tool_name=follow_up.tool_name if follow_up else None,
            execute_args=follow_up.build_args(outcome.value) if follow_up else None,
        )
        return ExecutionResult(
            success=False,
            result=request.model_dump(exclude_none=True),
            error=APPROVAL_REQUIRED_ERROR,
        )

    return Tool(
        name=name,
        description=description,
        parameters=parameters,
        execute=execute,
        hidden=hidden,
        approval=approval,
    )
