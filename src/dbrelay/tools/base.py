"""Tool definitions derived from handler signatures."""

from __future__ import annotations

import inspect
import re
import types
from collections.abc import Callable
from typing import Any, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

ARG_LINE_PATTERN = re.compile(r"^ {4}(\w+):\s*(.+)$")

JSON_SCHEMA_TYPES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
    type(None): "null",
}


class ToolDefinition(BaseModel):
    """A handler described for LLM tool calling.

    ``parameters`` is a JSON Schema object whose property names are camelCase.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    description: str
    parameters: dict[str, Any]
    function: Callable[..., Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Provider-neutral form: name, description and parameter schema."""
        return {"name": self.name, "description": self.description, "parameters": self.parameters}

    def to_openai_format(self) -> dict[str, Any]:
        """OpenAI function calling format."""
        return {"type": "function", "function": self.to_dict()}

    def to_anthropic_format(self) -> dict[str, Any]:
        """Anthropic tool format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


def python_type_to_json_schema(python_type: Any) -> dict[str, Any]:
    """Convert a Python type hint to a JSON Schema fragment."""
    origin = get_origin(python_type)
    if origin is None:
        return {"type": JSON_SCHEMA_TYPES.get(python_type, "string")}

    args = get_args(python_type)

    # X | None publishes as X
    if origin is Union or origin is types.UnionType:
        non_none_args = [a for a in args if a is not type(None)]
        if len(non_none_args) == 1:
            return python_type_to_json_schema(non_none_args[0])
        return {"anyOf": [python_type_to_json_schema(a) for a in non_none_args]}

    if origin is list:
        if args:
            return {"type": "array", "items": python_type_to_json_schema(args[0])}
        return {"type": "array"}

    if origin is dict:
        return {"type": "object"}

    return {"type": "string"}


def parse_arg_descriptions(docstring: str | None) -> dict[str, str]:
    """Read ``name: description`` lines from a docstring's Args section."""
    if not docstring:
        return {}
    descriptions: dict[str, str] = {}
    in_args = False
    for line in inspect.cleandoc(docstring).splitlines():
        if line == "Args:":
            in_args = True
        elif in_args:
            if line and not line.startswith(" "):
                break
            match = ARG_LINE_PATTERN.match(line)
            if match:
                descriptions[match.group(1)] = match.group(2).strip()
    return descriptions


def _summary(docstring: str | None) -> str | None:
    if not docstring:
        return None
    return inspect.cleandoc(docstring).split("\n\n", 1)[0].replace("\n", " ")


def _parameter_schema(
    param: inspect.Parameter, hint: Any, description: str | None
) -> dict[str, Any]:
    schema = python_type_to_json_schema(hint)
    if description:
        schema["description"] = description
    if param.default is not inspect.Parameter.empty and param.default is not None:
        schema["default"] = param.default
    return schema


def function_to_tool_definition(
    func: Callable[..., Any],
    name: str | None = None,
    description: str | None = None,
) -> ToolDefinition:
    """Describe a handler as a tool.

    Parameter types come from annotations, parameter descriptions from the
    docstring's Args section. Property names are camelCased; parameters
    without a default are required.

    Args:
        func: Function or bound method to describe
        name: Tool name (default: the function name)
        description: Tool description (default: the docstring summary)
    """
    tool_name = name or func.__name__
    arg_docs = parse_arg_descriptions(func.__doc__)
    hints = get_type_hints(func)

    properties: dict[str, Any] = {}
    required: list[str] = []
    for param_name, param in inspect.signature(func).parameters.items():
        if param_name == "self":
            continue
        key = to_camel(param_name)
        properties[key] = _parameter_schema(
            param, hints.get(param_name, str), arg_docs.get(param_name)
        )
        if param.default is inspect.Parameter.empty:
            required.append(key)

    parameters: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        parameters["required"] = required

    summary = description or _summary(func.__doc__) or f"Execute {tool_name}"
    return ToolDefinition(
        name=tool_name, description=summary.strip(), parameters=parameters, function=func
    )
