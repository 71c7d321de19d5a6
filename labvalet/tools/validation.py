"""
Tool argument validation - JSON schema parameters checked with pydantic

Each ToolDefinition's ``parameters`` schema is turned into a pydantic model
(cached per tool). Only the subset of JSON schema that tool definitions use
is supported: object properties with primitive, array, object and enum types.
"""

import logging
from typing import Any, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, create_model

from .models import ToolDefinition

logger = logging.getLogger(__name__)

_JSON_TYPES: Dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "object": Dict[str, Any],
}

_model_cache: Dict[Tuple[str, int], Type[BaseModel]] = {}


def _python_type(prop_schema: Dict[str, Any]) -> Any:
    """Map one JSON schema property to a Python type annotation."""
    if "enum" in prop_schema and prop_schema["enum"]:
        return Literal[tuple(prop_schema["enum"])]

    json_type = prop_schema.get("type")
    if isinstance(json_type, list):
        # e.g. ["string", "null"]
        non_null = [t for t in json_type if t != "null"]
        json_type = non_null[0] if len(non_null) == 1 else None

    if json_type == "array":
        items = prop_schema.get("items") or {}
        return List[_python_type(items)] if items else List[Any]
    return _JSON_TYPES.get(json_type, Any)


def build_arguments_model(name: str, schema: Dict[str, Any]) -> Type[BaseModel]:
    """
    Build a pydantic model for a tool's parameters schema.

    Property names are attached as aliases so names that clash with
    BaseModel attributes (``json``, ``schema``...) still validate.
    """
    properties = schema.get("properties") or {}
    required = set(schema.get("required") or [])

    fields: Dict[str, Any] = {}
    for index, (prop_name, prop_schema) in enumerate(properties.items()):
        py_type = _python_type(prop_schema or {})
        if prop_name in required:
            fields[f"field_{index}"] = (py_type, Field(..., alias=prop_name))
        else:
            fields[f"field_{index}"] = (Optional[py_type], Field(None, alias=prop_name))

    return create_model(
        f"{name}_arguments",
        __config__=ConfigDict(extra="allow", populate_by_name=False),
        **fields,
    )


def _model_for(tool: ToolDefinition) -> Type[BaseModel]:
    key = (tool.name, id(tool.parameters))
    model = _model_cache.get(key)
    if model is None:
        model = build_arguments_model(tool.name, tool.parameters or {})
        _model_cache[key] = model
    return model


def validate_arguments(tool: ToolDefinition, arguments: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate arguments against the tool's schema.

    Returns:
        The validated arguments (coerced values, unset optionals omitted)

    Raises:
        pydantic.ValidationError: If the arguments do not match the schema
        TypeError: If arguments is not a dict
    """
    if not isinstance(arguments, dict):
        raise TypeError(f"arguments must be an object, got {type(arguments).__name__}")

    model = _model_for(tool)
    validated = model.model_validate(arguments)
    return validated.model_dump(by_alias=True, exclude_unset=True)


def format_validation_error(exc: Exception) -> str:
    """Render a ValidationError as a short single-line message for the model."""
    errors = getattr(exc, "errors", None)
    if not callable(errors):
        return str(exc)
    parts = []
    for err in errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)
