"""
Argument validation against the declared tool input schemas.
"""
from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match

from .exceptions import ToolArgumentError
from .tools import TOOLS_BY_NAME

_validators = {
    name: Draft7Validator(tool["inputSchema"])
    for name, tool in TOOLS_BY_NAME.items()
}


def validate_arguments(tool_name, arguments):
    """Check ``arguments`` against the schema of ``tool_name``.

    Returns a copy of the arguments with schema defaults filled in for any
    property the caller left out.

    Raises:
        ToolArgumentError: if the arguments are not an object or violate
            the schema. The message names the first offending field.
    """
    validator = _validators.get(tool_name)
    if validator is None:
        raise ToolArgumentError(f"Unknown tool: {tool_name}")
    if not isinstance(arguments, dict):
        raise ToolArgumentError(
            f"Invalid arguments for {tool_name}: expected object, got {type(arguments).__name__}")

    error = best_match(validator.iter_errors(arguments))
    if error is not None:
        field = ".".join(str(p) for p in error.path)
        where = f" (at '{field}')" if field else ""
        raise ToolArgumentError(f"Invalid arguments for {tool_name}: {error.message}{where}")

    resolved = dict(arguments)
    for key, prop in validator.schema.get("properties", {}).items():
        if key not in resolved and "default" in prop:
            resolved[key] = prop["default"]
    return resolved
