"""Argument validators synthesized from user-authored tool parameters.

A stored tool declares its parameters as untyped JSON such as
`{"city": "Paris", "days": 3, "metric": true}`. Each field's runtime value
type becomes a field rule of a pydantic model:

    string  -> strict string
    number  -> strict int or float (booleans are not numbers)
    boolean -> strict bool
    other   -> any value, may be omitted
"""
from typing import Any, Union
import json
import logging

from pydantic import BaseModel, StrictBool, StrictFloat, StrictInt, StrictStr, create_model

logger = logging.getLogger(__name__)

FIELD_TYPES: dict[str, Any] = {
    "string": StrictStr,
    "number": Union[StrictInt, StrictFloat],
    "boolean": StrictBool,
    "any": Any,
}


class EmptyArguments(BaseModel):
    """Validator used when parameters cannot be interpreted."""


def field_type_of(value: Any) -> str:
    """Return the field rule tag for a declared parameter value."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (int, float)):
        return "number"
    return "any"


def synthesize_validator(parameters: Any, name: str = "ToolArguments") -> type[BaseModel]:
    """
    Build an argument validator from declared parameters.

    Args:
        parameters: Dict, or JSON-encoded string of a dict
        name: Name given to the generated model

    Returns:
        A pydantic model class; EmptyArguments when parameters are malformed
    """
    if isinstance(parameters, str):
        try:
            parameters = json.loads(parameters)
        except ValueError as e:
            logger.error(f"Failed to parse parameters string for {name}: {str(e)}")
            return EmptyArguments

    if not isinstance(parameters, dict):
        logger.error(f"Invalid parameters for {name}: {parameters!r}")
        return EmptyArguments

    fields: dict[str, Any] = {}
    for key, value in parameters.items():
        tag = field_type_of(value)
        fields[key] = (FIELD_TYPES[tag], None) if tag == "any" else (FIELD_TYPES[tag], ...)

    try:
        return create_model(name, **fields)
    except (TypeError, ValueError, NameError) as e:
        logger.error(f"Could not build validator for {name}: {str(e)}")
        return EmptyArguments
