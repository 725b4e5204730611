import inspect
import re
from typing import Any, Callable, Dict, Optional, Tuple, Type

from docstring_parser import parse
from pydantic import BaseModel, Field, create_model

VALID_JSON_TYPES = {"integer", "number", "boolean", "array", "object", "string", "null"}


def _remove_titles(schema_node: Any) -> None:
    if isinstance(schema_node, dict):
        schema_node.pop("title", None)
        for value in schema_node.values():
            _remove_titles(value)
    elif isinstance(schema_node, list):
        for item in schema_node:
            _remove_titles(item)


def create_tool_schema_from_callable(
        handler: Callable,
        name: Optional[str] = None,
) -> Tuple[str, Dict[str, Any], Optional[Type[BaseModel]]]:
    """
    Builds the description, the JSON input schema and the pydantic parameters model of a tool handler.

    Parameter descriptions come from the handler docstring. A docstring type written as
    ``{a, b}`` turns the parameter into a string enum.

    Args:
        handler: the callable to inspect, bound methods are fine
        name: name used for the generated model, defaults to the callable name

    Returns:
        Tuple of short description, input schema and the parameters model (None when there are no parameters)
    """
    func_name = name or handler.__name__
    docstring = inspect.getdoc(handler)
    parsed = parse(docstring) if docstring else parse(f"{func_name}()")
    description = parsed.short_description or ""
    if parsed.long_description:
        description = f"{description}\n{parsed.long_description}".strip()

    param_descriptions = {p.arg_name: p.description for p in parsed.params if p.description}
    fields: Dict[str, Any] = {}
    for param_name, param in inspect.signature(handler).parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        param_type = param.annotation if param.annotation is not inspect.Parameter.empty else Any
        default = ... if param.default is inspect.Parameter.empty else param.default
        param_description = param_descriptions.get(param_name)
        if param_description:
            fields[param_name] = (param_type, Field(default, description=param_description))
        else:
            fields[param_name] = (param_type, default)

    properties: Dict[str, Any] = {}
    required = []
    model: Optional[Type[BaseModel]] = None
    if fields:
        model = create_model(f"{func_name}_params", **fields)
        json_schema = model.model_json_schema()
        _remove_titles(json_schema)
        properties = json_schema.get("properties", {})
        required = json_schema.get("required", [])

    for param_doc in parsed.params:
        prop = properties.get(param_doc.arg_name)
        if prop is None or not param_doc.type_name:
            continue
        match = re.search(r"\{([^}]+)\}", param_doc.type_name)
        if match:
            options = [opt.strip() for opt in match.group(1).split(",") if opt.strip()]
            if options:
                prop["enum"] = options
                prop["type"] = "string"
                prop.pop("anyOf", None)

    for prop in properties.values():
        if "type" in prop and prop["type"] not in VALID_JSON_TYPES:
            prop["type"] = "string"

    input_schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        input_schema["required"] = required
    return description, input_schema, model
