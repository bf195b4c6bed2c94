# workflow_transfer/validators/schema.py
"""
Schema Validator - declared shape of a workflow item.

Checks required and optional top-level fields with a strict pydantic model
and turns each violated constraint into one readable error naming the
field, the expected shape and what was received.

Required:
    name (string, 1-100 chars), nodes (array with at least one node object)
Optional (type-checked when present):
    id (string), tags (array of names or tag objects), active (boolean),
    connections (object), settings (object)
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..models.result_models import ValidationResult
from .base import BaseValidator

logger = logging.getLogger("workflow_transfer.validators.schema")

NAME_MAX_LENGTH = 100


class ItemSchema(BaseModel):
    model_config = ConfigDict(extra="allow", strict=True)

    name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    nodes: List[Dict[str, Any]] = Field(min_length=1)
    id: Optional[str] = None
    tags: Optional[List[Union[str, Dict[str, Any]]]] = None
    active: Optional[bool] = None
    connections: Optional[Dict[str, Any]] = None
    settings: Optional[Dict[str, Any]] = None


FIELD_SHAPES = {
    "name": f"string (1-{NAME_MAX_LENGTH} chars)",
    "nodes": "array with at least 1 node",
    "id": "string",
    "tags": "array of tags",
    "active": "boolean",
    "connections": "object",
    "settings": "object",
}

ELEMENT_SHAPES = {
    "nodes": "node object",
    "tags": "tag name or tag object",
}

_SIZE_ERRORS = {"too_short", "too_long", "string_too_short", "string_too_long"}


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
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


def _describe(value: Any) -> str:
    if isinstance(value, str):
        return f"string of {len(value)} chars"
    if isinstance(value, list):
        return f"array of {len(value)} elements"
    return _json_type(value)


class SchemaValidator(BaseValidator):
    name = "schema"
    description = "Required fields and field types of a workflow item"

    def _validate(self, item: Any, phase: str) -> ValidationResult:
        result = ValidationResult()
        if not isinstance(item, Mapping):
            result.errors.append(f"Item must be an object, received {_json_type(item)}")
            return result

        try:
            ItemSchema.model_validate(dict(item))
        except PydanticValidationError as exc:
            result.errors.extend(self._format_errors(exc.errors()))

        tags = item.get("tags")
        if not isinstance(tags, list) or not tags:
            result.warnings.append("Item has no tags")
        if "settings" not in item or item.get("settings") is None:
            result.warnings.append("Item has no settings defined")

        if result.errors:
            logger.debug(f"Schema validation failed for '{item.get('name')}': {len(result.errors)} error(s)")
        result.metadata["tag_count"] = len(tags) if isinstance(tags, list) else 0
        result.metadata["is_active"] = item.get("active") is True
        return result

    @staticmethod
    def _format_errors(errors: List[Dict[str, Any]]) -> List[str]:
        messages: List[str] = []
        seen = set()
        for error in errors:
            loc = error.get("loc") or ("item",)
            field = str(loc[0])
            indexes = [str(part) for part in loc[1:] if isinstance(part, int)]
            path = ".".join([field] + indexes)
            # Union members report one error each; keep the first per path
            if path in seen:
                continue
            seen.add(path)

            shape = ELEMENT_SHAPES.get(field, "value") if indexes else FIELD_SHAPES.get(field, "value")
            received = error.get("input")
            if error.get("type") == "missing":
                messages.append(f"Field '{path}' is required: expected {shape}, received nothing")
            elif error.get("type") in _SIZE_ERRORS:
                messages.append(
                    f"Field '{path}' has invalid size: expected {shape}, received {_describe(received)}"
                )
            else:
                messages.append(
                    f"Field '{path}' has invalid type: expected {shape}, received {_json_type(received)}"
                )
        return messages
