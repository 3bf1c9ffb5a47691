"""Structured-output schemas for OpenAI-compatible chat endpoints.

Strict mode only accepts objects where every property is required and no
extra properties are allowed; `strict_object` builds those.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any


def strict_object(properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "object",
        "additionalProperties": False,
        "properties": properties,
        "required": list(properties),
    }


def string_enum(values: Iterable[str]) -> dict[str, Any]:
    return {"type": "string", "enum": list(values)}


def array_of(items: dict[str, Any]) -> dict[str, Any]:
    return {"type": "array", "items": items}


@dataclass(frozen=True, slots=True)
class JsonSchema:
    name: str
    schema: dict[str, Any]
    strict: bool = True

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(self.schema.get("required", ()))

    def as_response_format(self) -> dict[str, Any]:
        return {
            "type": "json_schema",
            "json_schema": {"name": self.name, "schema": self.schema, "strict": self.strict},
        }
