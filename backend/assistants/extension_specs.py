"""Extension specs: the declarative argument schema of each extension type.

Specs are read-only to this app. They are loaded from the JSON files in
``settings.ASSISTANTS_EXTENSION_REGISTRY`` (one spec per file) and can also be
registered in code, which is what the tests do.

An argument descriptor is one of a closed set of dataclasses. ``parse_argument``
rejects unknown type tags so that masking and validation, which recurse over
these classes, always see a known shape.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from django.conf import settings

logger = logging.getLogger(__name__)

SECRET_FORMAT = "password"


@dataclass(frozen=True)
class _BaseArgument:
    required: bool = False
    title: str = ""
    description: str = ""
    format: Optional[str] = None
    default: Any = None

    @property
    def is_secret(self) -> bool:
        return self.format == SECRET_FORMAT

    def _annotations(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {}
        if self.title:
            schema["title"] = self.title
        if self.description:
            schema["description"] = self.description
        if self.format:
            schema["format"] = self.format
        if self.default is not None:
            schema["default"] = self.default
        return schema


@dataclass(frozen=True)
class StringArgument(_BaseArgument):
    enum: Optional[List[str]] = None
    pattern: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None

    type_name = "string"

    def to_json_schema(self) -> Dict[str, Any]:
        schema = {"type": "string", **self._annotations()}
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        if self.pattern:
            schema["pattern"] = self.pattern
        if self.min_length is not None:
            schema["minLength"] = self.min_length
        if self.max_length is not None:
            schema["maxLength"] = self.max_length
        return schema


@dataclass(frozen=True)
class NumberArgument(_BaseArgument):
    integer: bool = False
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    enum: Optional[List[float]] = None

    @property
    def type_name(self) -> str:
        return "integer" if self.integer else "number"

    def to_json_schema(self) -> Dict[str, Any]:
        schema = {"type": self.type_name, **self._annotations()}
        if self.minimum is not None:
            schema["minimum"] = self.minimum
        if self.maximum is not None:
            schema["maximum"] = self.maximum
        if self.enum is not None:
            schema["enum"] = list(self.enum)
        return schema


@dataclass(frozen=True)
class BooleanArgument(_BaseArgument):
    type_name = "boolean"

    def to_json_schema(self) -> Dict[str, Any]:
        return {"type": "boolean", **self._annotations()}


@dataclass(frozen=True)
class ArrayArgument(_BaseArgument):
    items: Optional["ArgumentDescriptor"] = None

    type_name = "array"

    def to_json_schema(self) -> Dict[str, Any]:
        schema = {"type": "array", **self._annotations()}
        if self.items is not None:
            schema["items"] = self.items.to_json_schema()
        return schema


@dataclass(frozen=True)
class ObjectArgument(_BaseArgument):
    properties: Dict[str, "ArgumentDescriptor"] = field(default_factory=dict)

    type_name = "object"

    def to_json_schema(self) -> Dict[str, Any]:
        return {**arguments_to_json_schema(self.properties), **self._annotations()}


ArgumentDescriptor = Union[StringArgument, NumberArgument, BooleanArgument, ArrayArgument, ObjectArgument]


@dataclass(frozen=True)
class ExtensionSpec:
    name: str
    title: str = ""
    description: str = ""
    type: str = "tool"
    arguments: Dict[str, ArgumentDescriptor] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "arguments": arguments_to_json_schema(self.arguments),
        }


def arguments_to_json_schema(arguments: Dict[str, ArgumentDescriptor]) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {name: descriptor.to_json_schema() for name, descriptor in arguments.items()},
        "required": sorted(name for name, descriptor in arguments.items() if descriptor.required),
    }


def _common(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "required": bool(raw.get("required", False)),
        "title": str(raw.get("title") or ""),
        "description": str(raw.get("description") or ""),
        "format": raw.get("format") or None,
        "default": raw.get("default"),
    }


def parse_argument(raw: Dict[str, Any], path: str = "") -> ArgumentDescriptor:
    if not isinstance(raw, dict):
        raise ValueError(f"argument {path or '?'} must be an object")
    type_tag = str(raw.get("type") or "").strip()
    common = _common(raw)
    if type_tag == "string":
        return StringArgument(
            **common,
            enum=list(raw["enum"]) if isinstance(raw.get("enum"), list) else None,
            pattern=raw.get("pattern") or None,
            min_length=raw.get("minLength"),
            max_length=raw.get("maxLength"),
        )
    if type_tag in {"number", "integer"}:
        return NumberArgument(
            **common,
            integer=type_tag == "integer",
            minimum=raw.get("minimum"),
            maximum=raw.get("maximum"),
            enum=list(raw["enum"]) if isinstance(raw.get("enum"), list) else None,
        )
    if type_tag == "boolean":
        return BooleanArgument(**common)
    if type_tag == "array":
        items = raw.get("items")
        return ArrayArgument(**common, items=parse_argument(items, f"{path}[]") if items else None)
    if type_tag == "object":
        return ObjectArgument(**common, properties=parse_arguments(raw.get("properties") or {}, path))
    raise ValueError(f"argument {path or '?'} has unsupported type {type_tag!r}")


def parse_arguments(raw: Dict[str, Any], prefix: str = "") -> Dict[str, ArgumentDescriptor]:
    if not isinstance(raw, dict):
        raise ValueError(f"arguments of {prefix or 'spec'} must be an object")
    return {
        str(name): parse_argument(value, f"{prefix}.{name}" if prefix else str(name))
        for name, value in raw.items()
    }


def parse_extension_spec(raw: Dict[str, Any]) -> ExtensionSpec:
    name = str(raw.get("name") or "").strip()
    if not name:
        raise ValueError("extension spec name is required")
    return ExtensionSpec(
        name=name,
        title=str(raw.get("title") or name),
        description=str(raw.get("description") or ""),
        type=str(raw.get("type") or "tool"),
        arguments=parse_arguments(raw.get("arguments") or {}),
    )


_SPECS: Optional[Dict[str, ExtensionSpec]] = None


def _registry_root() -> Path:
    return Path(settings.ASSISTANTS_EXTENSION_REGISTRY)


def _load_specs(root: Path) -> Dict[str, ExtensionSpec]:
    specs: Dict[str, ExtensionSpec] = {}
    if not root.exists():
        return specs
    for path in sorted(root.glob("*.json")):
        try:
            spec = parse_extension_spec(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValueError) as exc:
            logger.warning("Skipping invalid extension spec %s: %s", path, exc)
            continue
        specs[spec.name] = spec
    return specs


def _specs() -> Dict[str, ExtensionSpec]:
    global _SPECS
    if _SPECS is None:
        _SPECS = _load_specs(_registry_root())
    return _SPECS


def register_extension_spec(spec: Union[ExtensionSpec, Dict[str, Any]]) -> ExtensionSpec:
    if isinstance(spec, dict):
        spec = parse_extension_spec(spec)
    _specs()[spec.name] = spec
    return spec


def unregister_extension_spec(name: str) -> None:
    _specs().pop(name, None)


def reload_extension_specs(root: Optional[Path] = None) -> int:
    global _SPECS
    _SPECS = _load_specs(root or _registry_root())
    return len(_SPECS)


def get_extension_spec(name: str) -> Optional[ExtensionSpec]:
    return _specs().get(name)


def list_extension_specs() -> List[ExtensionSpec]:
    return [spec for _name, spec in sorted(_specs().items())]
