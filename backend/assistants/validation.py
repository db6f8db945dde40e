from typing import Any, Dict, List, NamedTuple, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError as SchemaError

from .exceptions import ExtensionValidationError
from .extension_specs import ExtensionSpec, arguments_to_json_schema
from .masking import strip_masked_values

_RANGE_KEYWORDS = {"minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum"}


class Violation(NamedTuple):
    path: str
    reason: str
    message: str


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


def _join(parts: List[Any]) -> str:
    path = ""
    for part in parts:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path = f"{path}.{part}" if path else str(part)
    return path


def _missing(error: SchemaError) -> List[Violation]:
    # jsonschema yields one "required" error per missing name, each carrying the full list.
    instance = error.instance if isinstance(error.instance, dict) else {}
    parts = list(error.absolute_path)
    violations = []
    for name in error.validator_value:
        if name not in instance:
            path = _join(parts + [name])
            violations.append(Violation(path, "missing", f"{path}: required value is missing"))
    return violations


def _violation(error: SchemaError) -> Violation:
    parts = list(error.absolute_path)
    keyword = error.validator
    path = _join(parts) or "values"
    if keyword == "type":
        return Violation(
            path,
            "wrong type",
            f"{path}: expected {error.validator_value}, got {_json_type(error.instance)}",
        )
    if keyword in _RANGE_KEYWORDS:
        return Violation(
            path,
            "out of range",
            f"{path}: {error.instance} is out of range ({keyword} {error.validator_value})",
        )
    if keyword == "enum":
        return Violation(path, "not allowed", f"{path}: {error.instance!r} is not one of {error.validator_value!r}")
    return Violation(path, "invalid", f"{path}: {error.message}")


def find_violations(values: Optional[Dict[str, Any]], spec: ExtensionSpec) -> List[Violation]:
    candidate = strip_masked_values(values or {}, spec.arguments)
    validator = Draft202012Validator(arguments_to_json_schema(spec.arguments))
    violations = set()
    for error in validator.iter_errors(candidate):
        if error.validator == "required":
            violations.update(_missing(error))
        else:
            violations.add(_violation(error))
    return sorted(violations, key=lambda item: (item.path, item.reason, item.message))


def validate_values(values: Optional[Dict[str, Any]], spec: ExtensionSpec) -> None:
    """Raise ``ExtensionValidationError`` for the first violation of ``spec``.

    Secret values that are still the mask placeholder count as missing.
    """
    if values is not None and not isinstance(values, dict):
        raise ExtensionValidationError("values: expected object", path="values", reason="wrong type")
    violations = find_violations(values, spec)
    if violations:
        first = violations[0]
        raise ExtensionValidationError(first.message, path=first.path, reason=first.reason)
