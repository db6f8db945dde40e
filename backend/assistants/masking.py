from typing import Any, Dict, Optional

from .extension_specs import ArgumentDescriptor, ArrayArgument, ObjectArgument

# Constant length, independent of the value it replaces.
MASKED_VALUE = "*" * 16


def is_masked(value: Any) -> bool:
    return isinstance(value, str) and value == MASKED_VALUE


def _array_items(descriptor: Optional[ArgumentDescriptor], value: Any) -> Optional[ArgumentDescriptor]:
    if isinstance(descriptor, ArrayArgument) and descriptor.items is not None and isinstance(value, list):
        return descriptor.items
    return None


def _mask(value: Any, descriptor: ArgumentDescriptor) -> Any:
    if descriptor.is_secret:
        return MASKED_VALUE
    if isinstance(descriptor, ObjectArgument) and isinstance(value, dict):
        return mask_values(value, descriptor.properties)
    items = _array_items(descriptor, value)
    if items is not None:
        return [_mask(item, items) for item in value]
    return value


def mask_values(values: Optional[Dict[str, Any]], arguments: Dict[str, ArgumentDescriptor]) -> Dict[str, Any]:
    masked: Dict[str, Any] = {}
    for key, value in (values or {}).items():
        descriptor = arguments.get(key)
        masked[key] = value if descriptor is None else _mask(value, descriptor)
    return masked


def _strip(value: Any, descriptor: Optional[ArgumentDescriptor]) -> Any:
    if isinstance(descriptor, ObjectArgument) and isinstance(value, dict):
        return strip_masked_values(value, descriptor.properties)
    items = _array_items(descriptor, value)
    if items is not None:
        return [_strip(item, items) for item in value if not (items.is_secret and is_masked(item))]
    return value


def strip_masked_values(values: Optional[Dict[str, Any]], arguments: Dict[str, ArgumentDescriptor]) -> Dict[str, Any]:
    """Drop secret entries that still hold the placeholder.

    A placeholder carries no secret, so whoever supplies the values has to
    enter the real secret again. Placeholder items of secret arrays are
    dropped from the list.
    """
    stripped: Dict[str, Any] = {}
    for key, value in (values or {}).items():
        descriptor = arguments.get(key)
        if descriptor is not None and descriptor.is_secret and is_masked(value):
            continue
        stripped[key] = _strip(value, descriptor)
    return stripped


def _unmask(value: Any, existing: Any, descriptor: Optional[ArgumentDescriptor]) -> Any:
    if isinstance(descriptor, ObjectArgument) and isinstance(value, dict):
        return unmask_values(value, existing if isinstance(existing, dict) else {}, descriptor.properties)
    items = _array_items(descriptor, value)
    if items is None:
        return value
    previous = existing if isinstance(existing, list) else []
    result = []
    for index, item in enumerate(value):
        stored = previous[index] if index < len(previous) else None
        if items.is_secret and is_masked(item):
            # Placeholders are matched to stored secrets by position.
            if index < len(previous):
                result.append(stored)
            continue
        result.append(_unmask(item, stored, items))
    return result


def unmask_values(
    values: Optional[Dict[str, Any]],
    existing: Optional[Dict[str, Any]],
    arguments: Dict[str, ArgumentDescriptor],
) -> Dict[str, Any]:
    """Put stored secrets back where an edit sent the placeholder unchanged."""
    existing = existing or {}
    result: Dict[str, Any] = {}
    for key, value in (values or {}).items():
        descriptor = arguments.get(key)
        if descriptor is not None and descriptor.is_secret and is_masked(value):
            if key in existing:
                result[key] = existing[key]
            continue
        result[key] = _unmask(value, existing.get(key), descriptor)
    return result
