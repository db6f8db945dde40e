"""Configuration and extension commands used by the API, admin and CLI.

Every mutation records a history snapshot through ``record_snapshot``. For
updates and deletes the snapshot is taken before the change so that the entry
holds the state being replaced; creations snapshot the new state.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from django.db import transaction

from .exceptions import BadRequest, ExtensionValidationError, NotFound
from .extension_specs import get_extension_spec
from .history import (
    ACTION_CREATE,
    ACTION_DELETE,
    ACTION_DUPLICATE,
    ACTION_UPDATE,
    record_snapshot,
)
from .masking import unmask_values
from .models import Configuration, Extension, UserGroup
from .validation import validate_values

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (Copy)"

_SCALAR_FIELDS = (
    "name",
    "description",
    "agent_name",
    "chat_footer",
    "chat_suggestions",
    "executor_endpoint",
    "executor_headers",
)


def _live_configurations():
    return Configuration.objects.exclude(status=Configuration.STATUS_DELETED)


def _status_for(enabled: bool) -> str:
    return Configuration.STATUS_ENABLED if enabled else Configuration.STATUS_DISABLED


def _enabled_flag(values: Dict[str, Any], default: bool = True) -> bool:
    enabled = values.get("enabled", default)
    if not isinstance(enabled, bool):
        raise BadRequest("Invalid enabled flag", errors=["enabled: must be a boolean"])
    return enabled


def _resolve_groups(group_ids: Iterable[Any]) -> List[UserGroup]:
    wanted = [str(group_id) for group_id in group_ids or []]
    groups = list(UserGroup.objects.filter(id__in=wanted))
    found = {group.id for group in groups}
    missing = [group_id for group_id in wanted if group_id not in found]
    if missing:
        raise BadRequest("Unknown user groups", errors=[f"user_group_ids: {group_id} not found" for group_id in missing])
    return groups


def _clean_fields(values: Dict[str, Any], partial: bool) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    errors: List[str] = []
    for key in _SCALAR_FIELDS:
        if key in values:
            fields[key] = values[key]
    if "name" in fields or not partial:
        name = str(fields.get("name") or "").strip()
        if not name:
            errors.append("name: required")
        fields["name"] = name
    if "description" in fields:
        fields["description"] = fields["description"] or ""
    if "chat_suggestions" in fields:
        suggestions = fields["chat_suggestions"] or []
        if not isinstance(suggestions, list):
            errors.append("chat_suggestions: must be a list")
        fields["chat_suggestions"] = suggestions
    if "executor_headers" in fields and fields["executor_headers"] is not None:
        if not isinstance(fields["executor_headers"], str):
            errors.append("executor_headers: must be a string")
    if "enabled" in values:
        if isinstance(values["enabled"], bool):
            fields["status"] = _status_for(values["enabled"])
        else:
            errors.append("enabled: must be a boolean")
    if errors:
        raise BadRequest("Invalid configuration", errors=errors)
    return fields


def list_configurations(enabled_only: bool = False) -> List[Configuration]:
    qs = _live_configurations().prefetch_related("extensions", "user_groups")
    if enabled_only:
        qs = qs.filter(status=Configuration.STATUS_ENABLED)
    return list(qs)


def get_configuration(configuration_id: int) -> Configuration:
    configuration = (
        _live_configurations().prefetch_related("extensions", "user_groups").filter(pk=configuration_id).first()
    )
    if configuration is None:
        raise NotFound(f"Configuration {configuration_id} not found")
    return configuration


def create_configuration(values: Dict[str, Any], actor=None) -> Configuration:
    fields = _clean_fields(values, partial=False)
    groups = _resolve_groups(values.get("user_group_ids") or [])
    with transaction.atomic():
        configuration = Configuration.objects.create(**fields)
        configuration.user_groups.set(groups)
    logger.info("Created configuration %s (%s)", configuration.id, configuration.name)
    record_snapshot(configuration.id, actor, ACTION_CREATE)
    return get_configuration(configuration.id)


def update_configuration(configuration_id: int, values: Dict[str, Any], actor=None) -> Configuration:
    configuration = get_configuration(configuration_id)
    fields = _clean_fields(values, partial=True)
    groups = _resolve_groups(values["user_group_ids"]) if "user_group_ids" in values else None
    record_snapshot(configuration.id, actor, ACTION_UPDATE)
    with transaction.atomic():
        for key, value in fields.items():
            setattr(configuration, key, value)
        configuration.save()
        if groups is not None:
            configuration.user_groups.set(groups)
    return get_configuration(configuration.id)


def delete_configuration(configuration_id: int, actor=None) -> None:
    configuration = get_configuration(configuration_id)
    record_snapshot(configuration.id, actor, ACTION_DELETE)
    configuration.status = Configuration.STATUS_DELETED
    configuration.save(update_fields=["status", "updated_at"])
    logger.info("Deleted configuration %s", configuration.id)


def duplicate_configuration(configuration_id: int, actor=None) -> Configuration:
    source = get_configuration(configuration_id)
    with transaction.atomic():
        copy = Configuration.objects.create(
            name=f"{source.name}{COPY_SUFFIX}",
            description=source.description,
            status=source.status,
            agent_name=source.agent_name,
            chat_footer=source.chat_footer,
            chat_suggestions=list(source.chat_suggestions or []),
            executor_endpoint=source.executor_endpoint,
            executor_headers=source.executor_headers,
        )
        copy.user_groups.set(source.user_groups.all())
        Extension.objects.bulk_create(
            [
                Extension(
                    configuration=copy,
                    name=extension.name,
                    external_id=Extension.build_external_id(copy.id, extension.name),
                    enabled=extension.enabled,
                    values=dict(extension.values or {}),
                    state=dict(extension.state or {}),
                    configurable_arguments=extension.configurable_arguments,
                )
                for extension in source.extensions.all().order_by("id")
            ]
        )
    record_snapshot(copy.id, actor, ACTION_DUPLICATE, f"Duplicated from configuration {source.id}")
    return get_configuration(copy.id)


def _spec_or_error(name: str):
    spec = get_extension_spec(name)
    if spec is None:
        raise BadRequest(f'Extension "{name}" is not available')
    return spec


def _validated(name: str, values: Any, spec) -> Dict[str, Any]:
    try:
        validate_values(values, spec)
    except ExtensionValidationError as exc:
        raise BadRequest(
            f'Invalid configuration for extension "{name}": {exc.message}',
            errors=[exc.message],
        ) from exc
    return dict(values or {})


def list_extensions(configuration_id: int) -> List[Extension]:
    configuration = get_configuration(configuration_id)
    return list(configuration.extensions.all().order_by("id"))


def _get_extension(configuration: Configuration, extension_id: int) -> Extension:
    extension = Extension.objects.filter(configuration=configuration, pk=extension_id).first()
    if extension is None:
        raise NotFound(f"Extension {extension_id} not found")
    return extension


def create_extension(configuration_id: int, values: Dict[str, Any], actor=None) -> Extension:
    configuration = get_configuration(configuration_id)
    name = str(values.get("name") or "").strip()
    if not name:
        raise BadRequest("Extension name is required")
    spec = _spec_or_error(name)
    if configuration.extensions.filter(name=name).exists():
        raise BadRequest(f'Extension "{name}" is already configured')
    cleaned = _validated(name, values.get("values"), spec)
    enabled = _enabled_flag(values)
    record_snapshot(configuration.id, actor, ACTION_UPDATE, f"Adding extension {name}")
    extension = Extension.objects.create(
        configuration=configuration,
        name=name,
        external_id=Extension.build_external_id(configuration.id, name),
        enabled=enabled,
        values=cleaned,
        configurable_arguments=values.get("configurable_arguments"),
    )
    configuration.save(update_fields=["updated_at"])
    return extension


def update_extension(configuration_id: int, extension_id: int, values: Dict[str, Any], actor=None) -> Extension:
    configuration = get_configuration(configuration_id)
    extension = _get_extension(configuration, extension_id)
    spec = _spec_or_error(extension.name)
    if "values" in values:
        incoming = values.get("values")
        if isinstance(incoming, dict):
            incoming = unmask_values(incoming, extension.values, spec.arguments)
        new_values: Optional[Dict[str, Any]] = _validated(extension.name, incoming, spec)
    else:
        new_values = None
    enabled = _enabled_flag(values) if "enabled" in values else None
    record_snapshot(configuration.id, actor, ACTION_UPDATE, f"Updating extension {extension.name}")
    if new_values is not None:
        extension.values = new_values
    if enabled is not None:
        extension.enabled = enabled
    if "configurable_arguments" in values:
        extension.configurable_arguments = values["configurable_arguments"]
    extension.save()
    configuration.save(update_fields=["updated_at"])
    return extension


def delete_extension(configuration_id: int, extension_id: int, actor=None) -> None:
    configuration = get_configuration(configuration_id)
    extension = _get_extension(configuration, extension_id)
    record_snapshot(configuration.id, actor, ACTION_UPDATE, f"Removing extension {extension.name}")
    extension.delete()
    configuration.save(update_fields=["updated_at"])
