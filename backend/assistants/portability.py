"""Portable configuration documents: export and import.

An exported document is self-describing JSON that can be moved between
installations. Secret extension values are replaced by the mask placeholder,
so an importer must supply real secrets for any required secret argument.
Import always creates a new configuration; ``origin_id`` is informational.
"""

import json
import logging
from datetime import timezone as dt_timezone
from pathlib import Path
from typing import Any, Dict, List

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from jsonschema import Draft202012Validator

from .exceptions import BadRequest, ExtensionValidationError, NotFound
from .extension_specs import get_extension_spec
from .history import ACTION_IMPORT, record_snapshot
from .masking import strip_masked_values
from .models import Configuration, Extension, UserGroup
from .snapshots import configuration_fields, masked_extension_values
from .validation import validate_values

logger = logging.getLogger(__name__)

SCHEMA_NAME = "portable_configuration.v1.schema.json"


def _load_schema_local(name: str) -> Dict[str, Any]:
    base_dir = Path(__file__).resolve().parents[1]
    path = base_dir / "schemas" / name
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def document_errors(document: Any) -> List[str]:
    if not isinstance(document, dict):
        return ["root: document must be a JSON object"]
    validator = Draft202012Validator(_load_schema_local(SCHEMA_NAME))
    errors = []
    for error in sorted(validator.iter_errors(document), key=lambda e: [str(p) for p in e.path]):
        path = ".".join(str(p) for p in error.path) if error.path else "root"
        errors.append(f"{path}: {error.message}")
    seen = set()
    for idx, item in enumerate(document.get("extensions") or []):
        name = item.get("name") if isinstance(item, dict) else None
        if not isinstance(name, str):
            continue
        if name in seen:
            errors.append(f"extensions.{idx}.name: duplicate extension {name!r}")
        seen.add(name)
    return errors


def export_configuration(configuration_id: int) -> Dict[str, Any]:
    configuration = (
        Configuration.objects.exclude(status=Configuration.STATUS_DELETED)
        .prefetch_related("extensions", "user_groups")
        .filter(pk=configuration_id)
        .first()
    )
    if configuration is None:
        raise NotFound(f"Configuration {configuration_id} not found")
    try:
        document = {
            "format_version": settings.ASSISTANTS_VERSION,
            "exported_at": timezone.now().astimezone(dt_timezone.utc).isoformat(),
            "origin_id": configuration.id,
            **configuration_fields(configuration),
            "enabled": configuration.enabled,
            "extensions": [
                {
                    "name": extension.name,
                    "enabled": extension.enabled,
                    "values": masked_extension_values(extension),
                    "configurable_arguments": extension.configurable_arguments,
                }
                for extension in configuration.extensions.all().order_by("id")
            ],
        }
    except Exception:
        logger.exception("Failed to export configuration %s", configuration_id)
        raise
    logger.info("Exported configuration %s", configuration_id)
    return document


def _reconcile_groups(group_ids: List[str]) -> List[UserGroup]:
    if not group_ids:
        return []
    groups = list(UserGroup.objects.filter(id__in=group_ids))
    if not groups:
        raise BadRequest(
            "None of the user groups in the document exist",
            errors=[f"user_group_ids: {group_id} not found" for group_id in group_ids],
        )
    found = {group.id for group in groups}
    missing = [group_id for group_id in group_ids if group_id not in found]
    if missing:
        logger.warning("User groups not found, importing without them: %s", ", ".join(missing))
    return groups


def import_configuration(document: Dict[str, Any], actor=None) -> Configuration:
    errors = document_errors(document)
    if errors:
        raise BadRequest("Invalid configuration document", errors=errors)

    format_version = document.get("format_version")
    if format_version != settings.ASSISTANTS_VERSION:
        logger.warning(
            "Importing configuration exported by version %s into version %s",
            format_version,
            settings.ASSISTANTS_VERSION,
        )

    items = document.get("extensions") or []
    specs = {item["name"]: get_extension_spec(item["name"]) for item in items}
    unavailable = [name for name, spec in specs.items() if spec is None]
    if unavailable:
        raise BadRequest(
            f"Extensions not available: {', '.join(unavailable)}",
            errors=[f"{name}: extension is not available" for name in unavailable],
        )

    prepared = []
    for item in items:
        name = item["name"]
        spec = specs[name]
        values = strip_masked_values(item.get("values") or {}, spec.arguments)
        try:
            validate_values(values, spec)
        except ExtensionValidationError as exc:
            raise BadRequest(
                f'Invalid configuration for extension "{name}": {exc.message}',
                errors=[exc.message],
            ) from exc
        prepared.append((item, values))

    group_ids = [str(group_id) for group_id in document.get("user_group_ids") or []]
    groups = _reconcile_groups(group_ids)

    with transaction.atomic():
        configuration = Configuration.objects.create(
            name=document["name"],
            description=document.get("description") or "",
            status=Configuration.STATUS_ENABLED if document.get("enabled", True) else Configuration.STATUS_DISABLED,
            agent_name=document.get("agent_name"),
            chat_footer=document.get("chat_footer"),
            chat_suggestions=list(document.get("chat_suggestions") or []),
            executor_endpoint=document.get("executor_endpoint"),
            executor_headers=document.get("executor_headers"),
        )
        configuration.user_groups.set(groups)
        Extension.objects.bulk_create(
            [
                Extension(
                    configuration=configuration,
                    name=item["name"],
                    external_id=Extension.build_external_id(configuration.id, item["name"]),
                    enabled=bool(item.get("enabled", True)),
                    values=values,
                    configurable_arguments=item.get("configurable_arguments"),
                )
                for item, values in prepared
            ]
        )

    origin = document.get("origin_id")
    comment = f"Imported from configuration {origin}" if origin is not None else "Imported"
    record_snapshot(configuration.id, actor, ACTION_IMPORT, comment)
    logger.info("Imported configuration %s as %s", configuration.name, configuration.id)
    return Configuration.objects.prefetch_related("extensions", "user_groups").get(pk=configuration.id)
