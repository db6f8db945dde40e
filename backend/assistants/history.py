"""Append-only configuration history and point-in-time restore.

Version numbers are allocated inside one transaction that first locks the
owning configuration row (``select_for_update``) and then reads the current
maximum version, so concurrent writers for the same configuration queue up
instead of computing the same ``max + 1``. The unique constraint on
``(configuration, version)`` backs this up at the database level.

Snapshots written around a mutation (including the safety snapshot taken
before a restore) run in their own transaction, never inside the mutation's.
Their failure is logged and does not stop the mutation, so history is a best
effort audit trail rather than a strict transactional log. Merging the two
transactions would make the history writer contend for the configuration lock
held by the mutation path.
"""

import logging
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Max

from .exceptions import BadRequest, NotFound
from .models import Configuration, ConfigurationHistory, Extension
from .snapshots import build_snapshot

logger = logging.getLogger(__name__)

ACTION_CREATE = "create"
ACTION_UPDATE = "update"
ACTION_DELETE = "delete"
ACTION_RESTORE = "restore"
ACTION_DUPLICATE = "duplicate"
ACTION_IMPORT = "import"

STATUS_FROM_SNAPSHOT = {
    "enabled": Configuration.STATUS_ENABLED,
    "disabled": Configuration.STATUS_DISABLED,
    "deleted": Configuration.STATUS_DELETED,
}


def _actor(user):
    return user if getattr(user, "is_authenticated", False) else None


def _history_queryset():
    return ConfigurationHistory.objects.select_related("changed_by", "configuration")


def _ensure_configuration(configuration_id: int) -> None:
    if not Configuration.objects.filter(pk=configuration_id).exists():
        raise NotFound(f"Configuration {configuration_id} not found")


def create_snapshot(
    configuration_id: int,
    document: Dict[str, Any],
    actor=None,
    action: str = ACTION_UPDATE,
    comment: Optional[str] = None,
) -> ConfigurationHistory:
    with transaction.atomic():
        configuration = Configuration.objects.select_for_update().filter(pk=configuration_id).first()
        if configuration is None:
            raise NotFound(f"Configuration {configuration_id} not found")
        current = (
            ConfigurationHistory.objects.filter(configuration_id=configuration_id)
            .aggregate(max_version=Max("version"))
            .get("max_version")
        )
        return ConfigurationHistory.objects.create(
            configuration=configuration,
            version=(current or 0) + 1,
            action=action,
            changed_by=_actor(actor),
            snapshot=document,
            change_comment=comment,
        )


def save_snapshot(
    configuration_id: int,
    actor=None,
    action: str = ACTION_UPDATE,
    comment: Optional[str] = None,
) -> ConfigurationHistory:
    configuration = (
        Configuration.objects.prefetch_related("extensions", "user_groups").filter(pk=configuration_id).first()
    )
    if configuration is None:
        raise NotFound(f"Configuration {configuration_id} not found")
    return create_snapshot(configuration_id, build_snapshot(configuration), actor, action, comment)


def record_snapshot(
    configuration_id: int,
    actor=None,
    action: str = ACTION_UPDATE,
    comment: Optional[str] = None,
) -> Optional[ConfigurationHistory]:
    try:
        return save_snapshot(configuration_id, actor, action, comment)
    except Exception:
        logger.exception("Failed to record %s snapshot for configuration %s", action, configuration_id)
        return None


def get_history(configuration_id: int) -> List[ConfigurationHistory]:
    _ensure_configuration(configuration_id)
    return list(_history_queryset().filter(configuration_id=configuration_id).order_by("-version"))


def get_version(configuration_id: int, version: int) -> ConfigurationHistory:
    entry = _history_queryset().filter(configuration_id=configuration_id, version=version).first()
    if entry is None:
        raise NotFound(f"Version {version} not found for configuration {configuration_id}")
    return entry


def get_latest_version(configuration_id: int) -> ConfigurationHistory:
    entry = _history_queryset().filter(configuration_id=configuration_id).order_by("-version").first()
    if entry is None:
        _ensure_configuration(configuration_id)
        raise NotFound(f"Configuration {configuration_id} has no history")
    return entry


def get_version_count(configuration_id: int) -> int:
    return ConfigurationHistory.objects.filter(configuration_id=configuration_id).count()


def get_recent_changes(limit: Optional[int] = None) -> List[ConfigurationHistory]:
    if limit is None:
        limit = settings.ASSISTANTS_RECENT_CHANGES_LIMIT
    if limit < 1:
        raise BadRequest("limit must be a positive integer")
    return list(_history_queryset().order_by("-created_at", "-id")[:limit])


def get_changes_by_actor(actor_id: int) -> List[ConfigurationHistory]:
    return list(_history_queryset().filter(changed_by_id=actor_id).order_by("-created_at", "-id"))


def compare_versions(configuration_id: int, from_version: int, to_version: int) -> Dict[str, ConfigurationHistory]:
    return {
        "from": get_version(configuration_id, from_version),
        "to": get_version(configuration_id, to_version),
    }


def restore_version(configuration_id: int, version: int, actor=None) -> Configuration:
    entry = get_version(configuration_id, version)
    snapshot = entry.snapshot if isinstance(entry.snapshot, dict) else {}
    status = STATUS_FROM_SNAPSHOT.get(snapshot.get("status"))
    if status is None:
        raise BadRequest(f"Version {version} has an unknown status: {snapshot.get('status')!r}")

    record_snapshot(configuration_id, actor, ACTION_RESTORE, f"Restoring to version {version}")

    with transaction.atomic():
        configuration = Configuration.objects.select_for_update().filter(pk=configuration_id).first()
        if configuration is None:
            raise NotFound(f"Configuration {configuration_id} not found")

        configuration.name = snapshot.get("name") or ""
        configuration.description = snapshot.get("description") or ""
        configuration.status = status
        configuration.agent_name = snapshot.get("agent_name")
        configuration.chat_footer = snapshot.get("chat_footer")
        configuration.chat_suggestions = snapshot.get("chat_suggestions") or []
        configuration.executor_endpoint = snapshot.get("executor_endpoint")
        configuration.executor_headers = snapshot.get("executor_headers")
        configuration.save()

        Extension.objects.filter(configuration=configuration).delete()
        Extension.objects.bulk_create(
            [
                Extension(
                    configuration=configuration,
                    name=item.get("name") or "",
                    external_id=item.get("external_id") or Extension.build_external_id(configuration.id, item.get("name") or ""),
                    enabled=bool(item.get("enabled", True)),
                    values=item.get("values") or {},
                    state=item.get("state") or {},
                    configurable_arguments=item.get("configurable_arguments"),
                )
                for item in snapshot.get("extensions") or []
                if isinstance(item, dict)
            ]
        )

    logger.info("Restored configuration %s to version %s", configuration_id, version)
    return Configuration.objects.prefetch_related("extensions", "user_groups").get(pk=configuration_id)
