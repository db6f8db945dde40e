from typing import List

from django.conf import settings
from django.db import models


class UserGroup(models.Model):
    id = models.CharField(primary_key=True, max_length=100)
    name = models.CharField(max_length=200)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name


class Configuration(models.Model):
    STATUS_ENABLED = "enabled"
    STATUS_DISABLED = "disabled"
    STATUS_DELETED = "deleted"
    STATUS_CHOICES = [
        (STATUS_ENABLED, "Enabled"),
        (STATUS_DISABLED, "Disabled"),
        (STATUS_DELETED, "Deleted"),
    ]

    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ENABLED)
    agent_name = models.CharField(max_length=200, blank=True, null=True)
    chat_footer = models.TextField(blank=True, null=True)
    chat_suggestions = models.JSONField(default=list, blank=True)
    executor_endpoint = models.CharField(max_length=500, blank=True, null=True)
    executor_headers = models.TextField(blank=True, null=True)
    user_groups = models.ManyToManyField(UserGroup, blank=True, related_name="configurations")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "id"]

    def __str__(self) -> str:
        return self.name

    @property
    def enabled(self) -> bool:
        return self.status == self.STATUS_ENABLED

    @property
    def user_group_ids(self) -> List[str]:
        return sorted(group.id for group in self.user_groups.all())


class Extension(models.Model):
    configuration = models.ForeignKey(Configuration, on_delete=models.CASCADE, related_name="extensions")
    name = models.CharField(max_length=200)
    external_id = models.CharField(max_length=300)
    enabled = models.BooleanField(default=True)
    values = models.JSONField(default=dict, blank=True)
    state = models.JSONField(default=dict, blank=True)
    configurable_arguments = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["id"]
        unique_together = ("configuration", "external_id")

    def __str__(self) -> str:
        return self.external_id or self.name

    @staticmethod
    def build_external_id(configuration_id: int, name: str) -> str:
        return f"{configuration_id}-{name}"


class ConfigurationHistory(models.Model):
    configuration = models.ForeignKey(Configuration, on_delete=models.CASCADE, related_name="history")
    version = models.PositiveIntegerField()
    action = models.CharField(max_length=50)
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True, on_delete=models.SET_NULL, related_name="configuration_changes"
    )
    snapshot = models.JSONField()
    change_comment = models.TextField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-version"]
        verbose_name_plural = "configuration history"
        constraints = [
            models.UniqueConstraint(fields=["configuration", "version"], name="uq_configuration_history_version"),
        ]
        indexes = [
            models.Index(fields=["configuration", "version"], name="ix_config_history_cfg_version"),
        ]

    def __str__(self) -> str:
        return f"{self.configuration_id} v{self.version} ({self.action})"
