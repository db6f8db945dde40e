from rest_framework import serializers

from .models import Configuration, ConfigurationHistory, Extension, UserGroup
from .snapshots import masked_extension_values


class UserGroupSerializer(serializers.ModelSerializer):
    class Meta:
        model = UserGroup
        fields = ["id", "name"]


class ExtensionSerializer(serializers.ModelSerializer):
    values = serializers.SerializerMethodField()

    class Meta:
        model = Extension
        fields = [
            "id",
            "name",
            "external_id",
            "enabled",
            "values",
            "configurable_arguments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_values(self, obj):
        return masked_extension_values(obj)


class ConfigurationSerializer(serializers.ModelSerializer):
    enabled = serializers.BooleanField(read_only=True)
    user_group_ids = serializers.ListField(child=serializers.CharField(), read_only=True)
    extensions = ExtensionSerializer(many=True, read_only=True)
    version_count = serializers.SerializerMethodField()

    class Meta:
        model = Configuration
        fields = [
            "id",
            "name",
            "description",
            "status",
            "enabled",
            "agent_name",
            "chat_footer",
            "chat_suggestions",
            "executor_endpoint",
            "executor_headers",
            "user_group_ids",
            "extensions",
            "version_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_version_count(self, obj):
        return obj.history.count()


class ConfigurationHistorySummarySerializer(serializers.ModelSerializer):
    configuration_id = serializers.IntegerField(read_only=True)
    changed_by = serializers.SerializerMethodField()

    class Meta:
        model = ConfigurationHistory
        fields = ["id", "configuration_id", "version", "action", "changed_by", "change_comment", "created_at"]

    def get_changed_by(self, obj):
        if obj.changed_by_id is None:
            return None
        return {"id": obj.changed_by_id, "username": obj.changed_by.get_username()}


class ConfigurationHistorySerializer(ConfigurationHistorySummarySerializer):
    class Meta(ConfigurationHistorySummarySerializer.Meta):
        fields = ConfigurationHistorySummarySerializer.Meta.fields + ["snapshot"]
