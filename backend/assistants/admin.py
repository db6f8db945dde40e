from django.contrib import admin, messages

from .configurations import delete_configuration
from .exceptions import AssistantsError
from .history import ACTION_CREATE, ACTION_UPDATE, record_snapshot, restore_version
from .models import Configuration, ConfigurationHistory, Extension, UserGroup


class ExtensionInline(admin.TabularInline):
    model = Extension
    extra = 0
    fields = ("name", "external_id", "enabled", "updated_at")
    readonly_fields = ("name", "external_id", "enabled", "updated_at")
    can_delete = False
    show_change_link = False


class ConfigurationHistoryInline(admin.TabularInline):
    model = ConfigurationHistory
    extra = 0
    fields = ("version", "action", "changed_by", "change_comment", "created_at")
    readonly_fields = ("version", "action", "changed_by", "change_comment", "created_at")
    can_delete = False
    ordering = ("-version",)

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Configuration)
class ConfigurationAdmin(admin.ModelAdmin):
    list_display = ("name", "status", "agent_name", "updated_at")
    list_filter = ("status",)
    search_fields = ("name", "description", "agent_name")
    filter_horizontal = ("user_groups",)
    ordering = ("name",)
    inlines = [ExtensionInline, ConfigurationHistoryInline]

    def save_model(self, request, obj, form, change):
        if change:
            # The row still holds the state being replaced.
            record_snapshot(obj.pk, request.user, ACTION_UPDATE, "Edited in admin")
        super().save_model(request, obj, form, change)

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        if not change:
            record_snapshot(form.instance.pk, request.user, ACTION_CREATE, "Created in admin")

    def delete_model(self, request, obj):
        if obj.status != Configuration.STATUS_DELETED:
            delete_configuration(obj.pk, request.user)

    def delete_queryset(self, request, queryset):
        for configuration in queryset.exclude(status=Configuration.STATUS_DELETED):
            delete_configuration(configuration.pk, request.user)


@admin.register(ConfigurationHistory)
class ConfigurationHistoryAdmin(admin.ModelAdmin):
    list_display = ("configuration", "version", "action", "changed_by", "created_at")
    list_filter = ("action",)
    search_fields = ("configuration__name", "change_comment")
    readonly_fields = ("configuration", "version", "action", "changed_by", "snapshot", "change_comment", "created_at")
    actions = ["restore_selected_version"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def restore_selected_version(self, request, queryset):
        entries = list(queryset)
        if len(entries) != 1:
            self.message_user(request, "Select exactly one version to restore.", messages.WARNING)
            return
        entry = entries[0]
        try:
            restore_version(entry.configuration_id, entry.version, request.user)
        except AssistantsError as exc:
            self.message_user(request, f"Restore failed: {exc}", messages.ERROR)
            return
        self.message_user(
            request,
            f"Restored {entry.configuration} to version {entry.version}.",
            messages.SUCCESS,
        )

    restore_selected_version.short_description = "Restore selected version"


@admin.register(UserGroup)
class UserGroupAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "created_at")
    search_fields = ("id", "name")
