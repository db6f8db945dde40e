from django.contrib import admin
from django.urls import path

from assistants import api

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/configurations", api.configurations_collection, name="configurations"),
    path("api/configurations/import", api.configuration_import, name="configuration-import"),
    path("api/configurations/history/recent", api.recent_changes, name="configuration-recent-changes"),
    path(
        "api/configurations/history/by-user/<int:user_id>",
        api.changes_by_user,
        name="configuration-changes-by-user",
    ),
    path("api/configurations/<int:configuration_id>", api.configuration_detail, name="configuration-detail"),
    path(
        "api/configurations/<int:configuration_id>/duplicate",
        api.configuration_duplicate,
        name="configuration-duplicate",
    ),
    path(
        "api/configurations/<int:configuration_id>/export",
        api.configuration_export,
        name="configuration-export",
    ),
    path(
        "api/configurations/<int:configuration_id>/extensions",
        api.extensions_collection,
        name="configuration-extensions",
    ),
    path(
        "api/configurations/<int:configuration_id>/extensions/<int:extension_id>",
        api.extension_detail,
        name="configuration-extension-detail",
    ),
    path(
        "api/configurations/<int:configuration_id>/history",
        api.configuration_history,
        name="configuration-history",
    ),
    path(
        "api/configurations/<int:configuration_id>/history/compare/<int:from_version>/<int:to_version>",
        api.configuration_compare,
        name="configuration-compare",
    ),
    path(
        "api/configurations/<int:configuration_id>/history/<int:version>",
        api.configuration_version,
        name="configuration-version",
    ),
    path(
        "api/configurations/<int:configuration_id>/history/<int:version>/restore",
        api.configuration_restore,
        name="configuration-restore",
    ),
    path("api/extension-specs", api.extension_specs, name="extension-specs"),
]
