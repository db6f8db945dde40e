from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="UserGroup",
            fields=[
                ("id", models.CharField(max_length=100, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Configuration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("enabled", "Enabled"), ("disabled", "Disabled"), ("deleted", "Deleted")],
                        default="enabled",
                        max_length=20,
                    ),
                ),
                ("agent_name", models.CharField(blank=True, max_length=200, null=True)),
                ("chat_footer", models.TextField(blank=True, null=True)),
                ("chat_suggestions", models.JSONField(blank=True, default=list)),
                ("executor_endpoint", models.CharField(blank=True, max_length=500, null=True)),
                ("executor_headers", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user_groups",
                    models.ManyToManyField(blank=True, related_name="configurations", to="assistants.usergroup"),
                ),
            ],
            options={
                "ordering": ["name", "id"],
            },
        ),
        migrations.CreateModel(
            name="Extension",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("external_id", models.CharField(max_length=300)),
                ("enabled", models.BooleanField(default=True)),
                ("values", models.JSONField(blank=True, default=dict)),
                ("state", models.JSONField(blank=True, default=dict)),
                ("configurable_arguments", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "configuration",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="extensions",
                        to="assistants.configuration",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "unique_together": {("configuration", "external_id")},
            },
        ),
        migrations.CreateModel(
            name="ConfigurationHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("version", models.PositiveIntegerField()),
                ("action", models.CharField(max_length=50)),
                ("snapshot", models.JSONField()),
                ("change_comment", models.TextField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                (
                    "changed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="configuration_changes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "configuration",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="history",
                        to="assistants.configuration",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "configuration history",
                "ordering": ["-version"],
                "indexes": [
                    models.Index(fields=["configuration", "version"], name="ix_config_history_cfg_version"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("configuration", "version"), name="uq_configuration_history_version"),
                ],
            },
        ),
    ]
