import threading
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import IntegrityError, connection, transaction
from django.db.models.query import QuerySet
from django.test import TestCase, TransactionTestCase, skipUnlessDBFeature

from assistants import history
from assistants.exceptions import BadRequest, NotFound
from assistants.extension_specs import register_extension_spec
from assistants.masking import MASKED_VALUE
from assistants.models import Configuration, ConfigurationHistory, UserGroup
from assistants.snapshots import build_snapshot

from .support import RegisteredSpecsMixin, add_extension, create_configuration, create_staff


class SnapshotBuilderTests(RegisteredSpecsMixin, TestCase):
    def test_snapshot_masks_registered_secrets(self):
        configuration = create_configuration()
        group = UserGroup.objects.create(id="support", name="Support")
        configuration.user_groups.add(group)
        add_extension(configuration, "doc-search", {"endpoint": "https://search", "apiKey": "sk-live"})

        snapshot = build_snapshot(configuration)

        self.assertEqual(snapshot["name"], "Support Bot")
        self.assertEqual(snapshot["status"], "enabled")
        self.assertEqual(snapshot["user_group_ids"], ["support"])
        extension = snapshot["extensions"][0]
        self.assertEqual(extension["external_id"], f"{configuration.id}-doc-search")
        self.assertEqual(extension["values"], {"endpoint": "https://search", "apiKey": MASKED_VALUE})

    def test_unregistered_extension_values_are_left_unmasked(self):
        configuration = create_configuration()
        add_extension(configuration, "retired-tool", {"apiKey": "sk-live"})

        with self.assertLogs("assistants.snapshots", level="WARNING"):
            snapshot = build_snapshot(configuration)

        self.assertEqual(snapshot["extensions"][0]["values"], {"apiKey": "sk-live"})


class HistoryStoreTests(RegisteredSpecsMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.staff = create_staff()
        self.configuration = create_configuration()

    def test_versions_start_at_one_and_increase_without_gaps(self):
        for _ in range(3):
            history.save_snapshot(self.configuration.id, self.staff, "update")

        versions = [entry.version for entry in history.get_history(self.configuration.id)]
        self.assertEqual(versions, [3, 2, 1])
        self.assertEqual(history.get_version_count(self.configuration.id), 3)
        self.assertEqual(history.get_latest_version(self.configuration.id).version, 3)

    def test_versions_are_counted_per_configuration(self):
        other = create_configuration(name="Sales Bot")
        history.save_snapshot(self.configuration.id, None, "create")
        entry = history.save_snapshot(other.id, None, "create")
        self.assertEqual(entry.version, 1)

    def test_anonymous_actor_is_stored_as_null(self):
        entry = history.create_snapshot(self.configuration.id, {"name": "x"}, None, "update", "system")
        self.assertIsNone(entry.changed_by)
        self.assertEqual(entry.change_comment, "system")

    def test_missing_configuration_or_version(self):
        with self.assertRaises(NotFound):
            history.create_snapshot(999999, {}, None, "update")
        with self.assertRaises(NotFound):
            history.get_history(999999)
        with self.assertRaises(NotFound):
            history.get_version(self.configuration.id, 1)
        with self.assertRaises(NotFound):
            history.get_latest_version(self.configuration.id)

    def test_duplicate_version_is_rejected_by_database(self):
        history.save_snapshot(self.configuration.id, None, "create")
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                ConfigurationHistory.objects.create(
                    configuration=self.configuration, version=1, action="update", snapshot={}
                )

    def test_compare_returns_both_entries(self):
        first = history.save_snapshot(self.configuration.id, None, "create")
        self.configuration.name = "Renamed"
        self.configuration.save()
        second = history.save_snapshot(self.configuration.id, None, "update")

        pair = history.compare_versions(self.configuration.id, 1, 2)

        self.assertEqual(pair["from"].pk, first.pk)
        self.assertEqual(pair["to"].pk, second.pk)
        self.assertEqual(pair["to"].snapshot["name"], "Renamed")
        with self.assertRaises(NotFound):
            history.compare_versions(self.configuration.id, 1, 5)

    def test_recent_changes_are_bounded_and_newest_first(self):
        other = create_configuration(name="Sales Bot")
        history.save_snapshot(self.configuration.id, None, "create")
        history.save_snapshot(other.id, None, "create")
        latest = history.save_snapshot(self.configuration.id, None, "update")

        recent = history.get_recent_changes(2)

        self.assertEqual(len(recent), 2)
        self.assertEqual(recent[0].pk, latest.pk)
        self.assertEqual(len(history.get_recent_changes()), 3)
        with self.assertRaises(BadRequest):
            history.get_recent_changes(0)

    def test_changes_by_actor(self):
        other_user = get_user_model().objects.create_user(username="other", password="pass")
        history.save_snapshot(self.configuration.id, self.staff, "create")
        history.save_snapshot(self.configuration.id, other_user, "update")
        history.save_snapshot(self.configuration.id, self.staff, "update")

        entries = history.get_changes_by_actor(self.staff.id)

        self.assertEqual([entry.version for entry in entries], [3, 1])

    def test_deleting_actor_keeps_history(self):
        user = get_user_model().objects.create_user(username="leaver", password="pass")
        entry = history.save_snapshot(self.configuration.id, user, "update")
        user.delete()
        entry.refresh_from_db()
        self.assertIsNone(entry.changed_by)

    def test_version_allocation_locks_the_configuration_row(self):
        original = QuerySet.select_for_update
        locked = []

        def tracking(queryset, *args, **kwargs):
            locked.append((queryset.model, connection.in_atomic_block))
            return original(queryset, *args, **kwargs)

        with mock.patch.object(QuerySet, "select_for_update", autospec=True, side_effect=tracking):
            entry = history.create_snapshot(self.configuration.id, {"name": "x"}, None, "update")

        self.assertEqual(entry.version, 1)
        self.assertEqual(locked, [(Configuration, True)])

    def test_snapshot_masks_secrets_inside_arrays(self):
        register_extension_spec(
            {
                "name": "vault",
                "arguments": {"keys": {"type": "array", "items": {"type": "string", "format": "password"}}},
            }
        )
        add_extension(self.configuration, "vault", {"keys": ["sk-1", "sk-2"]})

        entry = history.save_snapshot(self.configuration.id, None, "update")

        self.assertEqual(entry.snapshot["extensions"][0]["values"], {"keys": [MASKED_VALUE, MASKED_VALUE]})

    def test_record_snapshot_logs_and_swallows_failures(self):
        with mock.patch("assistants.history.save_snapshot", side_effect=RuntimeError("db down")):
            with self.assertLogs("assistants.history", level="ERROR") as logs:
                result = history.record_snapshot(self.configuration.id, self.staff, "update")
        self.assertIsNone(result)
        self.assertIn("Failed to record update snapshot", logs.output[0])


@skipUnlessDBFeature("has_select_for_update")
class ConcurrentSnapshotTests(TransactionTestCase):
    def test_concurrent_writers_get_distinct_gapless_versions(self):
        configuration = create_configuration()
        writers = 8
        barrier = threading.Barrier(writers)
        errors = []

        def write():
            try:
                barrier.wait()
                history.create_snapshot(configuration.id, {"name": configuration.name}, None, "update")
            except Exception as exc:
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=write) for _ in range(writers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        versions = sorted(
            ConfigurationHistory.objects.filter(configuration=configuration).values_list("version", flat=True)
        )
        self.assertEqual(versions, list(range(1, writers + 1)))
