import json

from django.contrib.auth import get_user_model
from django.test import TestCase

from assistants import history
from assistants.masking import MASKED_VALUE
from assistants.models import Configuration

from .support import RegisteredSpecsMixin, add_extension, create_configuration, create_staff


class ConfigurationApiTests(RegisteredSpecsMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.staff = create_staff()
        self.client.force_login(self.staff)

    def _post(self, url, payload=None):
        return self.client.post(url, data=json.dumps(payload or {}), content_type="application/json")

    def _put(self, url, payload):
        return self.client.put(url, data=json.dumps(payload), content_type="application/json")

    def test_requires_staff(self):
        user = get_user_model().objects.create_user(username="viewer", password="pass")
        self.client.force_login(user)
        response = self.client.get("/api/configurations")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "Staff access required")

    def test_create_list_update_delete(self):
        response = self._post("/api/configurations", {"name": "Support Bot", "chat_suggestions": ["Hi"]})
        self.assertEqual(response.status_code, 201, response.content.decode())
        configuration_id = response.json()["id"]

        response = self._put(f"/api/configurations/{configuration_id}", {"name": "Helpdesk", "enabled": False})
        self.assertEqual(response.status_code, 200, response.content.decode())
        self.assertEqual(response.json()["status"], "disabled")
        self.assertEqual(response.json()["version_count"], 2)

        listed = self.client.get("/api/configurations").json()["configurations"]
        self.assertEqual([item["name"] for item in listed], ["Helpdesk"])
        self.assertEqual(self.client.get("/api/configurations?enabled=true").json()["configurations"], [])

        response = self.client.delete(f"/api/configurations/{configuration_id}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get(f"/api/configurations/{configuration_id}").status_code, 404)

    def test_invalid_payloads(self):
        response = self._post("/api/configurations", {"name": ""})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["details"], ["name: required"])

        response = self.client.post("/api/configurations", data="{broken", content_type="application/json")
        self.assertEqual(response.status_code, 400)

        response = self.client.patch("/api/configurations", data="{}", content_type="application/json")
        self.assertEqual(response.status_code, 405)

    def test_extension_endpoints_mask_secrets(self):
        configuration = create_configuration()
        url = f"/api/configurations/{configuration.id}/extensions"

        response = self._post(url, {"name": "doc-search", "values": {"endpoint": "https://x", "apiKey": "sk"}})
        self.assertEqual(response.status_code, 201, response.content.decode())
        extension_id = response.json()["id"]
        self.assertEqual(response.json()["values"]["apiKey"], MASKED_VALUE)

        response = self._put(f"{url}/{extension_id}", {"values": {"endpoint": "https://y", "apiKey": MASKED_VALUE}})
        self.assertEqual(response.status_code, 200, response.content.decode())
        self.assertEqual(configuration.extensions.get().values["apiKey"], "sk")

        response = self._post(url, {"name": "ghost"})
        self.assertEqual(response.status_code, 400)

        response = self._post(url, {"name": "web-search", "values": {"safeSearch": "yes"}})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["details"], ["safeSearch: expected boolean, got string"])

        self.assertEqual(self.client.delete(f"{url}/{extension_id}").status_code, 200)
        self.assertEqual(self.client.get(url).json()["extensions"], [])

    def test_duplicate(self):
        configuration = create_configuration()
        response = self._post(f"/api/configurations/{configuration.id}/duplicate")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["name"], "Support Bot (Copy)")

    def test_history_endpoints(self):
        configuration = create_configuration()
        history.save_snapshot(configuration.id, self.staff, "create")
        configuration.name = "Renamed"
        configuration.save()
        history.save_snapshot(configuration.id, self.staff, "update")
        base = f"/api/configurations/{configuration.id}/history"

        payload = self.client.get(base).json()
        self.assertEqual(payload["version_count"], 2)
        self.assertEqual([item["version"] for item in payload["history"]], [2, 1])
        self.assertEqual(payload["history"][0]["changed_by"]["username"], self.staff.username)

        version = self.client.get(f"{base}/1").json()
        self.assertEqual(version["snapshot"]["name"], "Support Bot")
        self.assertEqual(self.client.get(f"{base}/9").status_code, 404)

        compared = self.client.get(f"{base}/compare/1/2").json()
        self.assertEqual((compared["from"]["version"], compared["to"]["version"]), (1, 2))

        recent = self.client.get("/api/configurations/history/recent?limit=1").json()["changes"]
        self.assertEqual([item["version"] for item in recent], [2])
        self.assertEqual(self.client.get("/api/configurations/history/recent?limit=abc").status_code, 400)

        by_user = self.client.get(f"/api/configurations/history/by-user/{self.staff.id}").json()["changes"]
        self.assertEqual(len(by_user), 2)

    def test_restore_endpoint(self):
        configuration = create_configuration()
        history.save_snapshot(configuration.id, self.staff, "create")
        configuration.name = "Renamed"
        configuration.save()

        response = self._post(f"/api/configurations/{configuration.id}/history/1/restore")

        self.assertEqual(response.status_code, 200, response.content.decode())
        self.assertEqual(response.json()["configuration"]["name"], "Support Bot")
        self.assertEqual(history.get_latest_version(configuration.id).action, "restore")
        self.assertEqual(self.client.get(f"/api/configurations/{configuration.id}/history/1/restore").status_code, 405)

    def test_export_and_import(self):
        configuration = create_configuration()
        add_extension(configuration, "web-search", {"apiKey": "sk", "safeSearch": True})

        document = self.client.get(f"/api/configurations/{configuration.id}/export").json()
        self.assertEqual(document["extensions"][0]["values"]["apiKey"], MASKED_VALUE)

        response = self._post("/api/configurations/import", document)
        self.assertEqual(response.status_code, 201, response.content.decode())
        imported = Configuration.objects.get(pk=response.json()["id"])
        self.assertEqual(imported.extensions.get().values, {"safeSearch": True})

        document["extensions"].append({"name": "ghost"})
        response = self._post("/api/configurations/import", document)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["details"], ["ghost: extension is not available"])

    def test_extension_specs_endpoint(self):
        payload = self.client.get("/api/extension-specs").json()["extension_specs"]
        self.assertEqual([spec["name"] for spec in payload], ["doc-search", "llm", "web-search"])
        search = payload[0]
        self.assertEqual(search["arguments"]["properties"]["apiKey"]["format"], "password")
