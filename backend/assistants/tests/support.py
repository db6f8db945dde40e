from pathlib import Path

from django.contrib.auth import get_user_model

from assistants.extension_specs import register_extension_spec, reload_extension_specs
from assistants.models import Configuration, Extension

DOC_SEARCH_SPEC = {
    "name": "doc-search",
    "title": "Document search",
    "arguments": {
        "endpoint": {"type": "string", "required": True},
        "apiKey": {"type": "string", "format": "password", "required": True},
        "topK": {"type": "integer", "minimum": 1, "maximum": 50},
    },
}

WEB_SEARCH_SPEC = {
    "name": "web-search",
    "arguments": {
        "apiKey": {"type": "string", "format": "password"},
        "safeSearch": {"type": "boolean"},
    },
}

LLM_SPEC = {
    "name": "llm",
    "type": "llm",
    "arguments": {
        "deployment": {"type": "string", "required": True},
        "mode": {"type": "string", "enum": ["chat", "completion"]},
        "auth": {
            "type": "object",
            "properties": {
                "apiKey": {"type": "string", "format": "password", "required": True},
                "tenant": {"type": "string"},
            },
        },
    },
}


class RegisteredSpecsMixin:
    """Replaces the on-disk registry with a fixed set of specs for each test."""

    spec_payloads = (DOC_SEARCH_SPEC, WEB_SEARCH_SPEC, LLM_SPEC)

    def setUp(self):
        super().setUp()
        reload_extension_specs(Path("/nonexistent-extension-registry"))
        for payload in self.spec_payloads:
            register_extension_spec(payload)
        self.addCleanup(reload_extension_specs)


def create_staff(username="config-admin"):
    return get_user_model().objects.create_user(
        username=username, password="pass", is_staff=True, email=f"{username}@example.com"
    )


def create_configuration(name="Support Bot", **fields):
    defaults = {
        "description": "Answers product questions",
        "agent_name": "Sam",
        "chat_footer": "Answers may be inaccurate.",
        "chat_suggestions": ["How do I reset my password?"],
    }
    defaults.update(fields)
    return Configuration.objects.create(name=name, **defaults)


def add_extension(configuration, name, values=None, **fields):
    return Extension.objects.create(
        configuration=configuration,
        name=name,
        external_id=Extension.build_external_id(configuration.id, name),
        values=values or {},
        **fields,
    )
