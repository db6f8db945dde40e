import logging
from typing import Any, Callable, Dict, List, Optional

from .extension_specs import ExtensionSpec, get_extension_spec
from .masking import mask_values
from .models import Configuration, Extension

logger = logging.getLogger(__name__)

SpecLookup = Callable[[str], Optional[ExtensionSpec]]


def masked_extension_values(extension: Extension, lookup: SpecLookup = get_extension_spec) -> Dict[str, Any]:
    values = dict(extension.values or {})
    spec = lookup(extension.name)
    if spec is None:
        # Unknown schema: nothing can be identified as secret, values are kept as stored.
        logger.warning(
            "Extension type %s is not registered; values of %s are kept unmasked",
            extension.name,
            extension.external_id,
        )
        return values
    return mask_values(values, spec.arguments)


def configuration_fields(configuration: Configuration) -> Dict[str, Any]:
    return {
        "name": configuration.name,
        "description": configuration.description,
        "agent_name": configuration.agent_name,
        "chat_footer": configuration.chat_footer,
        "chat_suggestions": list(configuration.chat_suggestions or []),
        "executor_endpoint": configuration.executor_endpoint,
        "executor_headers": configuration.executor_headers,
        "user_group_ids": configuration.user_group_ids,
    }


def build_snapshot(configuration: Configuration, lookup: SpecLookup = get_extension_spec) -> Dict[str, Any]:
    extensions: List[Dict[str, Any]] = []
    for extension in configuration.extensions.all().order_by("id"):
        extensions.append(
            {
                "external_id": extension.external_id,
                "name": extension.name,
                "enabled": extension.enabled,
                "values": masked_extension_values(extension, lookup),
                "state": extension.state or {},
                "configurable_arguments": extension.configurable_arguments,
            }
        )
    return {
        **configuration_fields(configuration),
        "status": configuration.status,
        "extensions": extensions,
    }
