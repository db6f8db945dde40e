import json
from functools import wraps
from typing import Any, Dict, Optional

from django.contrib.auth.decorators import login_required
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt

from . import configurations, history, portability
from .exceptions import BadRequest, NotFound
from .extension_specs import list_extension_specs
from .serializers import (
    ConfigurationHistorySerializer,
    ConfigurationHistorySummarySerializer,
    ConfigurationSerializer,
    ExtensionSerializer,
)


class _InvalidJson(ValueError):
    pass


def _parse_json(request: HttpRequest) -> Dict[str, Any]:
    if not request.body:
        return {}
    try:
        payload = json.loads(request.body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise _InvalidJson("Request body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise _InvalidJson("Request body must be a JSON object")
    return payload


def _require_staff(request: HttpRequest) -> Optional[JsonResponse]:
    if not request.user.is_authenticated or not request.user.is_staff:
        return JsonResponse({"error": "Staff access required"}, status=403)
    return None


def _method_not_allowed() -> JsonResponse:
    return JsonResponse({"error": "Method not allowed"}, status=405)


def staff_endpoint(view):
    """Staff check plus mapping of the app's exceptions to JSON errors."""

    @csrf_exempt
    @login_required
    @wraps(view)
    def wrapper(request: HttpRequest, *args, **kwargs) -> JsonResponse:
        if staff_error := _require_staff(request):
            return staff_error
        try:
            return view(request, *args, **kwargs)
        except _InvalidJson as exc:
            return JsonResponse({"error": str(exc)}, status=400)
        except NotFound as exc:
            return JsonResponse({"error": str(exc)}, status=404)
        except BadRequest as exc:
            return JsonResponse({"error": str(exc), "details": exc.errors}, status=400)

    return wrapper


def _configuration_payload(configuration) -> Dict[str, Any]:
    return ConfigurationSerializer(configuration).data


@staff_endpoint
def configurations_collection(request: HttpRequest) -> JsonResponse:
    if request.method == "POST":
        configuration = configurations.create_configuration(_parse_json(request), request.user)
        return JsonResponse(_configuration_payload(configuration), status=201)
    if request.method != "GET":
        return _method_not_allowed()
    enabled_only = (request.GET.get("enabled") or "").strip().lower() in {"1", "true", "yes"}
    items = configurations.list_configurations(enabled_only=enabled_only)
    return JsonResponse({"configurations": ConfigurationSerializer(items, many=True).data})


@staff_endpoint
def configuration_detail(request: HttpRequest, configuration_id: int) -> JsonResponse:
    if request.method == "PUT":
        configuration = configurations.update_configuration(configuration_id, _parse_json(request), request.user)
        return JsonResponse(_configuration_payload(configuration))
    if request.method == "DELETE":
        configurations.delete_configuration(configuration_id, request.user)
        return JsonResponse({"status": "deleted"})
    if request.method != "GET":
        return _method_not_allowed()
    return JsonResponse(_configuration_payload(configurations.get_configuration(configuration_id)))


@staff_endpoint
def configuration_duplicate(request: HttpRequest, configuration_id: int) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    copy = configurations.duplicate_configuration(configuration_id, request.user)
    return JsonResponse(_configuration_payload(copy), status=201)


@staff_endpoint
def extensions_collection(request: HttpRequest, configuration_id: int) -> JsonResponse:
    if request.method == "POST":
        extension = configurations.create_extension(configuration_id, _parse_json(request), request.user)
        return JsonResponse(ExtensionSerializer(extension).data, status=201)
    if request.method != "GET":
        return _method_not_allowed()
    items = configurations.list_extensions(configuration_id)
    return JsonResponse({"extensions": ExtensionSerializer(items, many=True).data})


@staff_endpoint
def extension_detail(request: HttpRequest, configuration_id: int, extension_id: int) -> JsonResponse:
    if request.method == "PUT":
        extension = configurations.update_extension(
            configuration_id, extension_id, _parse_json(request), request.user
        )
        return JsonResponse(ExtensionSerializer(extension).data)
    if request.method == "DELETE":
        configurations.delete_extension(configuration_id, extension_id, request.user)
        return JsonResponse({"status": "deleted"})
    return _method_not_allowed()


@staff_endpoint
def configuration_history(request: HttpRequest, configuration_id: int) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    entries = history.get_history(configuration_id)
    return JsonResponse(
        {
            "configuration_id": configuration_id,
            "version_count": len(entries),
            "history": ConfigurationHistorySummarySerializer(entries, many=True).data,
        }
    )


@staff_endpoint
def configuration_version(request: HttpRequest, configuration_id: int, version: int) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    entry = history.get_version(configuration_id, version)
    return JsonResponse(ConfigurationHistorySerializer(entry).data)


@staff_endpoint
def configuration_restore(request: HttpRequest, configuration_id: int, version: int) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    configuration = history.restore_version(configuration_id, version, request.user)
    return JsonResponse({"restored_version": version, "configuration": _configuration_payload(configuration)})


@staff_endpoint
def configuration_compare(request: HttpRequest, configuration_id: int, from_version: int, to_version: int) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    pair = history.compare_versions(configuration_id, from_version, to_version)
    return JsonResponse(
        {
            "from": ConfigurationHistorySerializer(pair["from"]).data,
            "to": ConfigurationHistorySerializer(pair["to"]).data,
        }
    )


@staff_endpoint
def recent_changes(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    raw_limit = (request.GET.get("limit") or "").strip()
    limit = None
    if raw_limit:
        try:
            limit = int(raw_limit)
        except ValueError:
            raise BadRequest("limit must be a positive integer") from None
    entries = history.get_recent_changes(limit)
    return JsonResponse({"changes": ConfigurationHistorySummarySerializer(entries, many=True).data})


@staff_endpoint
def changes_by_user(request: HttpRequest, user_id: int) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    entries = history.get_changes_by_actor(user_id)
    return JsonResponse({"changes": ConfigurationHistorySummarySerializer(entries, many=True).data})


@staff_endpoint
def configuration_export(request: HttpRequest, configuration_id: int) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return JsonResponse(portability.export_configuration(configuration_id))


@staff_endpoint
def configuration_import(request: HttpRequest) -> JsonResponse:
    if request.method != "POST":
        return _method_not_allowed()
    configuration = portability.import_configuration(_parse_json(request), request.user)
    return JsonResponse(_configuration_payload(configuration), status=201)


@staff_endpoint
def extension_specs(request: HttpRequest) -> JsonResponse:
    if request.method != "GET":
        return _method_not_allowed()
    return JsonResponse({"extension_specs": [spec.to_payload() for spec in list_extension_specs()]})
