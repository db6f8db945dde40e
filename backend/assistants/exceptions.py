from typing import List, Optional


class AssistantsError(Exception):
    pass


class NotFound(AssistantsError):
    pass


class BadRequest(AssistantsError):
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or []


class ExtensionValidationError(AssistantsError):
    """A value map does not satisfy an extension's argument schema.

    ``path`` is the dotted argument path (``auth.apiKey``) and ``reason`` one of
    ``missing``, ``wrong type``, ``out of range``, ``not allowed`` or ``invalid``.
    """

    def __init__(self, message: str, *, path: str = "", reason: str = "invalid"):
        super().__init__(message)
        self.message = message
        self.path = path
        self.reason = reason
