from typing import Optional


class AuthoringError(Exception):
    """Base class for failures surfaced by the authoring core."""


class ValidationError(AuthoringError):
    """A required field for the chosen operation is missing or unusable.

    Raised before any network call is made; callers render ``message`` as a
    blocking notice and leave the draft untouched.
    """

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        self.message = message or f"{field} is required"
        super().__init__(self.message)


class ProviderConfigError(AuthoringError):
    def __init__(self, provider_id: str, model_id: Optional[str]):
        self.provider_id = provider_id
        self.model_id = model_id
        super().__init__(f"model {model_id!r} is not offered by provider {provider_id!r}")


class GenerationError(AuthoringError):
    """Transport or backend failure.

    ``upstream`` is True when ``message`` came from the backend itself rather
    than the generic fallback text.
    """

    GENERIC_MESSAGE = "Generation failed, please try again."

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.upstream = bool(message and message.strip())
        self.message = message.strip() if self.upstream else self.GENERIC_MESSAGE
        self.status_code = status_code
        super().__init__(self.message)


class SessionBusyError(AuthoringError):
    def __init__(self, action: str):
        self.action = action
        super().__init__(f"an authoring action is already running: {action}")
