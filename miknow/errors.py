"""Exception classes for the MiKnow service."""

from typing import Optional


class MiKnowError(Exception):
    """Base class for MiKnow errors."""
    pass


class CompletionError(MiKnowError):
    """A call to the chat completion API did not produce usable content."""

    kind = "unknown"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MissingCredentialError(CompletionError):
    """No API key is stored; the request was never sent."""
    kind = "missing_key"


class AuthenticationError(CompletionError):
    """The provider rejected the API key."""
    kind = "auth"


class ProviderError(CompletionError):
    """The provider answered with a non-2xx status other than 401."""
    kind = "provider"


class NetworkError(CompletionError):
    """The request failed before a response was received."""
    kind = "network"


class MalformedResponseError(CompletionError):
    """The response could not be parsed into the expected shape."""
    kind = "malformed"


class ImportFailedError(MiKnowError):
    """An imported file could not be read or interpreted."""
    pass


ERRORS_BY_KIND = {
    cls.kind: cls
    for cls in (
        MissingCredentialError,
        AuthenticationError,
        ProviderError,
        NetworkError,
        MalformedResponseError,
    )
}
