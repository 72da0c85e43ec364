from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    CREDENTIAL_MISSING = "credential_missing"
    CREDENTIAL_INVALID = "credential_invalid"
    GENERIC = "generic"


class StudioError(Exception):
    """Base class for everything the studio raises on purpose."""


class ValidationError(StudioError):
    """Bad user input, caught before any provider is contacted."""


class ProviderError(StudioError):
    """
    A failed call to a generative provider, already classified by the adapter
    that made it. Handlers branch on `kind`, never on the message text.
    """

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.GENERIC) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind

    @property
    def is_credential_error(self) -> bool:
        return self.kind in (ErrorKind.CREDENTIAL_MISSING, ErrorKind.CREDENTIAL_INVALID)


class CredentialRequiredError(StudioError):
    """The video flow was used before an API key was selected."""


class JobInProgressError(StudioError):
    """A video job is still generating or polling."""


# Fixed messages shown by the video flow for credential failures.
CREDENTIAL_MISSING_MESSAGE = "API key is missing or invalid. Please select a valid key."
CREDENTIAL_INVALID_MESSAGE = "API key invalid. Please re-select your API key."
