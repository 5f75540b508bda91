"""Error taxonomy shared by generation, credentials and publishing."""

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    """How the orchestrator should react to a failed remote call."""
    RETRYABLE = "retryable"
    NON_RETRYABLE = "non_retryable"
    AUTH_EXPIRED = "auth_expired"
    # Media container created remotely but never published
    ORPHANED_CONTAINER = "orphaned_container"


class FailureReason(str, enum.Enum):
    """Reason stored on a post that ended in the failed state."""
    CREDENTIAL_MISSING = "CredentialMissing"
    CREDENTIAL_EXPIRED = "CredentialExpired"
    UNSUPPORTED_REQUEST = "UnsupportedRequest"
    PUBLISH_REJECTED = "PublishRejected"
    PARTIAL_PUBLISH = "PartialPublish"
    PUBLISH_EXHAUSTED = "PublishExhausted"


class ContentForgeError(Exception):
    """Base class for errors raised by the core."""


class NotFoundError(ContentForgeError):
    def __init__(self, resource: str, resource_id):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class InvalidStateError(ContentForgeError):
    """An operation is not allowed from the record's current status."""

    def __init__(self, message: str, current: Optional[str] = None, requested: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(message)


class InvalidRequestError(ContentForgeError):
    """The caller asked for something malformed or inconsistent."""


class InvalidBatchRequest(InvalidRequestError):
    """The generation batch itself is malformed (not a per-attempt failure)."""


class GenerationFailure(ContentForgeError):
    """A single generation attempt produced no usable text."""


class CredentialRefreshError(ContentForgeError):
    """The platform refused to issue a new access token."""


class AdapterError(ContentForgeError):
    """Remote platform failure normalized to a message and an ErrorKind."""

    def __init__(self, message: str, kind: ErrorKind, status_code: Optional[int] = None):
        self.kind = kind
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.RETRYABLE
