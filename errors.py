"""Error taxonomy for the Unity Asset Manager CLI.

Every failure raised by this package derives from :class:`UamCliError` and
carries a ``category`` that tells the user what kind of action is needed:

* ``input``     -- fixable locally, without network access (bad file path,
  malformed CSV, invalid status transition, missing configuration).
* ``remote``    -- the service rejected the request or holds state that needs
  investigation (404, 409, 5xx, unknown metadata field, partial uploads).
* ``transport`` -- the service or the OS vault could not be reached; retry
  later.

The CLI maps each category to its own process exit code.
"""

from typing import Any, Dict, List, Optional

CATEGORY_INPUT = "input"
CATEGORY_REMOTE = "remote"
CATEGORY_TRANSPORT = "transport"

EXIT_CODES: Dict[str, int] = {
    CATEGORY_INPUT: 2,
    CATEGORY_REMOTE: 3,
    CATEGORY_TRANSPORT: 4,
}


class UamCliError(Exception):
    """Base class for all errors raised by uamcli."""

    category = CATEGORY_REMOTE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.category]

    def details(self) -> Dict[str, Any]:
        """Extra structured fields for the error report."""
        return {}

    def to_dict(self) -> Dict[str, Any]:
        report: Dict[str, Any] = {
            "type": type(self).__name__,
            "category": self.category,
            "error_message": self.message,
        }
        report.update(self.details())
        return report


# ===================================================================
#  Configuration
# ===================================================================

class ConfigurationError(UamCliError):
    """The configuration file is missing, unreadable or incomplete."""

    category = CATEGORY_INPUT


# ===================================================================
#  Secret store
# ===================================================================

class SecretError(UamCliError):
    """Base class for OS vault failures.  Never carries the secret value."""


class SecretNotFoundError(SecretError):
    category = CATEGORY_INPUT

    def __init__(self, key: str) -> None:
        super().__init__(
            f"No client secret stored for '{key}'. "
            "Run 'uamcli config set' to store one."
        )
        self.key = key


class SecretAccessDeniedError(SecretError):
    category = CATEGORY_INPUT

    def __init__(self, key: str, reason: str = "") -> None:
        message = (
            f"Access to the OS credential vault was denied for '{key}'. "
            "Unlock the keychain (or accept the prompt) and try again."
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.key = key


class SecretStoreUnavailableError(SecretError):
    category = CATEGORY_TRANSPORT

    def __init__(self, reason: str = "") -> None:
        message = "No OS credential vault backend is available on this host"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


# ===================================================================
#  Authentication
# ===================================================================

class AuthError(UamCliError):
    """Token exchange failures."""


class InvalidCredentialsError(AuthError):
    def __init__(self, status_code: int) -> None:
        super().__init__(
            f"The token endpoint rejected the client credentials (HTTP {status_code}). "
            "Check the client ID and secret with 'uamcli config set'."
        )
        self.status_code = status_code

    def details(self) -> Dict[str, Any]:
        return {"status_code": self.status_code}


class AuthUnreachableError(AuthError):
    category = CATEGORY_TRANSPORT


# ===================================================================
#  API client
# ===================================================================

class ApiError(UamCliError):
    """Base class for failed Asset Manager API calls."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    def details(self) -> Dict[str, Any]:
        report: Dict[str, Any] = {}
        if self.status_code is not None:
            report["status_code"] = self.status_code
        if self.body:
            report["response"] = self.body
        return report


class TransportError(ApiError):
    category = CATEGORY_TRANSPORT


class UnauthorizedError(ApiError):
    pass


class NotFoundError(ApiError):
    pass


class ConflictError(ApiError):
    pass


class ServerError(ApiError):
    pass


class RequestRejectedError(ApiError):
    """Any other 4xx answer; the body is kept for callers to inspect."""


class MalformedResponseError(ApiError):
    pass


# ===================================================================
#  Upload pipeline
# ===================================================================

class UploadError(UamCliError):
    pass


class InvalidInputError(UploadError):
    category = CATEGORY_INPUT

    def __init__(self, message: str, paths: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.paths = paths or []

    def details(self) -> Dict[str, Any]:
        return {"paths": self.paths} if self.paths else {}


class PartialFailureError(UploadError):
    """The asset container exists but not every file made it."""

    def __init__(self, identity: Any, failed_files: Dict[str, str]) -> None:
        super().__init__(
            f"Asset {identity.id} (version {identity.version}) was created but "
            f"{len(failed_files)} file(s) failed to upload. Retry the failed files "
            "against this asset instead of creating a new one."
        )
        self.identity = identity
        self.failed_files = failed_files

    def details(self) -> Dict[str, Any]:
        return {
            "identity": self.identity.to_dict(),
            "failed_files": self.failed_files,
        }


class PublishIncompleteError(UploadError):
    """All files uploaded, but the publish sequence stopped early."""

    def __init__(self, identity: Any, reached_status: Any, cause: Exception) -> None:
        super().__init__(
            f"Asset {identity.id} (version {identity.version}) uploaded, but publishing "
            f"stopped at status {reached_status.value}: {cause}"
        )
        self.identity = identity
        self.reached_status = reached_status
        self.cause = cause

    def details(self) -> Dict[str, Any]:
        return {
            "identity": self.identity.to_dict(),
            "reached_status": self.reached_status.value,
        }


# ===================================================================
#  Status engine
# ===================================================================

class StatusError(UamCliError):
    pass


class UnknownStatusError(StatusError):
    """A status name that does not match any workflow state."""

    category = CATEGORY_INPUT


class InvalidTransitionError(StatusError):
    category = CATEGORY_INPUT

    def __init__(self, from_status: Any, to_status: Any) -> None:
        super().__init__(
            f"Cannot move an asset from {from_status.value} to {to_status.value}"
        )
        self.from_status = from_status
        self.to_status = to_status

    def details(self) -> Dict[str, Any]:
        return {"from": self.from_status.value, "to": self.to_status.value}


class StatusInterruptedError(StatusError):
    """A multi-step status change stopped after ``reached``."""

    def __init__(self, reached: Any, expected: Any, cause: Exception) -> None:
        super().__init__(
            f"Status change stopped at {reached.value}; "
            f"the step to {expected.value} failed: {cause}"
        )
        self.reached = reached
        self.expected = expected
        self.cause = cause
        if isinstance(cause, UamCliError):
            self.category = cause.category

    def details(self) -> Dict[str, Any]:
        return {"reached": self.reached.value, "expected": self.expected.value}


class StatusConflictError(StatusInterruptedError):
    """The service answered 409 to one of the steps."""


# ===================================================================
#  Metadata mapper
# ===================================================================

class MetadataError(UamCliError):
    pass


class MetadataParseError(MetadataError):
    category = CATEGORY_INPUT

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)
        self.line = line


class DuplicateFieldError(MetadataError):
    category = CATEGORY_INPUT

    def __init__(self, name: str, line: Optional[int] = None) -> None:
        super().__init__(f"Metadata field '{name}' appears more than once")
        self.name = name
        self.line = line

    def details(self) -> Dict[str, Any]:
        return {"field": self.name}


class UnknownFieldError(MetadataError):
    def __init__(self, name: str) -> None:
        super().__init__(
            f"Metadata field '{name}' is not registered in the organization. "
            "Check the spelling or register it with 'uamcli asset metadata register'."
        )
        self.name = name

    def details(self) -> Dict[str, Any]:
        return {"field": self.name}
