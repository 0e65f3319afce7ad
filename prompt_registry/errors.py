"""Error types shared by the registry, the sync engine and the CLI."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Machine-readable failure kinds."""

    CERTIFICATE_ERROR = "CERTIFICATE_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    INVALID_SCHEMA = "INVALID_SCHEMA"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    NOT_FOUND = "NotFound"
    VERSION_NOT_FOUND = "VersionNotFound"
    MISSING_VARIABLES = "MissingVariables"
    UNKNOWN = "UNKNOWN"


class RegistryError(Exception):
    """Base class for every error raised by prompt-registry."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a JSON-friendly dictionary."""
        return {"kind": self.kind.value, "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class SyncError(RegistryError):
    """A failure raised while synchronizing with a remote registry."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, kind=kind, details=details)


class PromptNotFoundError(RegistryError):
    kind = ErrorKind.NOT_FOUND


class VersionNotFoundError(RegistryError):
    kind = ErrorKind.VERSION_NOT_FOUND


class MissingVariablesError(RegistryError):
    """Raised when placeholders are left in a rendered prompt."""

    kind = ErrorKind.MISSING_VARIABLES

    def __init__(self, variables: list[str]):
        self.variables = list(variables)
        super().__init__(
            f"Missing variables: {', '.join(self.variables)}",
            details={"variables": self.variables},
        )


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome of a registry lookup."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed outcome of a registry lookup."""

    error: RegistryError

    @property
    def ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


Result = Union[Ok[T], Err]
