"""Offload exception hierarchy.

Shared across discovery, packaging, the orchestrator and the runtime so
every module raises and catches the same types.
"""

from dataclasses import dataclass


class OffloadError(Exception):
    """Base for all offload-specific errors."""


class ConfigurationError(OffloadError):
    """Raised when offload configuration is invalid.

    Typically raised at startup, before the first regeneration cycle.
    """


class PackagingError(OffloadError):
    """Raised when the container server artifact cannot be built.

    Fatal for the current regeneration cycle only.
    """


class RoutingError(OffloadError):
    """Raised when a container key cannot be resolved to a backend."""


class RpcError(OffloadError):
    """Transport-level failure talking to a backend instance."""


@dataclass(frozen=True, slots=True)
class RemoteCallError(RpcError):
    """The backend executed the call and it raised.

    Carries the remote exception type name and message; the traceback
    stays on the backend.
    """

    method: str
    type: str
    message: str = ""

    def __str__(self) -> str:
        if self.message:
            return f"{self.method}: {self.type}: {self.message}"
        return f"{self.method}: {self.type}"
