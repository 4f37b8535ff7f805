"""Typed failures raised by the workspace core.

External capabilities (filesystem, persistence, folder picker) may raise
anything; every call site converts those into one of these before the error
reaches the UI layer.
"""


class WorkspaceError(Exception):
    """Base class for workspace core failures."""


class InvalidPathError(WorkspaceError, ValueError):
    """Raised for an empty or blank path argument, before any I/O."""


class NotFoundError(WorkspaceError, KeyError):
    """Raised when a vault or tab id is absent from its registry."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class IoFailure(WorkspaceError):
    """Wraps a rejected external command."""

    def __init__(self, operation: str, path: str | None, message: str):
        self.operation = operation
        self.path = path
        self.message = message
        target = f" {path}" if path else ""
        super().__init__(f"Failed to {operation}{target}: {message}")

    @classmethod
    def wrap(cls, operation: str, path: str | None, exc: BaseException) -> "IoFailure":
        """Build an IoFailure carrying the underlying error's message."""
        return cls(operation, path, str(exc) or type(exc).__name__)


class WatchSetupFailure(WorkspaceError):
    """The filesystem watcher could not start. The tree stays usable."""
