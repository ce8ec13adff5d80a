"""
Error taxonomy for the queue console.

  ValidationError         caller input broke a rule; raised before any provider call
  ProviderError           the queue provider call failed or broke its contract
  OperationCancelledError the caller's OperationContext fired (cancel or deadline)

Partial results (one queue's attributes, a queue's tags) are not errors at all:
the repository logs them and carries on.
"""
from __future__ import annotations

from botocore.exceptions import ClientError


class ConsoleError(Exception):
    """Base class for every error the console raises on purpose."""


class ValidationError(ConsoleError, ValueError):
    """User-facing input error. The message is safe to display verbatim."""


class ProviderError(ConsoleError):
    """
    A provider API call failed.

    operation: the API name ("ListQueues", "SendMessage", ...)
    code:      provider error code when the cause is a ClientError
    """
    def __init__(self, operation: str, cause: BaseException | None = None, message: str | None = None):
        self.operation = operation
        self.cause = cause
        self.code = error_code(cause) if cause is not None else None
        if message is None:
            message = f"failed to call {operation} API"
            if cause is not None:
                message = f"{message}: {cause}"
        super().__init__(message)


class OperationCancelledError(ConsoleError):
    """The operation was cancelled or ran out of time before the provider answered."""
    def __init__(self, reason: str = "operation cancelled"):
        self.reason = reason
        super().__init__(reason)


def error_code(exc: BaseException) -> str | None:
    """Return the provider error code carried by a botocore ClientError, if any."""
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code")
    return None
