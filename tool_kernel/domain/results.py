"""
OperationResult -- the structured outcome of every public tool operation.

Either ``value`` is set (success) or ``error_kind``/``error_code``/``message``
describe the failure.  No exception crosses ToolLifecycleService.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

from tool_kernel.exceptions import ErrorKind, ToolKernelError

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Result of a ToolLifecycleService operation."""

    value: T | None = None
    error_kind: ErrorKind | None = None
    error_code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.error_kind is None

    @property
    def retryable(self) -> bool:
        return self.error_kind == ErrorKind.TRANSACTION

    @classmethod
    def success(cls, value: T | None = None, message: str | None = None) -> "OperationResult[T]":
        return cls(value=value, message=message)

    @classmethod
    def failure(cls, error: ToolKernelError) -> "OperationResult[T]":
        return cls(
            error_kind=error.kind,
            error_code=error.code,
            message=str(error),
        )

    def unwrap(self) -> T:
        """Return the value, or raise RuntimeError for a failed result."""
        if not self.is_success:
            raise RuntimeError(f"{self.error_code}: {self.message}")
        return self.value
