"""
Operation results returned by POS core services.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .exceptions import BusinessException


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of a POS core operation.

    ``replayed`` is informational: a replayed result carries the same value
    shape as a fresh execution.
    """

    value: Any = None
    error: Optional[BusinessException] = None
    replayed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any, replayed: bool = False) -> 'OperationResult':
        return cls(value=value, replayed=replayed)

    @classmethod
    def failure(cls, error: BusinessException) -> 'OperationResult':
        return cls(error=error)

    def unwrap(self) -> Any:
        """Return the value, or raise the error."""
        if self.error is not None:
            raise self.error
        return self.value
