from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

# Substrings of revert reasons the registry uses when a point lookup misses.
_NOT_FOUND_MARKERS = ("not found", "notfound", "invalidproviderid", "does not exist")


@dataclass(eq=False)
class RegistryError(Exception):
    component: str
    operation: str
    message: str
    cause: Optional[BaseException] = None

    def __str__(self) -> str:
        base = f"{self.component}.{self.operation}: {self.message}"
        if self.cause is not None:
            return f"{base} (cause: {self.cause})"
        return base


@dataclass(eq=False)
class ConfigurationError(RegistryError):
    pass


@dataclass(eq=False)
class EncodingError(RegistryError):
    key: Optional[str] = None


@dataclass(eq=False)
class DecodingError(RegistryError):
    key: Optional[str] = None


@dataclass(eq=False)
class InsufficientFeeError(RegistryError):
    required: int = 0
    provided: int = 0


@dataclass(eq=False)
class RegistryCallError(RegistryError):
    """A single registry call reverted or its transport failed.

    ``reason`` carries the raw revert reason when the node returned one.
    """

    reason: Optional[str] = None

    @property
    def is_not_found(self) -> bool:
        if not self.reason:
            return False
        reason = self.reason.lower()
        return any(marker in reason for marker in _NOT_FOUND_MARKERS)


@dataclass(eq=False)
class AggregationUnavailableError(RegistryError):
    pass
