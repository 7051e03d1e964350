"""Custom exception classes for converge."""

from typing import List, Optional


class ConvergeError(Exception):
    """Base exception for all converge errors."""
    pass


class DeclarationError(ConvergeError):
    """Raised when a declaration file cannot be loaded or is invalid."""
    pass


class GraphConstructionError(ConvergeError):
    """Raised when the resource graph cannot be built."""
    pass


class MalformedReferenceError(GraphConstructionError):
    """Raised when an expression names a resource or output field that does not exist."""

    def __init__(self, message: str, resource: Optional[str] = None, expression: Optional[str] = None):
        super().__init__(message)
        self.resource = resource
        self.expression = expression


class CyclicDependencyError(GraphConstructionError):
    """Raised when reference edges form a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(f"Dependency cycle detected: {' -> '.join(cycle)}")


class PlanConflictError(ConvergeError):
    """Raised when a replacement is blocked by a dependent that is not replaced."""

    def __init__(self, conflicts: List[str]):
        self.conflicts = conflicts
        details = "; ".join(conflicts)
        super().__init__(f"Plan has {len(conflicts)} conflict(s): {details}")


class ProviderError(ConvergeError):
    """Base class for errors raised by provider handlers."""
    pass


class RetryableProviderError(ProviderError):
    """Transient provider failure (rate limiting, network fault)."""
    pass


class FatalProviderError(ProviderError):
    """Permanent provider failure (invalid attribute, permission denied)."""
    pass


class ResourceNotFoundError(ProviderError):
    """Raised by a provider read when the resource no longer exists."""
    pass


class StateStoreError(ConvergeError):
    """Raised on state I/O failure or corruption."""
    pass


class StateLockError(StateStoreError):
    """Raised when the state lock is held by another run."""
    pass


class ConfigError(ConvergeError):
    """Raised when configuration is invalid or missing."""
    pass


class ApplyError(ConvergeError):
    """Raised when an apply run finishes with failed actions."""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report
