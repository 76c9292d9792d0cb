"""
Result objects for the Pool Contract Billing System.

This module provides standardized result objects used where a failure is an
expected, user-facing outcome (a malformed or unreachable link, one addendum
out of several failing to import) rather than an exception.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Generic, TypeVar
from datetime import datetime, UTC

# Type variable for generic result objects
T = TypeVar('T')
E = TypeVar('E')


@dataclass
class Result(Generic[T, E]):
    """
    Generic result object for operations that may succeed or fail.

    This class provides a consistent way to represent the results of operations,
    including success status, data, and error information.
    """

    success: bool
    data: Optional[T] = None
    error: Optional[E] = None
    error_code: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self):
        """Validate the result object state."""
        if self.success and self.error is not None:
            raise ValueError("Cannot have error in successful result")

        if not self.success and self.error is None:
            raise ValueError("Must have error in failed result")

    @staticmethod
    def ok(data: T, **metadata) -> 'Result[T, E]':
        """
        Create a success result.

        Args:
            data: Result data
            **metadata: Additional metadata

        Returns:
            Success result object
        """
        return Result(success=True, data=data, metadata=metadata)

    @staticmethod
    def fail(error: E, error_code: Optional[str] = None, **metadata) -> 'Result[T, E]':
        """
        Create a failure result.

        Args:
            error: Error information
            error_code: Optional error code
            **metadata: Additional metadata

        Returns:
            Failure result object
        """
        return Result(success=False, error=error, error_code=error_code, metadata=metadata)


@dataclass
class BatchResult(Result[List[Result], List[Any]]):
    """Result object for batch operations."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0

    @property
    def successes(self) -> List[Result]:
        return [r for r in (self.data or []) if r.success]

    @property
    def failures(self) -> List[Result]:
        return [r for r in (self.data or []) if not r.success]

    @staticmethod
    def from_results(results: List[Result]) -> 'BatchResult':
        """
        Create a batch result from a list of individual results.

        The batch counts as successful when at least one item succeeded or the
        batch was empty; individual failures stay available in ``error``.

        Args:
            results: List of results

        Returns:
            BatchResult summarizing all results
        """
        succeeded = sum(1 for r in results if r.success)
        failed = len(results) - succeeded

        failures = [r.error for r in results if not r.success]
        success = succeeded > 0 or not results

        return BatchResult(
            success=success,
            data=results,
            error=None if success else failures,
            total=len(results),
            succeeded=succeeded,
            failed=failed
        )
