"""
Error taxonomy of the intake core.

* ``ValidationError`` - malformed user input; always answered with a re-prompt.
* ``NotFound`` - a referenced order/category/product is missing; the
  conversation is reset to ``idle``.
* ``InvalidTransition`` - an order status change that the transition table
  forbids; reported, nothing changes.
* ``ExternalDependencyFailure`` - ledger export or message delivery failed;
  logged, never undoes the committed state change.
"""

from __future__ import annotations

from typing import Any, Optional


class ManifestError(Exception):
    """Base class for all errors raised by the core."""


class ValidationError(ManifestError):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(ManifestError):
    def __init__(self, entity: str, key: Any = None):
        super().__init__(f"{entity} not found: {key}")
        self.entity = entity
        self.key = key


class InvalidTransition(ManifestError):
    def __init__(self, current: Any, requested: Any):
        super().__init__(f"cannot change status from {_value(current)} to {_value(requested)}")
        self.current = current
        self.requested = requested


class ExternalDependencyFailure(ManifestError):
    def __init__(self, dependency: str, detail: Optional[str] = None):
        super().__init__(f"{dependency} failed: {detail or 'unknown error'}")
        self.dependency = dependency
        self.detail = detail


def _value(status: Any) -> str:
    return getattr(status, "value", str(status))
