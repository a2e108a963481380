# audit_core/exceptions.py
"""
Error taxonomy for the sample engine.

NotFound, InvalidState, NotEligible and ValidationError mean nothing was
written. PersistenceError means the storage layer failed; single-sample
transitions run atomically, so it also means nothing was written for that
sample.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class SampleError(Exception):
    code = "sample_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"error": self.code, "detail": self.message}
        out.update({k: v for k, v in self.context.items() if v is not None})
        return out


class NotFound(SampleError):
    code = "not_found"


class InvalidState(SampleError):
    code = "invalid_state"


class NotEligible(SampleError):
    code = "not_eligible"


class ValidationError(SampleError):
    code = "validation_error"

    def __init__(self, message: str, *, missing: Optional[List[str]] = None, **context: Any):
        super().__init__(message, missing=missing, **context)
        self.missing = list(missing or [])


class PersistenceError(SampleError):
    code = "persistence_error"
