"""
Custom exception classes
"""
from typing import List

from fastapi import HTTPException


class PayloadValidationError(HTTPException):
    """Raised when a payload breaks one or more validation rules"""
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(
            status_code=400,
            detail={"message": "Validation failed", "errors": self.errors}
        )


class NotFoundOrDeniedError(HTTPException):
    """Raised when a resource is absent or the caller may not touch it"""
    def __init__(self, resource: str = "Resource"):
        super().__init__(
            status_code=404,
            detail=f"{resource} not found or access denied"
        )


class ConflictError(HTTPException):
    """Raised when a unique constraint rejects a write; safe to retry"""
    def __init__(self, reason: str = "Conflicting write"):
        super().__init__(
            status_code=409,
            detail=reason
        )


class DependencyError(HTTPException):
    """Raised when an external collaborator (file storage, audit store) fails"""
    def __init__(self, service: str, reason: str = "Unknown error"):
        super().__init__(
            status_code=502,
            detail=f"{service} failed: {reason}"
        )
