"""Custom exception hierarchy for orgtree."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Node errors
    NODE_NOT_FOUND = "NODE_NOT_FOUND"
    PARENT_NODE_NOT_FOUND = "PARENT_NODE_NOT_FOUND"
    NO_PARENT = "NO_PARENT"

    # Structural errors
    CIRCULAR_DEPENDENCY = "CIRCULAR_DEPENDENCY"
    DATA_INTEGRITY = "DATA_INTEGRITY"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"


class HierarchyException(Exception):
    """
    Base exception for all orgtree errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class NodeNotFoundError(HierarchyException):
    """Node not found in database."""

    def __init__(self, node_id: int):
        super().__init__(
            f"Node not found: {node_id}",
            ErrorCode.NODE_NOT_FOUND,
            status_code=404,
            details={"node_id": node_id}
        )


class ParentNodeNotFoundError(HierarchyException):
    """A referenced parent node does not exist."""

    def __init__(self, parent_id: int):
        super().__init__(
            f"Parent node not found: {parent_id}",
            ErrorCode.PARENT_NODE_NOT_FOUND,
            status_code=404,
            details={"parent_id": parent_id}
        )


class NoParentError(HierarchyException):
    """The node is a root and has no parent to report."""

    def __init__(self, node_id: int):
        super().__init__(
            f"Node {node_id} is a root and has no parent",
            ErrorCode.NO_PARENT,
            status_code=404,
            details={"node_id": node_id}
        )


class ValidationError(HierarchyException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class CircularDependencyError(HierarchyException):
    """The requested move would make a node its own ancestor."""

    def __init__(self, node_id: int, parent_id: Optional[int]):
        super().__init__(
            f"Would create circular reference: node {node_id} under {parent_id}",
            ErrorCode.CIRCULAR_DEPENDENCY,
            status_code=409,
            details={"node_id": node_id, "parent_id": parent_id}
        )


class DataIntegrityError(HierarchyException):
    """Stored hierarchy data violates a structural invariant."""

    def __init__(self, message: str, node_id: Optional[int] = None):
        details = {"node_id": node_id} if node_id is not None else {}
        super().__init__(
            message,
            ErrorCode.DATA_INTEGRITY,
            status_code=500,
            details=details
        )


class DatabaseError(HierarchyException):
    """Database operation failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(
            message,
            ErrorCode.DATABASE_ERROR,
            status_code=500,
            details=details
        )
