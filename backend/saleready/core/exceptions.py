"""
Custom exception classes for request and worker error handling
"""

from typing import Optional, Dict, Any


class SaleReadyError(Exception):
    """Base exception for all SaleReady errors"""
    status_code: int = 500

    def __init__(self, message: str, code: str = "SALEREADY_ERROR", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(SaleReadyError):
    """Raised when input validation fails"""
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)
        self.field = field


class AuthenticationError(SaleReadyError):
    """Raised when authentication fails"""
    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "AUTH_ERROR", details)


class AuthorizationError(SaleReadyError):
    """Raised when authorization fails"""
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions", resource: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "AUTHZ_ERROR", details)
        self.resource = resource


class ResourceNotFoundError(SaleReadyError):
    """Raised when a resource is not found"""
    status_code = 404

    def __init__(self, resource_type: str, resource_id: str, details: Optional[Dict[str, Any]] = None):
        message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(message, "NOT_FOUND", details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(SaleReadyError):
    """Raised when the requested change conflicts with stored state"""
    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFLICT", details)


class CalculationError(SaleReadyError):
    """Raised when financial calculations fail"""
    status_code = 422

    def __init__(self, calculation_type: str, message: str, inputs: Optional[Dict[str, Any]] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CALCULATION_ERROR", details)
        self.calculation_type = calculation_type
        self.inputs = inputs


class ExternalAPIError(SaleReadyError):
    """Raised when external API calls fail"""
    status_code = 502

    def __init__(self, service: str, message: str, upstream_status: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"External API error ({service}): {message}", f"{service.upper()}_API_ERROR", details)
        self.service = service
        self.upstream_status = upstream_status


class DatabaseError(SaleReadyError):
    """Raised when database operations fail"""
    status_code = 503

    def __init__(self, message: str, operation: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "DATABASE_ERROR", details)
        self.operation = operation


class QueueError(SaleReadyError):
    """Raised when a queue RPC fails"""
    status_code = 500

    def __init__(self, queue_name: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(f"Queue '{queue_name}' operation failed: {message}", "QUEUE_ERROR", details)
        self.queue_name = queue_name
