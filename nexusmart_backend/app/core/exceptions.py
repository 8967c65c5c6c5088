"""
NexusMart Exception Hierarchy

Structured exception classes for the catalog and stock-alert subsystems.
All exceptions include code, message, and details for audit trail and
debugging, plus the HTTP status the API renders them with.

Exception Hierarchy:
    NexusMartError
    ├── NotFoundError
    │   ├── ProductNotFoundError
    │   └── StockAlertNotFoundError
    ├── ForbiddenError
    │   └── StockAlertForbiddenError
    ├── DomainValidationError
    │   ├── InvalidSubscriptionError
    │   └── ProductOutOfStockError
    └── NotificationError
"""
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class NexusMartError(Exception):
    """
    Base exception for all NexusMart custom errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        severity: P0-P3 severity level
        status_code: HTTP status used when the error reaches the API layer
    """

    default_code: str = "NEXUSMART_ERROR"
    default_severity: str = "P2"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# LOOKUP ERRORS
# =============================================================================

class NotFoundError(NexusMartError):
    """Requested resource does not exist."""
    default_code = "NOT_FOUND"
    default_severity = "P3"
    status_code = 404


class ProductNotFoundError(NotFoundError):
    default_code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: Any, message: str = "Product not found", **kwargs):
        details = kwargs.pop("details", {})
        details["product_id"] = product_id
        super().__init__(message, details=details, **kwargs)


class StockAlertNotFoundError(NotFoundError):
    default_code = "STOCK_ALERT_NOT_FOUND"

    def __init__(self, alert_id: Any, message: str = "Stock alert not found", **kwargs):
        details = kwargs.pop("details", {})
        details["alert_id"] = alert_id
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# OWNERSHIP ERRORS
# =============================================================================

class ForbiddenError(NexusMartError):
    """Caller is not allowed to act on the resource."""
    default_code = "FORBIDDEN"
    default_severity = "P2"
    status_code = 403


class StockAlertForbiddenError(ForbiddenError):
    """Stock alert belongs to another user."""
    default_code = "STOCK_ALERT_FORBIDDEN"

    def __init__(
        self,
        alert_id: Any,
        message: str = "You do not have permission to modify this stock alert",
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["alert_id"] = alert_id
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class DomainValidationError(NexusMartError):
    """Request is well-formed but violates a domain rule."""
    default_code = "VALIDATION_ERROR"
    default_severity = "P3"
    status_code = 400


class InvalidSubscriptionError(DomainValidationError):
    """Subscription request cannot be satisfied (e.g. no contact address)."""
    default_code = "INVALID_SUBSCRIPTION"


class ProductOutOfStockError(DomainValidationError):
    """Restock notification requested for a product that has no stock."""
    default_code = "PRODUCT_OUT_OF_STOCK"

    def __init__(
        self,
        product_id: Any,
        stock: Optional[int] = None,
        message: str = "Product is still out of stock",
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "product_id": product_id,
            "stock": stock,
        })
        super().__init__(message, details=details, **kwargs)


# =============================================================================
# NOTIFICATION ERRORS
# =============================================================================

class NotificationError(NexusMartError):
    """Outbound notification provider failure."""
    default_code = "NOTIFICATION_FAILED"
    default_severity = "P2"
    status_code = 502

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details["provider"] = provider
        super().__init__(message, details=details, **kwargs)
