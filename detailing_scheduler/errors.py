"""
Domain errors for the scheduling core.

Every failure of a booking operation is raised as one of these and is
translated to an HTTP response at the API layer.
"""
from typing import Any, Dict, Optional


class SchedulingError(Exception):
    """Base exception for all scheduling errors"""

    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"message": self.message, "code": self.code, "details": self.details}


class ValidationError(SchedulingError):
    """Malformed date/time, start >= end, duration out of bounds"""

    status_code = 422


class NotFoundError(SchedulingError):
    """Reservation, bundle, service or business absent"""

    status_code = 404


class UnauthorizedError(SchedulingError):
    """Actor is neither the customer nor the owning business"""

    status_code = 403


class ConflictError(SchedulingError):
    """Overlapping interval, sold out or out-of-window bundle"""

    status_code = 409


class UnavailableError(SchedulingError):
    """Business closed for the requested date or time"""

    status_code = 409


class SlotConflictError(ConflictError):
    """Raised when an interval overlaps an existing reservation in scope."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        scope: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = dict(details or {})
        if scope:
            details["scope"] = scope
        super().__init__(
            message=message or "This time slot is not available",
            code="SLOT_CONFLICT",
            details=details,
        )
        self.scope = scope


class BundleInactiveError(ConflictError):
    def __init__(self, bundle_id: int):
        super().__init__(
            "This bundle is no longer active",
            code="BUNDLE_INACTIVE",
            details={"bundle_id": bundle_id},
        )


class BundleNotYetValidError(ConflictError):
    def __init__(self, bundle_id: int, valid_from: str):
        super().__init__(
            "This bundle is not yet available",
            code="BUNDLE_NOT_YET_VALID",
            details={"bundle_id": bundle_id, "valid_from": valid_from},
        )


class BundleExpiredError(ConflictError):
    def __init__(self, bundle_id: int, valid_until: str):
        super().__init__(
            "This bundle has expired",
            code="BUNDLE_EXPIRED",
            details={"bundle_id": bundle_id, "valid_until": valid_until},
        )


class BundleSoldOutError(ConflictError):
    def __init__(self, bundle_id: int, max_redemptions: int):
        super().__init__(
            "This bundle is sold out",
            code="BUNDLE_SOLD_OUT",
            details={"bundle_id": bundle_id, "max_redemptions": max_redemptions},
        )


class InvalidTransitionError(ValidationError):
    """Raised when a status change is not allowed by the state machine."""

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot move a {current} reservation to {target}",
            code="INVALID_TRANSITION",
            details={"current": current, "target": target},
        )
        self.current = current
        self.target = target
