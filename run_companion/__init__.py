"""Running companion: GPS workout tracking with live voice guidance."""

from .errors import PermissionDeniedError, ServiceError, SessionStateError
from .models import GeoPoint, LocationFix, TrackingStatus, WorkoutRecord
from .workout import WorkoutController

__all__ = [
    "GeoPoint",
    "LocationFix",
    "PermissionDeniedError",
    "ServiceError",
    "SessionStateError",
    "TrackingStatus",
    "WorkoutController",
    "WorkoutRecord",
]
