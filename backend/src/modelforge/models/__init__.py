"""Runtime models assembled from metadata."""

from modelforge.models.base import (
    SYSTEM_USER,
    TIMESTAMP_FORMAT,
    ModelEntity,
    ModelView,
    ValidationStatus,
)
from modelforge.models.factory import ModelFactory

__all__ = [
    "ModelEntity",
    "ModelFactory",
    "ModelView",
    "SYSTEM_USER",
    "TIMESTAMP_FORMAT",
    "ValidationStatus",
]
