"""
Activation (licensing) state for kiosk-cache.

    - models: ActivationRecord, ActivationStatus, ValidationResult
    - reconciler: Online-first validation with offline decay
"""

from kiosk_cache.activation.models import (
    ActivationKind,
    ActivationMode,
    ActivationRecord,
    ActivationStatus,
    ValidationResult,
)
from kiosk_cache.activation.reconciler import ActivationReconciler

__all__ = [
    "ActivationKind",
    "ActivationMode",
    "ActivationRecord",
    "ActivationStatus",
    "ValidationResult",
    "ActivationReconciler",
]
