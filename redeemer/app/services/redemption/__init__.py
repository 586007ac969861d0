"""Single-use redemption codes backed by Redis.

This package provides the code registry, the per-code distributed lock and
the coordinator that ties them to the external invite sender.
"""

from .coordinator import (
    RedemptionCoordinator,
    get_redemption_coordinator,
    reset_redemption_coordinator,
    validate_email,
)
from .lock import RedemptionLock
from .models import CodeRecord, CreateResult, RedemptionResult
from .redis_lua import RELEASE_LOCK_SCRIPT
from .registry import GENERATION_ALPHABET, CodeRegistry, generate_code, validate_code

__all__ = [
    "CodeRecord",
    "CreateResult",
    "RedemptionResult",
    "RELEASE_LOCK_SCRIPT",
    "RedemptionLock",
    "CodeRegistry",
    "GENERATION_ALPHABET",
    "generate_code",
    "validate_code",
    "validate_email",
    "RedemptionCoordinator",
    "get_redemption_coordinator",
    "reset_redemption_coordinator",
]
