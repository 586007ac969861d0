"""FastAPI dependencies for store-backed services."""

from typing import Annotated

from fastapi import Depends

from redeemer.app.core.redis import get_redis
from redeemer.app.services.operation_log import OperationLog
from redeemer.app.services.redemption import (
    CodeRegistry,
    RedemptionCoordinator,
    get_redemption_coordinator,
)


def get_code_registry() -> CodeRegistry:
    """Registry bound to the shared Redis client (StoreUnavailableError if unset)."""
    return CodeRegistry(get_redis())


def get_operation_log() -> OperationLog:
    return OperationLog(get_redis())


RegistryDep = Annotated[CodeRegistry, Depends(get_code_registry)]
OperationLogDep = Annotated[OperationLog, Depends(get_operation_log)]
CoordinatorDep = Annotated[RedemptionCoordinator, Depends(get_redemption_coordinator)]
