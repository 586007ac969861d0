from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from redeemer.app.api.dependencies import OperationLogDep, RegistryDep
from redeemer.app.core.config import settings
from redeemer.app.core.logging import get_logger
from redeemer.app.core.utils import get_client_ip
from redeemer.app.exceptions import (
    CodeConflictError,
    CodeGenerationError,
    CodeNotFoundError,
    InputValidationError,
)
from redeemer.app.services.operation_log import preview_codes
from redeemer.app.services.redemption import validate_code

logger = get_logger(__name__)

router = APIRouter()


class CodeCreate(BaseModel):
    codes: Optional[list[str]] = None
    code: Optional[str] = None
    count: Optional[int] = None
    length: Optional[int] = None


def _clamp(value: Optional[int], default: int, low: int, high: int) -> int:
    return max(low, min(value or default, high))


def _requested_codes(data: CodeCreate) -> list[str]:
    """Validate admin-supplied codes; any invalid entry rejects the request."""
    raw_codes = list(data.codes or [])
    # A blank single `code` means "not provided".
    if data.code is not None and data.code.strip():
        raw_codes.append(data.code)

    valid: list[str] = []
    invalid: list[str] = []
    for raw in raw_codes:
        try:
            valid.append(validate_code(raw))
        except InputValidationError:
            invalid.append(raw)
    if invalid:
        shown = ", ".join(repr(c) for c in invalid[:5])
        raise InputValidationError("codes", f"Invalid redemption codes: {shown}")
    return list(dict.fromkeys(valid))


@router.get("")
async def list_codes(registry: RegistryDep) -> dict:
    """List all codes, newest first."""
    return {"success": True, "codes": await registry.list_codes()}


@router.post("")
async def create_codes(
    data: CodeCreate,
    request: Request,
    registry: RegistryDep,
    oplog: OperationLogDep,
) -> dict:
    """Create the given codes, or generate ``count`` random ones."""
    ip = get_client_ip(request)
    requested = _requested_codes(data)

    if requested:
        result = await registry.create_many(requested)
        if result.created:
            await oplog.append("code_create", ip=ip, count=len(result.created), codes=preview_codes(result.created))
        if not result.complete:
            logger.info(f"Code create skipped {len(result.skipped)} existing codes")
            raise CodeConflictError(result.created, result.skipped)
        return {"success": True, "codes": result.created}

    length = _clamp(data.length, settings.code_default_length, settings.code_min_length, settings.code_max_length)
    count = _clamp(data.count, 1, 1, settings.code_max_count)
    try:
        created = await registry.generate(count, length)
    except CodeGenerationError as exc:
        if exc.created:
            await oplog.append("code_create", ip=ip, count=len(exc.created), codes=preview_codes(exc.created))
        raise

    await oplog.append("code_create", ip=ip, count=len(created), codes=preview_codes(created))
    return {"success": True, "codes": created}


@router.delete("/{code}")
async def delete_code(
    code: str,
    request: Request,
    registry: RegistryDep,
    oplog: OperationLogDep,
) -> dict:
    """Delete a code, used or not."""
    code = validate_code(code)
    if not await registry.delete(code):
        raise CodeNotFoundError(code)
    await oplog.append("code_delete", ip=get_client_ip(request), code=code)
    return {"success": True}
