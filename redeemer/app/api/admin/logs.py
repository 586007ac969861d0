from typing import Optional

from fastapi import APIRouter, Query

from redeemer.app.api.dependencies import OperationLogDep

router = APIRouter()


@router.get("")
async def recent_logs(
    oplog: OperationLogDep,
    limit: Optional[int] = Query(default=None, ge=1),
) -> dict:
    """Most recent operation log entries, newest first."""
    return {"success": True, "logs": await oplog.tail(limit)}
