from fastapi import APIRouter, Depends

from redeemer.app.middleware.auth import require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

from . import codes, logs  # noqa: E402

router.include_router(codes.router, prefix="/codes", tags=["admin-codes"])
router.include_router(logs.router, prefix="/logs", tags=["admin-logs"])
