import asyncio

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from redeemer.app.api.dependencies import CoordinatorDep
from redeemer.app.core.utils import get_client_ip

router = APIRouter(prefix="/api", tags=["invite"])


class InviteRequest(BaseModel):
    email: str = ""
    code: str = ""


@router.post("/invite")
async def redeem_invite(
    data: InviteRequest,
    request: Request,
    coordinator: CoordinatorDep,
) -> JSONResponse:
    """Redeem a code and send the invite to the given email.

    Status codes: 200 success, 400 bad input / invalid or used code,
    409 code busy, 500 corrupt record or misconfiguration, 502 invite
    send failure.
    """
    # Shielded so a client disconnect cannot abort a redemption mid-flight.
    result = await asyncio.shield(
        coordinator.redeem(data.code, data.email, ip=get_client_ip(request))
    )
    return JSONResponse(status_code=result.status_code, content=result.to_response())
