from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional

import httpx


@dataclass
class InviteResult:
    """Outcome of one invite-send call.

    Attributes:
        success: Whether the upstream accepted the invite
        message: Human readable reason, passed through to the caller verbatim
        data: Upstream response payload, if any
    """
    success: bool
    message: Optional[str] = None
    data: Any = None


class BaseInviteSender(ABC):
    """Base class for invite senders.

    Subclasses can accept an external httpx.AsyncClient for connection pooling,
    or create a short-lived one per call if not provided.

    Senders are not idempotent: calling ``send`` twice for the same email may
    deliver two invites. Callers are responsible for at-most-once semantics.
    """

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[httpx.Timeout] = None,
    ):
        self._http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or httpx.Timeout(30.0)

    @property
    def http_client(self) -> Optional[httpx.AsyncClient]:
        """Get the HTTP client, if one was provided."""
        return self._http_client

    @asynccontextmanager
    async def _client_context(self) -> AsyncGenerator[httpx.AsyncClient, None]:
        """Yield the shared client, or a per-call client that is closed afterwards."""
        if self._http_client is not None:
            yield self._http_client
            return
        client = httpx.AsyncClient(timeout=self.timeout)
        try:
            yield client
        finally:
            await client.aclose()

    def _get_endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    @abstractmethod
    async def send(self, email: str, account_id: str, token: str) -> InviteResult:
        """Send one invite.

        Args:
            email: Invitee email address
            account_id: Workspace account the invite is issued from
            token: Bearer token authorised to issue invites

        Returns:
            InviteResult describing the upstream outcome. Transport and
            upstream errors are reported as ``success=False`` rather than
            raised.
        """
