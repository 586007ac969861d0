from typing import Any, Dict, Optional

import httpx

from redeemer.app.core.logging import get_logger
from redeemer.app.providers.base import BaseInviteSender, InviteResult

logger = get_logger(__name__)


def _extract_error_message(resp: httpx.Response) -> str:
    """Pull a readable reason out of an upstream error response."""
    try:
        body = resp.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]

    text = resp.text.strip()
    if text and len(text) <= 200:
        return text
    return f"HTTP {resp.status_code}"


class ChatGPTInviteSender(BaseInviteSender):
    """Sends ChatGPT workspace invites through the backend API.

    One call issues ``POST /accounts/{account_id}/invites``. Nothing is
    retried here: a retry could deliver a second invite.
    """

    def __init__(
        self,
        base_url: str = "https://chatgpt.com/backend-api",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[httpx.Timeout] = None,
        role: str = "standard-user",
    ):
        super().__init__(base_url, http_client, timeout)
        self.role = role

    def _build_headers(self, account_id: str, token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "chatgpt-account-id": account_id,
        }

    def _build_payload(self, email: str) -> Dict[str, Any]:
        return {
            "email_addresses": [email],
            "role": self.role,
            "resend_emails": True,
        }

    async def send(self, email: str, account_id: str, token: str) -> InviteResult:
        url = self._get_endpoint_url(f"/accounts/{account_id}/invites")
        headers = self._build_headers(account_id, token)

        try:
            async with self._client_context() as client:
                resp = await client.post(url, headers=headers, json=self._build_payload(email))
        except httpx.HTTPError as e:
            logger.warning(f"Invite request failed: {type(e).__name__}: {e}")
            return InviteResult(success=False, message=f"Invite request failed: {str(e) or type(e).__name__}")

        if resp.is_success:
            try:
                data = resp.json()
            except ValueError:
                data = None
            return InviteResult(success=True, message="Invite sent", data=data)

        message = _extract_error_message(resp)
        logger.warning(f"Invite rejected upstream: status={resp.status_code} message={message}")
        try:
            data = resp.json()
        except ValueError:
            data = None
        return InviteResult(success=False, message=message, data=data)
