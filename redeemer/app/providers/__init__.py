"""Invite sender providers.

This package provides:
- Base sender interface (BaseInviteSender, InviteResult)
- ChatGPT workspace invite sender (ChatGPTInviteSender)
- Mock sender for local development and load testing (MockInviteSender)
- Process-wide sender accessor (get_invite_sender, reset_invite_sender)
"""

from typing import Optional

from redeemer.app.core.config import settings
from redeemer.app.core.http_client import build_timeout, get_http_client
from redeemer.app.providers.base import BaseInviteSender, InviteResult
from redeemer.app.providers.chatgpt import ChatGPTInviteSender
from redeemer.app.providers.mock import MockInviteSender

_invite_sender: Optional[BaseInviteSender] = None


def get_invite_sender() -> BaseInviteSender:
    """Get the global invite sender instance.

    Uses MockInviteSender when INVITE_MOCK_SENDER is enabled, otherwise a
    ChatGPTInviteSender bound to the shared HTTP client (if the app lifespan
    has initialised one).
    """
    global _invite_sender
    if _invite_sender is None:
        if settings.invite_mock_sender:
            _invite_sender = MockInviteSender()
        else:
            _invite_sender = ChatGPTInviteSender(
                base_url=settings.chatgpt_base_url,
                http_client=get_http_client(),
                timeout=build_timeout(),
                role=settings.invite_role,
            )
    return _invite_sender


def reset_invite_sender() -> None:
    """Reset the global invite sender instance."""
    global _invite_sender
    _invite_sender = None


__all__ = [
    "BaseInviteSender",
    "InviteResult",
    "ChatGPTInviteSender",
    "MockInviteSender",
    "get_invite_sender",
    "reset_invite_sender",
]
