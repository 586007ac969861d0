"""Mock invite sender for testing purposes.

This sender simulates the invite API without making external calls. It's
useful for load testing and local development without real credentials.

Enable by setting environment variable:
    INVITE_MOCK_SENDER=true
"""

import asyncio
import random
import uuid

from redeemer.app.providers.base import BaseInviteSender, InviteResult


class MockInviteSender(BaseInviteSender):
    """Invite sender that returns simulated results.

    Features:
    - Simulates response delays (configurable)
    - Configurable failure rate for exercising error handling
    - Records every email it was asked to invite
    """

    def __init__(
        self,
        min_delay: float = 0.05,
        max_delay: float = 0.2,
        failure_rate: float = 0.0,
    ):
        super().__init__("http://mock.invites")
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.failure_rate = failure_rate
        self.sent: list[str] = []

    async def send(self, email: str, account_id: str, token: str) -> InviteResult:
        await asyncio.sleep(random.uniform(self.min_delay, self.max_delay))

        if random.random() < self.failure_rate:
            return InviteResult(success=False, message="Simulated invite failure")

        self.sent.append(email)
        return InviteResult(
            success=True,
            message="Invite sent",
            data={"invite_id": uuid.uuid4().hex, "email": email},
        )
