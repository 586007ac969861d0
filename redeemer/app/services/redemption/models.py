"""Data models for redemption codes and redemption outcomes."""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

from redeemer.app.core.utils import utc_now_iso
from redeemer.app.exceptions import RedeemerException


@dataclass
class CodeRecord:
    """Stored state of one redemption code.

    Attributes:
        created_at: Creation time, set once
        used: False until a successful redemption, never reset
        used_at: Redemption time, None until used
        used_by: Redeemer email, None until used
        extra: Unknown fields found in storage, preserved on rewrite
    """
    created_at: Optional[str]
    used: bool = False
    used_at: Optional[str] = None
    used_by: Optional[str] = None
    extra: dict = field(default_factory=dict)

    @classmethod
    def new(cls, now: Optional[datetime] = None) -> "CodeRecord":
        """Create a fresh, unused record."""
        return cls(created_at=utc_now_iso(now))

    def mark_used(self, email: str, now: Optional[datetime] = None) -> "CodeRecord":
        """Return the consumed version of this record; createdAt is kept."""
        return replace(self, used=True, used_at=utc_now_iso(now), used_by=email)

    def to_dict(self) -> dict:
        """Convert to the stored JSON shape."""
        data = dict(self.extra)
        data.update({
            "createdAt": self.created_at,
            "used": self.used,
            "usedAt": self.used_at,
            "usedBy": self.used_by,
        })
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict) -> "CodeRecord":
        """Create from the stored JSON shape."""
        known = ("createdAt", "used", "usedAt", "usedBy")
        return cls(
            created_at=data.get("createdAt"),
            used=bool(data.get("used")),
            used_at=data.get("usedAt"),
            used_by=data.get("usedBy"),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass
class CreateResult:
    """Partition of a bulk create into codes written and codes that existed."""
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.skipped


@dataclass
class RedemptionResult:
    """Structured outcome of one redemption attempt."""
    success: bool
    status_code: int = 200
    error: Optional[str] = None
    message: Optional[str] = None
    data: Any = None

    @classmethod
    def succeeded(cls, message: Optional[str] = None, data: Any = None) -> "RedemptionResult":
        return cls(success=True, message=message or "Invite sent", data=data)

    @classmethod
    def from_error(cls, exc: RedeemerException) -> "RedemptionResult":
        return cls(
            success=False,
            status_code=exc.status_code,
            error=exc.error_code,
            message=exc.message,
            data=getattr(exc, "data", None),
        )

    def to_response(self) -> dict:
        """Convert to the HTTP response body."""
        if self.success:
            return {"success": True, "message": self.message, "data": self.data}
        body = {"success": False, "error": self.error, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        return body
