"""Credential schemas."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Connection(BaseModel):
    """A user's stored third-party connection (decrypted view)."""

    service: str = Field(..., description="Service name, e.g. 'slack' or 'google'")
    access_token: str = Field(..., description="OAuth access token")
    refresh_token: Optional[str] = Field(default=None, description="OAuth refresh token")
    expires_at: Optional[datetime] = Field(default=None, description="Access token expiry")
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return now >= expires_at
