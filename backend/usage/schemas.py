"""Usage limiter models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class CallerIdentity(BaseModel):
    """Who is asking: an authenticated user, an anonymous fingerprint, or neither."""

    user_id: str | None = None
    fingerprint: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return not self.user_id and not self.fingerprint

    @property
    def key(self) -> str:
        return f"user:{self.user_id}" if self.user_id else f"anon:{self.fingerprint}"


class UsageCheck(BaseModel):
    allowed: bool
    remaining: int
    limit: int
    reset_date: datetime | None = None
    requires_auth: bool = False

    def paywall_message(self) -> str:
        if self.requires_auth:
            return f"You've used your {self.limit} free queries. Sign up to continue!"
        return f"You've reached your monthly limit of {self.limit} queries. Upgrade to continue!"
