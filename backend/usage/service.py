"""Free-tier usage limiting - charged queries per caller per calendar month."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from backend.core.database import get_engine
from backend.core.errors import PersistenceError
from backend.storage.models import UsageRecord
from .schemas import CallerIdentity, UsageCheck

logger = logging.getLogger(__name__)


def month_bounds(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Start of the current month and start of the next one (UTC)."""
    now = now or datetime.now(timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        reset = start.replace(year=start.year + 1, month=1)
    else:
        reset = start.replace(month=start.month + 1)
    return start, reset


class UsageLimiter:
    """Answers "may this caller run a query?" and records charged queries."""

    def __init__(self, free_query_limit: int = 3, engine: Engine | None = None):
        self.free_query_limit = free_query_limit
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    def _count(self, session: Session, identity: CallerIdentity, since: datetime) -> int:
        statement = select(func.count()).select_from(UsageRecord).where(
            UsageRecord.created_at >= since
        )
        if identity.user_id:
            statement = statement.where(UsageRecord.user_id == identity.user_id)
        else:
            statement = statement.where(UsageRecord.fingerprint == identity.fingerprint)
        return session.exec(statement).one()

    def check_allowed(self, identity: CallerIdentity) -> UsageCheck:
        limit = self.free_query_limit
        if identity.is_anonymous:
            return UsageCheck(allowed=False, remaining=0, limit=limit, requires_auth=True)

        start, reset = month_bounds()
        try:
            with Session(self.engine) as session:
                used = self._count(session, identity, start)
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e

        remaining = max(0, limit - used)
        return UsageCheck(
            allowed=used < limit,
            remaining=remaining,
            limit=limit,
            reset_date=reset,
            # Anonymous callers must sign up once the free queries are gone
            requires_auth=identity.user_id is None and used >= limit,
        )

    def consume_one(self, identity: CallerIdentity, conversation_id: str | None = None) -> None:
        """Record one charged query."""
        if identity.is_anonymous:
            return
        try:
            with Session(self.engine) as session:
                session.add(UsageRecord(
                    user_id=identity.user_id,
                    fingerprint=None if identity.user_id else identity.fingerprint,
                    conversation_id=conversation_id,
                ))
                session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(str(e)) from e
        logger.debug("Charged one query to %s", identity.key)
