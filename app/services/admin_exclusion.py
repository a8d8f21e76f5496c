"""Admin-exclusion set: administrator accounts removed from customer analytics.

Computed fresh for every aggregation call; never cached or persisted on
events.
"""

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import ColumnElement, Select, or_, select, union
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.events import CheckoutEventLog, PageViewLog
from app.models.session_log import SessionLog
from app.models.user import User, UserRole


@dataclass(frozen=True)
class AdminExclusion:
    """User ids and emails belonging to accounts with the admin role."""

    user_ids: frozenset[UUID] = field(default_factory=frozenset)
    emails: frozenset[str] = field(default_factory=frozenset)

    def is_admin(self, user_id: UUID | None = None, email: str | None = None) -> bool:
        return (user_id is not None and user_id in self.user_ids) or (
            email is not None and email in self.emails
        )

    def not_admin_user(self, column: ColumnElement) -> list[ColumnElement[bool]]:
        """Rows whose user column is empty or not an admin id."""
        if not self.user_ids:
            return []
        return [or_(column.is_(None), column.notin_(list(self.user_ids)))]

    def not_admin_email(self, column: ColumnElement) -> list[ColumnElement[bool]]:
        """Rows whose email column is empty or not an admin email."""
        if not self.emails:
            return []
        return [or_(column.is_(None), column.notin_(list(self.emails)))]

    def admin_sessions(self) -> Select:
        """Session ids attributable to an admin account.

        A session is an admin session if the admin owns the session row, or
        an admin was identified on one of its page views or checkout events.
        """
        ids = list(self.user_ids)
        emails = list(self.emails)
        return select(
            union(
                select(SessionLog.session_id).where(SessionLog.user_id.in_(ids)),
                select(PageViewLog.session_id).where(
                    or_(PageViewLog.user_id.in_(ids), PageViewLog.email.in_(emails))
                ),
                select(CheckoutEventLog.session_id).where(CheckoutEventLog.user_id.in_(ids)),
            ).subquery()
        )

    def not_admin_session(self, column: ColumnElement) -> list[ColumnElement[bool]]:
        """Rows whose session id is not an admin session."""
        if not self.user_ids and not self.emails:
            return []
        return [column.notin_(self.admin_sessions())]


async def load_admin_exclusion(db: AsyncSession) -> AdminExclusion:
    """Fetch the current admin ids and emails."""
    stmt = select(User.id, User.email).where(User.role == UserRole.ADMIN)
    rows = (await db.execute(stmt)).all()
    return AdminExclusion(
        user_ids=frozenset(row.id for row in rows),
        emails=frozenset(row.email for row in rows if row.email),
    )
