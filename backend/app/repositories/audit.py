"""AuditRepository: append-only user action records."""

from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import db_logger, get_logger
from app.models.user_action import UserAction

logger = get_logger(__name__)


class AuditRepository:
    """Writes UserAction rows.

    Callers treat audit writes as best-effort; this repository still raises
    on failure so the caller decides what to swallow.
    """

    TABLE_NAME = "user_actions"

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def log(
        self,
        user_id: str,
        action_type: str,
        target_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> UserAction:
        """Insert one audit record and flush it.

        Raises:
            SQLAlchemyError: On database errors
        """
        action = UserAction(
            user_id=user_id,
            action_type=action_type,
            target_id=target_id,
            action_metadata=metadata or {},
        )
        try:
            self.session.add(action)
            await self.session.flush()
        except SQLAlchemyError as e:
            db_logger.transaction_failure(
                e, table=self.TABLE_NAME, context=f"Logging {action_type}"
            )
            raise

        logger.debug(
            "Audit record written",
            extra={"action_id": action.id, "user_id": user_id, "action_type": action_type},
        )
        return action
