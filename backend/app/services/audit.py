"""Best-effort audit logging.

Audit writes never fail the operation that triggered them: errors are
logged through clustering_logger.audit_failed and the session is rolled
back so the caller can keep using it.
"""

import contextlib
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import clustering_logger
from app.repositories.audit import AuditRepository


async def record_user_action(
    session: AsyncSession,
    user_id: str,
    action_type: str,
    metadata: dict[str, Any] | None = None,
    target_id: str | None = None,
) -> bool:
    """Write and commit one audit record. Returns False if it was dropped."""
    try:
        await AuditRepository(session).log(
            user_id=user_id,
            action_type=action_type,
            target_id=target_id,
            metadata=metadata,
        )
        await session.commit()
    except Exception as e:
        clustering_logger.audit_failed(action_type, e)
        with contextlib.suppress(SQLAlchemyError):
            await session.rollback()
        return False
    return True
