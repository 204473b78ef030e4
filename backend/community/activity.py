"""
Activity Log
============

Best-effort, append-only record of what users did.

WRITE PATH:
-----------
Repositories call record_action() from inside their transaction. The
actual insert is deferred with transaction.on_commit(), which gives us:
1. Rolled-back mutations are never logged
2. A failing log write can't roll back the mutation (it's already committed)
3. Outside a transaction (autocommit) the write happens immediately

log_user_action() swallows database errors after logging them. The log is
telemetry, not part of any invariant, so nothing upstream ever sees a
failure here.

READ PATH:
----------
recent_actions() is the only bounded read in the system: newest first,
ACTIVITY_RECENT_LIMIT rows (10 by default). Served by the
(user_id, -timestamp) index.
"""

import logging
from functools import partial
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, transaction

from .models import UserAction

logger = logging.getLogger(__name__)


def log_user_action(user_id: str, action_type: str, description: str) -> Optional[UserAction]:
    """Insert one activity entry now. Returns None if the write failed."""
    try:
        return UserAction.objects.create(
            user_id=user_id,
            action_type=action_type,
            description=description
        )
    except DatabaseError:
        logger.warning(
            "Could not record %s for user %s", action_type, user_id,
            exc_info=True
        )
        return None


def record_action(user_id: str, action_type: str, description: str) -> None:
    """Schedule an activity entry for after the current transaction commits."""
    transaction.on_commit(partial(log_user_action, user_id, action_type, description))


def recent_actions(user_id: str, limit: Optional[int] = None) -> list[UserAction]:
    if limit is None:
        limit = getattr(settings, 'ACTIVITY_RECENT_LIMIT', 10)
    return list(
        UserAction.objects
        .filter(user_id=user_id)
        .order_by('-timestamp', '-id')[:limit]
    )
