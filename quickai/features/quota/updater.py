"""Free usage counter updates after a successful generation."""
from typing import Optional

from quickai.core.errors import AppError
from quickai.core.logging import log_event
from quickai.features.identity.store import IdentityStore
from quickai.models.user import UserAccount


async def increment_free_usage(store: IdentityStore, account: UserAccount, *, operation: str) -> Optional[int]:
    """
    Add one unit of free usage for free-plan callers.

    Premium accounts are left untouched. The increment runs after the
    creation is stored and is not transactional with it; a failure here is
    logged and the request still succeeds, under-counting usage.

    Returns the new counter value, or None when nothing was incremented.
    """
    if account.is_premium:
        return None

    try:
        new_value = await store.increment(account.user_id)
    except Exception as e:
        log_event(
            "error",
            f"quota.increment_failed: {e}",
            user_id=account.user_id,
            operation=operation,
            error_code=getattr(e, "code", "increment_failed"),
            exc_info=not isinstance(e, AppError),
        )
        return None

    log_event(
        "info",
        "quota.incremented",
        user_id=account.user_id,
        operation=operation,
        extra={"free_usage": new_value},
    )
    return new_value
