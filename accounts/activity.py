import logging

from django.db import DatabaseError

from .models import ActivityLog

logger = logging.getLogger(__name__)


def log_activity(user, action: str, details=None):
    """
    Records an activity entry. Never raises: the audit trail must not break
    the action being audited.
    """
    authed = bool(user and getattr(user, "is_authenticated", False))
    try:
        return ActivityLog.objects.create(
            user=user if authed else None,
            user_email=user.email if authed else ActivityLog.ANONYMOUS_EMAIL,
            action=action[:500],
            details=details,
        )
    except DatabaseError:
        logger.exception("Could not record activity %r", action)
        return None
