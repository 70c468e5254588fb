"""
Background task runner using Python threads.

Uses independent DB sessions for background work to avoid
session lifecycle issues with the request-scoped session.

Usage:
    from scheduling.services.background_task_runner import run_in_background

    # target_fn signature: (db_session, *args, **kwargs)
    thread = run_in_background(my_background_fn, arg1, arg2)
"""
import logging
import threading

from database import get_db_manager

logger = logging.getLogger(__name__)


def run_in_background(target_fn, *args, **kwargs):
    """
    Run a function in a background thread with its own DB session.

    Exceptions from the target are logged and dropped; the session is
    always closed.

    Args:
        target_fn: Function to run. Signature: (db_session, *args, **kwargs)
        *args, **kwargs: Additional arguments passed to target_fn

    Returns:
        threading.Thread instance
    """
    def wrapper():
        session = get_db_manager().session_factory()
        try:
            target_fn(session, *args, **kwargs)
        except Exception as e:
            session.rollback()
            logger.error(f"Background task {target_fn.__name__} failed: {e}", exc_info=True)
        finally:
            session.close()

    thread = threading.Thread(target=wrapper, daemon=True)
    thread.start()
    logger.info(f"Launched background task: {target_fn.__name__}")
    return thread


def dispatch_outbox(db_session, limit=None):
    """Background target that drains the notification outbox."""
    from scheduling.services.notification_service import NotificationDispatcher

    dispatcher = NotificationDispatcher(db_session)
    if limit is None:
        return dispatcher.dispatch_pending()
    return dispatcher.dispatch_pending(limit)
