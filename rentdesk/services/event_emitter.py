"""
Fire-and-forget delivery of booking lifecycle events to the automation
dispatcher.

Emitters never raise: the booking operation that produced the event has
already been committed, and its outcome must not depend on automations.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from .automation_service import AutomationDispatcher, TriggerResult
from .job_queue import JobQueue

logger = logging.getLogger(__name__)


def _dispatch(session_factory: Callable[[], Session], event: str, data: Dict[str, Any]) -> TriggerResult:
    db = session_factory()
    try:
        return AutomationDispatcher(db, JobQueue(db)).trigger(event, data)
    finally:
        db.close()


def _log_outcome(event: str, future: Future):
    exc = future.exception()
    if exc is not None:
        logger.error(f"Automation dispatch for {event} failed: {exc}")
        return

    result = future.result()
    for error in result.errors:
        logger.warning(f"Automation error on {event}: {error}")


class AutomationEventEmitter:
    """
    Runs the dispatcher on a background thread pool with its own session.

    The returned future is detached; outcomes are only logged.
    """

    def __init__(self, session_factory: Callable[[], Session], max_workers: int = 4):
        self.session_factory = session_factory
        self.executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="automation")

    def emit(self, event: str, data: Dict[str, Any]) -> Optional[Future]:
        try:
            future = self.executor.submit(_dispatch, self.session_factory, event, dict(data))
        except Exception as e:
            logger.error(f"Could not schedule automation dispatch for {event}: {e}")
            return None

        future.add_done_callback(lambda f: _log_outcome(event, f))
        return future

    def shutdown(self, wait: bool = True):
        self.executor.shutdown(wait=wait)


class InlineEventEmitter:
    """
    Dispatches synchronously on the caller's session.

    Used by the job worker and in tests; failures are still only logged.
    """

    def __init__(self, db: Session):
        self.db = db
        self.last_result: Optional[TriggerResult] = None

    def emit(self, event: str, data: Dict[str, Any]) -> Optional[TriggerResult]:
        try:
            self.last_result = AutomationDispatcher(self.db, JobQueue(self.db)).trigger(event, data)
        except Exception as e:
            logger.error(f"Automation dispatch for {event} failed: {e}")
            self.db.rollback()
            return None

        for error in self.last_result.errors:
            logger.warning(f"Automation error on {event}: {error}")
        return self.last_result
