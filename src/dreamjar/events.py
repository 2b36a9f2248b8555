"""Collaborator interfaces for monitoring, notification and event fan-out.

None of these may fail a primary state transition: callers go through
``Monitor.guard`` (or the bus's own handler isolation), which logs and
reports the failure instead of raising.
"""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Optional

from .ledger import AuditLedgerWriter

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, dict[str, Any]], None]

WISH_RESOLVED = "wish_resolved"
VOTE_CAST = "vote_cast"
PROPOSAL_EXECUTED = "proposal_executed"


class Monitor:
    """Audit and error reporting sink.

    ``audit`` logs the event and, when an audit ledger is configured,
    appends it there as well.
    """

    def __init__(self, ledger: Optional[AuditLedgerWriter] = None):
        self.ledger = ledger

    def audit(self, event_name: str, data: dict[str, Any], subject_id: Optional[str] = None) -> None:
        logger.info(f"audit {event_name}: {data}")
        if self.ledger is not None:
            try:
                self.ledger.append_event(event_name, data, subject_id=subject_id)
            except OSError as e:
                self.error(f"Failed to append audit event {event_name}", e)

    def error(self, message: str, err: BaseException) -> None:
        logger.warning(f"{message}: {err}")

    def guard(self, description: str, call: Callable[[], Any]) -> None:
        """Run a best-effort collaborator call; failures are reported, never raised."""
        try:
            call()
        except Exception as e:
            self.error(f"Failed to {description}", e)


class Notifier(ABC):
    """Best-effort user notification channel."""

    @abstractmethod
    def notify(self, user_id: str, kind: str, message: str) -> None:
        pass


class LoggingNotifier(Notifier):
    """Notifier that only records notifications in the log."""

    def notify(self, user_id: str, kind: str, message: str) -> None:
        logger.info(f"notify {user_id} [{kind}]: {message}")


class EventBus(ABC):
    """Outbound event interface consumed by a separate transport layer."""

    @abstractmethod
    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        pass


class InMemoryEventBus(EventBus):
    """Synchronous in-process bus.

    Handlers run in subscription order; a failing handler is logged and
    does not stop the others.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        self._handlers[event_name].append(handler)

    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(event_name, payload)
            except Exception as e:
                logger.warning(f"Event handler for {event_name} failed: {e}")
