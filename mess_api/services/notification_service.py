"""
Outbound account notifications.

Delivery (email/SMS) lives outside this service. Callers schedule these with
``fire_and_forget`` and never wait on, or fail because of, the outcome.
"""

import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def account_approved(self, email: str, name: str) -> None: ...

    async def account_denied(self, email: str, name: str, reason: Optional[str] = None) -> None: ...


class LoggingNotifier:
    """Default notifier: records the notification instead of sending it."""

    async def account_approved(self, email: str, name: str) -> None:
        logger.info("Account approved notification for %s <%s>", name, email)

    async def account_denied(self, email: str, name: str, reason: Optional[str] = None) -> None:
        logger.info("Account denied notification for %s <%s>: %s", name, email, reason or "no reason given")


_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    return _notifier


def set_notifier(notifier: Notifier) -> None:
    """Swap in a real delivery backend at startup."""
    global _notifier
    _notifier = notifier
