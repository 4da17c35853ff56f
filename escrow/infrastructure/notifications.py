"""Notifier that writes outbound events to the application log."""

from __future__ import annotations

import json
import logging

from escrow.domain.notifications import NotificationEvent

logger = logging.getLogger("escrow.notifications")


class LoggingNotifier:
    """Stands in for the delivery service; events are logged as JSON."""

    async def publish(self, event: NotificationEvent) -> None:
        logger.info("notification %s", json.dumps(event.to_payload(), default=str, sort_keys=True))
