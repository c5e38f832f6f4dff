"""Push dispatch service.

Delivery to FCM is not wired yet; the dispatcher records what would be sent
so the throttle and queue plumbing can run end-to-end.
"""

from __future__ import annotations

import logging

from fcm_worker.schemas.push import TokensPush, TopicPush

logger = logging.getLogger(__name__)


class PushDispatcher:
    """Sends push messages (placeholder implementation)."""

    def __init__(self) -> None:
        self._sent = 0

    @property
    def sent(self) -> int:
        return self._sent

    async def dispatch(self, message: TopicPush | TokensPush) -> None:
        """Send one push message.

        Args:
            message: Validated topic or tokens push.
        """
        if isinstance(message, TopicPush):
            logger.info(
                "push.topic",
                extra={"topic": message.topic, "title_chars": len(message.title)},
            )
        else:
            logger.info(
                "push.tokens",
                extra={"token_count": len(message.tokens), "title_chars": len(message.title)},
            )
        self._sent += 1
