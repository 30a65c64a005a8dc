"""Fire-and-forget push notifications.

Engine services never wait on delivery: `Notifier` schedules each send as an
asyncio task, logs failures and moves on. The transport is pluggable through
`NotificationDispatcher`.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional

import config
from infrastructure.redis import RedisClient
from utils.validation import sanitize_json

logger = logging.getLogger(__name__)


class NotificationType:
    GAME_INVITE = "game_invite"
    GAME_STARTED = "game_started"
    TAG_WARNING = "tag_warning"
    TAGGED = "tagged"
    TRIPWIRE_TRIGGERED = "tripwire_triggered"
    ELIMINATED = "eliminated"
    NUDGE = "nudge"
    OFFLINE_WARNING = "offline_warning"
    OFFLINE_STRIKE = "offline_strike"
    PLAYER_RETURNED = "player_returned"


class NotificationDispatcher(ABC):

    @abstractmethod
    async def send(self, recipient_ids: list[str], title: str, body: str, payload: dict) -> None:
        """Deliver one notification to every recipient."""

    async def close(self) -> None:
        pass


class LoggingDispatcher(NotificationDispatcher):
    """Writes notifications to the log. Used when no push transport is configured."""

    async def send(self, recipient_ids, title, body, payload):
        logger.info(f"[NOTIFY] -> {recipient_ids}: {title} | {body} | {payload}")


class RedisDispatcher(NotificationDispatcher):
    """Publishes notifications on a Redis channel for the push gateway to deliver."""

    def __init__(self, client: RedisClient, channel: str = config.NOTIFICATION_CHANNEL):
        self.client = client
        self.channel = channel

    async def send(self, recipient_ids, title, body, payload):
        message = sanitize_json({
            "recipients": list(recipient_ids),
            "title": title,
            "body": body,
            "payload": payload,
        })
        await self.client.init()
        await self.client.publish_json(self.channel, message)

    async def close(self):
        await self.client.close()


class Notifier:
    """Schedules dispatches without blocking the caller.

    `drain()` waits for everything in flight; used at shutdown and in tests.
    """

    def __init__(self, dispatcher: NotificationDispatcher, *, timeout: float = config.NOTIFICATION_TIMEOUT_SEC):
        self.dispatcher = dispatcher
        self.timeout = timeout
        self._pending: set[asyncio.Task] = set()

    def notify(self, recipient_ids: Iterable[str], title: str, body: str, payload: Optional[dict] = None) -> None:
        recipients = sorted(set(recipient_ids))
        if not recipients:
            return
        task = asyncio.create_task(self._deliver(recipients, title, body, payload or {}))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, recipients: list[str], title: str, body: str, payload: dict) -> None:
        try:
            await asyncio.wait_for(
                self.dispatcher.send(recipients, title, body, payload),
                timeout=self.timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # delivery is best effort; never surfaces to the engine
            logger.warning(
                f"[NOTIFY] Failed to deliver {payload.get('type')} to {recipients}: {exc!r}",
                exc_info=True,
            )

    async def drain(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        await self.dispatcher.close()

    # ------ message helpers ------

    def game_invite(self, recipient_ids, *, game_id: str, game_title: str, invited_by: str) -> None:
        self.notify(
            recipient_ids,
            "Game invite",
            f"{invited_by} invited you to {game_title}",
            {"type": NotificationType.GAME_INVITE, "game_id": game_id},
        )

    def game_started(self, recipient_ids, *, game_id: str, game_title: str) -> None:
        self.notify(
            recipient_ids,
            "Game on!",
            f"{game_title} has started. Stay hidden.",
            {"type": NotificationType.GAME_STARTED, "game_id": game_id},
        )

    def tag_warning(self, player_id: str, *, game_id: str, game_title: str, tagger_name: str) -> None:
        self.notify(
            [player_id],
            "Tag incoming",
            f"{tagger_name} just tagged near you in {game_title}",
            {"type": NotificationType.TAG_WARNING, "game_id": game_id},
        )

    def tagged(self, player_id: str, *, game_id: str, tagger_name: str, strikes: int, source: str = "tag") -> None:
        kind = NotificationType.TRIPWIRE_TRIGGERED if source == "tripwire" else NotificationType.TAGGED
        headline = "Tripwire!" if source == "tripwire" else "You've been tagged!"
        self.notify(
            [player_id],
            headline,
            f"{tagger_name} got you. {strikes} strike(s) left.",
            {"type": kind, "game_id": game_id, "strikes": strikes},
        )

    def eliminated(self, recipient_ids, *, game_id: str, player_name: str) -> None:
        self.notify(
            recipient_ids,
            "Eliminated",
            f"{player_name} is out of the game",
            {"type": NotificationType.ELIMINATED, "game_id": game_id},
        )

    def nudge(self, recipient_ids, *, game_id: str, game_title: str, nudged_by: str) -> None:
        self.notify(
            recipient_ids,
            "Nudge",
            f"{nudged_by} nudged you in {game_title}. Open the app within "
            f"{config.NUDGE_RESPONSE_WINDOW_HOURS} hours or lose a strike.",
            {"type": NotificationType.NUDGE, "game_id": game_id},
        )

    def offline_warning(self, player_id: str, *, game_id: str, game_title: str) -> None:
        self.notify(
            [player_id],
            "Are you still there?",
            f"Open the app in the next hour or lose a strike in {game_title}.",
            {"type": NotificationType.OFFLINE_WARNING, "game_id": game_id},
        )

    def offline_strike(self, recipient_ids, *, game_id: str, player_name: str, strikes: int) -> None:
        self.notify(
            recipient_ids,
            "Offline penalty",
            f"{player_name} was offline for {config.OFFLINE_PENALTY_HOURS} hours and lost a strike "
            f"({strikes} left).",
            {"type": NotificationType.OFFLINE_STRIKE, "game_id": game_id, "strikes": strikes},
        )

    def player_returned(self, recipient_ids, *, game_id: str, player_name: str) -> None:
        self.notify(
            recipient_ids,
            "Back online",
            f"{player_name} is back on the map",
            {"type": NotificationType.PLAYER_RETURNED, "game_id": game_id},
        )


def build_dispatcher(backend: str = config.NOTIFICATION_BACKEND) -> NotificationDispatcher:
    if backend == "redis":
        return RedisDispatcher(RedisClient.from_url(config.REDIS_URL))
    if backend != "log":
        logger.warning(f"[NOTIFY] Unknown backend {backend!r}; using log dispatcher")
    return LoggingDispatcher()
