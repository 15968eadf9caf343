"""In-process change feed.

Persistence services publish a change after every committed write; observers
subscribe by topic. Topics mirror the collections the UI listens to:

    session:{session_id}
    conversations:phone:{phone_number}
    conversation:{conversation_id}:messages

Publishing never waits on listeners. Each subscription owns a queue drained
by its own task, so changes reach one listener in publish order while a
slow listener only delays itself.
"""
import asyncio
import itertools
import logging
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger(__name__)

Listener = Callable[[Dict[str, Any]], Awaitable[None]]
Unsubscribe = Callable[[], None]

_CLOSED = object()


def session_topic(session_id: str) -> str:
    return f"session:{session_id}"


def phone_conversations_topic(phone_number: str) -> str:
    return f"conversations:phone:{phone_number}"


def conversation_messages_topic(conversation_id: str) -> str:
    return f"conversation:{conversation_id}:messages"


class Subscription:
    """One listener with its pending changes and delivery task."""

    def __init__(self, topic: str, token: int, listener: Listener):
        self.topic = topic
        self.token = token
        self.listener = listener
        self.queue: asyncio.Queue = asyncio.Queue()
        self.active = True
        self.pending = 0
        self.task: asyncio.Task = asyncio.get_running_loop().create_task(self._run())

    def offer(self, change: Dict[str, Any]) -> None:
        if self.active:
            self.pending += 1
            self.queue.put_nowait(change)

    def close(self) -> None:
        """Stop delivery; changes still queued are dropped."""
        if not self.active:
            return
        self.active = False
        self.queue.put_nowait(_CLOSED)

    async def _run(self) -> None:
        while True:
            change = await self.queue.get()
            try:
                if change is _CLOSED:
                    return
                try:
                    if self.active:
                        await self.listener(change)
                finally:
                    self.pending -= 1
            except Exception as e:
                logger.error(
                    f"[FEED] Listener failed on {self.topic} - "
                    f"Error: {type(e).__name__}: {str(e)}",
                    exc_info=True,
                )
            finally:
                self.queue.task_done()


class ChangeFeed:
    """Topic based publish/subscribe for committed changes."""

    def __init__(self):
        self._subscriptions: Dict[str, Dict[int, Subscription]] = defaultdict(dict)
        self._tokens = itertools.count()

    def subscribe(self, topic: str, listener: Listener) -> Unsubscribe:
        """Register a listener and return a callable that removes it.

        Must be called from inside the running event loop.
        """
        token = next(self._tokens)
        subscription = Subscription(topic, token, listener)
        self._subscriptions[topic][token] = subscription
        logger.debug(f"[FEED] Subscribed to {topic} (token {token})")

        def unsubscribe() -> None:
            subscriptions = self._subscriptions.get(topic)
            if subscriptions is None or token not in subscriptions:
                return
            subscriptions.pop(token).close()
            if not subscriptions:
                del self._subscriptions[topic]
            logger.debug(f"[FEED] Unsubscribed from {topic} (token {token})")

        return unsubscribe

    def listener_count(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, {}))

    async def publish(self, topic: str, change: Dict[str, Any]) -> None:
        """Queue a change for every listener subscribed to the topic."""
        for subscription in list(self._subscriptions.get(topic, {}).values()):
            subscription.offer(change)

    async def wait_idle(self) -> None:
        """Wait until every queued change has been delivered.

        Repeats while listeners keep publishing follow-up changes.
        """
        while True:
            busy = [
                s for subs in self._subscriptions.values() for s in subs.values() if s.pending
            ]
            if not busy:
                return
            await asyncio.gather(*(s.queue.join() for s in busy))

    async def close(self) -> None:
        """Stop every delivery task."""
        subscriptions = [s for subs in self._subscriptions.values() for s in subs.values()]
        self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.close()
        tasks = [s.task for s in subscriptions]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


# Module-level feed shared by the whole process
change_feed = ChangeFeed()


def get_change_feed() -> ChangeFeed:
    """Dependency returning the process-wide change feed."""
    return change_feed
