"""Fire-and-forget publication of updated query views.

The correlation core writes each freshly derived view into a
`ViewPublisher`; subscribers (the WebSocket endpoint, tests, the replay
script) receive it synchronously in the publishing thread. A subscriber
that raises is logged and skipped, and publish never raises, retries or
waits for acknowledgement.
"""

import asyncio
import threading
from typing import Any, Callable

from querylens.lib.metrics import record_notification_dropped
from querylens.lib.structured_logger import StructuredLogger

logger = StructuredLogger(__name__)

ViewHandler = Callable[[Any], None]


class ViewPublisher:
  """Thread-safe pub-sub for query view updates.

  Usage:
      publisher = ViewPublisher()
      publisher.subscribe(lambda view: print(view.query_id))
      publisher.publish(view)
  """

  def __init__(self) -> None:
    self._lock = threading.Lock()
    self._handlers: list[ViewHandler] = []

  def subscribe(self, handler: ViewHandler) -> None:
    """Register *handler* to receive every published view."""
    with self._lock:
      self._handlers.append(handler)

  def unsubscribe(self, handler: ViewHandler) -> bool:
    """Remove *handler*. Returns True if it was registered."""
    with self._lock:
      try:
        self._handlers.remove(handler)
        return True
      except ValueError:
        return False

  def subscriber_count(self) -> int:
    with self._lock:
      return len(self._handlers)

  def publish(self, view: Any) -> None:
    """Deliver *view* to every subscriber, best effort."""
    with self._lock:
      snapshot = list(self._handlers)

    for handler in snapshot:
      try:
        handler(view)
      except Exception:
        record_notification_dropped()
        logger.warning(
          'Query view subscriber failed',
          exc_info=True,
          handler=repr(handler),
        )


class AsyncQueueSubscriber:
  """Bridges publisher threads into an asyncio queue owned by one event loop.

  Updates are handed to the loop with `call_soon_threadsafe`; when the
  queue is full the update is dropped and counted.
  """

  def __init__(self, loop: asyncio.AbstractEventLoop, maxsize: int = 100):
    self.loop = loop
    self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

  def _put(self, item: Any) -> None:
    try:
      self.queue.put_nowait(item)
    except asyncio.QueueFull:
      record_notification_dropped()
      logger.debug('WebSocket queue full, dropping query view update')

  def __call__(self, view: Any) -> None:
    if self.loop.is_closed():
      record_notification_dropped()
      return
    self.loop.call_soon_threadsafe(self._put, view)

  async def get(self) -> Any:
    return await self.queue.get()
