"""
Event System for mutewatch
Defines domain events and the channels that carry them between threads
"""

import queue
import threading
from enum import Enum
from dataclasses import dataclass
from typing import Any, Optional, Dict


class EventType(Enum):
    """Types of events delivered to the listener"""

    # Source notifications
    SOURCE_CHANGED = "source_changed"
    SOURCE_ADDED = "source_added"
    SOURCE_REMOVED = "source_removed"

    # Server notifications (default source may have moved)
    SERVER_CHANGED = "server_changed"

    # Connection to the sound server dropped after it was ready
    CONNECTION_LOST = "connection_lost"

    # Process control
    SHUTDOWN_REQUESTED = "shutdown_requested"


@dataclass
class Event:
    """
    A single domain event for the listener.
    Source events carry the server-assigned source index.
    """
    type: EventType
    index: Optional[int] = None

    def __repr__(self):
        index_str = f", index={self.index}" if self.index is not None else ""
        return f"Event({self.type.value}{index_str})"


class EventChannel:
    """
    Unbounded FIFO from the notification thread (and signal handlers) to the
    listener. put() never blocks and never drops.

    Stats count deliveries per event type, events still queued, and how many
    the listener applied or failed on.
    """

    def __init__(self):
        self._queue = queue.Queue()
        self._lock = threading.Lock()
        self._received = {event_type.value: 0 for event_type in EventType}
        self._pending = 0
        self._processed = 0
        self._errors = 0

    def put(self, event: Event):
        self._queue.put(event)
        with self._lock:
            self._received[event.type.value] += 1
            self._pending += 1

    def get(self, block: bool = True, timeout: Optional[float] = None) -> Event:
        """
        Get next event in delivery order.

        Raises:
            queue.Empty: If channel is empty and not blocking (or timed out)
        """
        event = self._queue.get(block=block, timeout=timeout)
        with self._lock:
            self._pending -= 1
        return event

    def empty(self) -> bool:
        return self._queue.empty()

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'received': dict(self._received),
                'pending': self._pending,
                'processed': self._processed,
                'errors': self._errors
            }

    def mark_processed(self):
        with self._lock:
            self._processed += 1

    def mark_error(self):
        with self._lock:
            self._errors += 1


class ResponseChannel:
    """
    Private reply path for one request to the sound server.

    Create a fresh channel per request so replies to concurrent requests
    never cross. put() is called from the server's mainloop thread, get()
    blocks the requesting thread.
    """

    def __init__(self):
        self._queue = queue.Queue()

    def put(self, item: Any):
        self._queue.put(item)

    def get(self) -> Any:
        return self._queue.get()
