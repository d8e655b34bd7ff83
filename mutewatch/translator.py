"""
Subscription Event Translator for mutewatch
Turns raw sound server notifications into listener events
"""

import logging
from typing import Optional

from .events import Event, EventChannel, EventType
from .models import Facility, Operation

log = logging.getLogger(__name__)

SOURCE_EVENTS = {
    Operation.CHANGE: EventType.SOURCE_CHANGED,
    Operation.NEW: EventType.SOURCE_ADDED,
    Operation.REMOVE: EventType.SOURCE_REMOVED,
}

# Sources toggle their mute state, default source changes are server changes
SUBSCRIBED_FACILITIES = (Facility.SOURCE, Facility.SERVER)


def translate(facility: Facility, operation: Operation, index: int) -> Optional[Event]:
    """Map a (facility, operation, index) notification to an Event, or None to drop it"""
    if facility is Facility.SOURCE:
        return Event(SOURCE_EVENTS[operation], index)
    if facility is Facility.SERVER:
        return Event(EventType.SERVER_CHANGED)
    return None


class SubscriptionTranslator:
    """
    Notification callback for the sound server.

    Runs on the server's mainloop thread with its processing lock held, so
    it must only translate and enqueue: no requests to the server, no access
    to listener state.
    """

    def __init__(self, channel: EventChannel):
        self.channel = channel

    def __call__(self, facility: Facility, operation: Operation, index: int):
        event = translate(facility, operation, index)
        if event is None:
            log.debug(f"Unrelated event: {facility.value}")
            return
        if event.type is EventType.SERVER_CHANGED:
            log.info("Server change event")
        self.channel.put(event)

    def connection_lost(self):
        """Disconnect callback: hand the lost connection to the listener as an event"""
        self.channel.put(Event(EventType.CONNECTION_LOST))


def subscribe(server, channel: EventChannel) -> SubscriptionTranslator:
    """
    Register the translator and subscribe to source and server notifications.
    A lost connection is reported to the listener through the same channel.
    Call once, before the listener loop starts.
    """
    translator = SubscriptionTranslator(channel)

    def on_ack(success: bool):
        log.debug(f"Subscribing to source changes {'succeeded' if success else 'failed'}")

    log.debug("Configuring context subscriber")
    with server.lock:
        server.set_notification_callback(translator)
        server.set_disconnect_callback(translator.connection_lost)
        server.subscribe(SUBSCRIBED_FACILITIES, on_ack)
    return translator
