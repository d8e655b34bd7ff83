"""
Sound Server Adapter for mutewatch
Callback-style client over a pulsectl connection, driven by its own mainloop thread
"""

import threading
import logging
from typing import Callable, Iterable, List, Optional, Tuple

import pulsectl

from .models import (
    ContextState,
    Facility,
    ListResult,
    Operation,
    ServerInfo,
    SourceRecord,
)

log = logging.getLogger(__name__)

NotificationCallback = Callable[[Facility, Operation, int], None]
# (run the request, answer the callback with a failure)
Request = Tuple[Callable[[], None], Callable[[], None]]


def _to_enum(enum_cls, value):
    """Map a pulsectl EnumValue onto one of our enums (None if unknown)"""
    for member in enum_cls:
        if value == member.value:
            return member
    return None


def source_record(info) -> SourceRecord:
    """Build a SourceRecord from a pulsectl PulseSourceInfo"""
    return SourceRecord(
        index=info.index,
        name=info.name if info.name else "unknown",
        muted=bool(info.mute),
    )


class PulseServer:
    """
    Sound server client with a threaded mainloop.

    The mainloop thread owns the pulsectl connection. Request methods only
    queue work and wake the loop; the loop executes queued requests and
    dispatches buffered notifications while holding ``lock``, so every
    callback runs on the mainloop thread with the lock held.

    Callers must hold ``lock`` around every request method and must release
    it before waiting for the reply.
    """

    def __init__(self, client_name: str = "source-listener", server: Optional[str] = None,
                 poll_interval: float = 0.5):
        """
        Initialize the adapter (does not connect).

        Args:
            client_name: Client name announced to the sound server
            server: Server address, None for the default
            poll_interval: Upper bound on how long a queued request can wait
                for the loop to notice it
        """
        self.client_name = client_name
        self.server = server
        self.poll_interval = poll_interval

        # Processing lock
        self.lock = threading.RLock()

        self._pulse: Optional[pulsectl.Pulse] = None
        self._state = ContextState.UNCONNECTED
        self._state_callback: Optional[Callable[[], None]] = None
        self._notification_callback: Optional[NotificationCallback] = None
        self._disconnect_callback: Optional[Callable[[], None]] = None

        # Guarded by lock
        self._pending: List[Request] = []
        # Touched by the mainloop thread only
        self._raw_events: List[Tuple[Facility, Operation, int]] = []

        # Thread management
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.autospawn = False

    # ========================================================================
    # CONNECTION
    # ========================================================================

    def get_state(self) -> ContextState:
        return self._state

    def set_state_callback(self, callback: Optional[Callable[[], None]]):
        """Register (or clear with None) the state-change notifier"""
        self._state_callback = callback

    def set_disconnect_callback(self, callback: Optional[Callable[[], None]]):
        """
        Register (or clear with None) a callback for losing the connection
        after it was ready. Runs once, on the mainloop thread, lock held.
        """
        self._disconnect_callback = callback

    def connect(self, autospawn: bool = False):
        """
        Start connecting. Returns immediately; progress is reported through
        the state callback.
        """
        if self.running:
            log.warning("PulseServer already running")
            return

        self.autospawn = autospawn
        self._pulse = pulsectl.Pulse(self.client_name, server=self.server,
                                     connect=False, threading_lock=True)
        self.running = True
        self.thread = threading.Thread(
            target=self._run,
            name="PulseMainloop",
            daemon=True
        )
        self.thread.start()

    def close(self):
        """Stop the mainloop thread and close the connection"""
        if self.running:
            log.debug("PulseServer: Stopping...")
            self.running = False
            self._wakeup()
            if self.thread and self.thread.is_alive() and self.thread is not threading.current_thread():
                self.thread.join(timeout=5)
                if self.thread.is_alive():
                    log.warning("Mainloop thread did not stop cleanly")

        if self._pulse is not None:
            self._pulse.close()
            self._pulse = None

    def _set_state(self, state: ContextState):
        with self.lock:
            self._state = state
            log.debug(f"Context state: {state.value}")
            if self._state_callback:
                self._state_callback()

    # ========================================================================
    # MAINLOOP
    # ========================================================================

    def _run(self):
        """Mainloop: connect, then alternate between polling and dispatching"""
        try:
            self._mainloop()
        finally:
            # Nobody will run these any more
            with self.lock:
                self._fail_pending()
            log.debug("PulseServer: Mainloop stopped")

    def _mainloop(self):
        self._set_state(ContextState.CONNECTING)
        try:
            self._pulse.connect(autospawn=self.autospawn)
        except pulsectl.PulseError as e:
            log.error(f"Failed to connect to sound server: {e}")
            self.running = False
            self._set_state(ContextState.FAILED)
            return

        self._pulse.event_callback_set(self._on_raw_event)
        self._set_state(ContextState.READY)

        while self.running:
            with self.lock:
                self._dispatch()
            if not self.running:
                break
            try:
                # A wakeup that races the poll entry is seen after poll_interval
                self._pulse.event_listen(timeout=self.poll_interval)
            except pulsectl.PulseDisconnected:
                self._disconnected("Sound server disconnected")

    def _on_raw_event(self, ev):
        """pulsectl event callback: buffer and return from event_listen"""
        facility = _to_enum(Facility, ev.facility)
        operation = _to_enum(Operation, ev.t)
        if facility is None or operation is None:
            log.debug(f"Unrecognised event: {ev.facility} {ev.t} {ev.index}")
        else:
            self._raw_events.append((facility, operation, ev.index))
        raise pulsectl.PulseLoopStop

    def _dispatch(self):
        """Run queued requests, then deliver buffered notifications (lock held)"""
        pending, self._pending = self._pending, []
        for request, fail in pending:
            # An earlier request in this batch may have lost the connection
            if self.running:
                request()
            else:
                fail()

        raw_events, self._raw_events = self._raw_events, []
        for facility, operation, index in raw_events:
            log.debug(f"Subscribe callback: {facility.value}, {operation.value}, {index}")
            if self._notification_callback:
                self._notification_callback(facility, operation, index)

    def _submit(self, request: Callable[[], None], fail: Callable[[], None]):
        if not self.running:
            log.debug("Mainloop not running, failing request")
            fail()
            return
        self._pending.append((request, fail))
        self._wakeup()

    def _fail_pending(self):
        pending, self._pending = self._pending, []
        for _, fail in pending:
            fail()

    def _wakeup(self):
        if self._pulse is not None:
            self._pulse.event_listen_stop()

    def _disconnected(self, message: str = "Sound server disconnected during request"):
        with self.lock:
            if self._state is ContextState.TERMINATED:
                return
            log.error(message)
            self.running = False
            self._set_state(ContextState.TERMINATED)
            if self._disconnect_callback:
                self._disconnect_callback()

    # ========================================================================
    # REQUESTS (call with lock held)
    # ========================================================================

    def list_sources(self, callback: Callable[[ListResult], None]):
        """Deliver every source as ITEM, then END (or ERROR)"""
        self._submit(lambda: self._do_list_sources(callback),
                     lambda: callback(ListResult.error()))

    def describe_source(self, index: int, callback: Callable[[ListResult], None]):
        """Deliver ITEM then END, END alone if the source does not exist, or ERROR"""
        self._submit(lambda: self._do_describe_source(index, callback),
                     lambda: callback(ListResult.error()))

    def server_info(self, callback: Callable[[Optional[ServerInfo]], None]):
        """Deliver one ServerInfo, or None if the request failed"""
        self._submit(lambda: self._do_server_info(callback),
                     lambda: callback(None))

    def subscribe(self, facilities: Iterable[Facility], callback: Callable[[bool], None]):
        """Subscribe to notifications for the given facilities; ack with success flag"""
        facilities = list(facilities)
        self._submit(lambda: self._do_subscribe(facilities, callback),
                     lambda: callback(False))

    def set_notification_callback(self, callback: Optional[NotificationCallback]):
        """Register (or clear with None) the notification callback"""
        self._notification_callback = callback

    def _do_list_sources(self, callback):
        try:
            sources = self._pulse.source_list()
        except pulsectl.PulseDisconnected:
            self._disconnected()
            callback(ListResult.error())
            return
        except pulsectl.PulseError as e:
            log.error(f"Failed to retrieve source list: {e}")
            callback(ListResult.error())
            return

        for info in sources:
            callback(ListResult.item(source_record(info)))
        callback(ListResult.end())

    def _do_describe_source(self, index, callback):
        try:
            info = self._pulse.source_info(index)
        except pulsectl.PulseIndexError:
            callback(ListResult.end())
            return
        except pulsectl.PulseDisconnected:
            self._disconnected()
            callback(ListResult.error())
            return
        except pulsectl.PulseError as e:
            log.error(f"Failed to retrieve source {index}: {e}")
            callback(ListResult.error())
            return

        callback(ListResult.item(source_record(info)))
        callback(ListResult.end())

    def _do_server_info(self, callback):
        try:
            info = self._pulse.server_info()
        except pulsectl.PulseDisconnected:
            self._disconnected()
            callback(None)
            return
        except pulsectl.PulseError as e:
            log.error(f"Failed to retrieve server info: {e}")
            callback(None)
            return

        log.debug(f"Server info: {info}")
        callback(ServerInfo(default_source_name=info.default_source_name))

    def _do_subscribe(self, facilities, callback):
        try:
            self._pulse.event_mask_set(*[f.value for f in facilities])
        except pulsectl.PulseError as e:
            log.error(f"Failed to subscribe: {e}")
            callback(False)
            return
        callback(True)
