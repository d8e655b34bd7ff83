"""
Source Listener for mutewatch
Single-threaded state machine that owns the source cache and reports mute changes
"""

import threading
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any

from .errors import ConnectionTerminated, MuteWatchError
from .events import Event, EventChannel, EventType
from .models import SourceRecord, Sources
from .reporter import Reporter
from .sources import DefaultSourceResolver, SourceSynchronizer

log = logging.getLogger(__name__)


@dataclass
class ListenerState:
    """Cached sources plus the index of the default one"""
    sources: Sources = field(default_factory=dict)
    default_id: Optional[int] = None

    def default_source(self) -> Optional[SourceRecord]:
        # default_id may point at a source removed since the last resolution
        if self.default_id is None:
            return None
        return self.sources.get(self.default_id)

    def default_muted(self) -> Optional[bool]:
        source = self.default_source()
        return source.muted if source else None


class SourceListener:
    """
    Single-threaded listener that manages all source state.
    All state mutations happen in the listener thread only.

    Events arrive on the EventChannel from the subscription translator (and
    from signal handlers). Each event is applied, then the default source's
    mute flag before and after is handed to the Reporter.
    """

    def __init__(self, server, channel: Optional[EventChannel] = None,
                 refresh_on_add: bool = False, reporter: Optional[Reporter] = None):
        """
        Initialize the listener.

        Args:
            server: Sound server client
            channel: Event channel to consume (created if not given)
            refresh_on_add: Fetch a source as soon as it is announced, instead
                of waiting for the change notification that follows
            reporter: Output sink for transition lines
        """
        # Dependencies
        self.server = server
        self.synchronizer = SourceSynchronizer(server)
        self.resolver = DefaultSourceResolver(server)
        self.reporter = reporter or Reporter()
        self.refresh_on_add = refresh_on_add

        # State (owned by listener thread - DO NOT MUTATE FROM OTHER THREADS)
        self.state: Optional[ListenerState] = None

        # Thread management
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.channel = channel or EventChannel()

        # Fatal error that ended the loop, if any
        self.error: Optional[BaseException] = None

        # Statistics
        self.stats = {
            'events_processed': 0,
            'lines_printed': 0,
            'refreshes': 0,
            'reloads': 0,
            'resolves': 0,
            'errors': 0
        }

    def load(self):
        """
        Build the initial state: full source fetch, then default resolution.
        Runs on the calling thread, before start().
        """
        sources = self.synchronizer.reload_all()
        self.stats['reloads'] += 1
        default_id = self._resolve(sources)
        self.state = ListenerState(sources=sources, default_id=default_id)

        source = self.state.default_source()
        if source:
            log.info(f"Default source: '{source.name}' ({'muted' if source.muted else 'unmuted'})")
        log.info(f"Loaded {len(sources)} sources")

    def start(self):
        """Start the listener thread"""
        if self.running:
            log.warning("Listener already running")
            return
        if self.state is None:
            self.load()

        self.running = True
        self.thread = threading.Thread(
            target=self._run,
            name="SourceListener",
            daemon=True
        )
        self.thread.start()
        log.info("SourceListener: Started")

    def request_shutdown(self):
        """Ask the loop to exit after the events already queued"""
        self.channel.put(Event(EventType.SHUTDOWN_REQUESTED))

    def stop(self):
        """Stop the listener thread gracefully"""
        if not self.running:
            return

        log.info("SourceListener: Stopping...")
        self.request_shutdown()
        self.wait(timeout=5)
        if self.thread and self.thread.is_alive():
            log.warning("Listener thread did not stop cleanly")

    def wait(self, timeout: Optional[float] = None):
        """Block until the listener thread exits (or timeout elapses)"""
        if not self.thread:
            return
        if timeout is not None:
            self.thread.join(timeout)
            return
        # Short joins keep the main thread responsive to signals
        while self.thread.is_alive():
            self.thread.join(1.0)

    def _run(self):
        """
        Main listener loop - processes events.
        This is the ONLY place where state is modified.
        """
        while self.running:
            event = self.channel.get()

            if event.type is EventType.SHUTDOWN_REQUESTED:
                log.info("Shutdown requested")
                self.channel.mark_processed()
                break

            try:
                self.process(event)
                self.channel.mark_processed()
            except MuteWatchError as e:
                log.error(f"Listener error while handling {event}: {e}")
                self._fail(e)
                break
            except Exception as e:
                log.error(f"Listener error while handling {event}: {e}", exc_info=True)
                self._fail(e)
                break

        self.running = False
        log.info("SourceListener: Stopped")

    def _fail(self, error: BaseException):
        self.error = error
        self.stats['errors'] += 1
        self.channel.mark_error()

    def process(self, event: Event) -> Optional[str]:
        """
        Apply one event and report the result (runs in listener thread only).

        Args:
            event: Event to process

        Returns:
            The line printed, if any
        """
        old_muted = self.state.default_muted()
        log.debug(f"Processing {event}; current source mute state: {old_muted}")

        self._apply(event)

        line = self.reporter.report(old_muted, self.state.default_muted())
        self.stats['events_processed'] += 1
        if line is not None:
            self.stats['lines_printed'] += 1
        return line

    def _apply(self, event: Event):
        if event.type is EventType.SERVER_CHANGED:
            self._handle_server_changed()
        elif event.type is EventType.SOURCE_ADDED:
            self._handle_source_added(event.index)
        elif event.type is EventType.SOURCE_CHANGED:
            self._handle_source_changed(event.index)
        elif event.type is EventType.SOURCE_REMOVED:
            self._handle_source_removed(event.index)
        elif event.type is EventType.CONNECTION_LOST:
            raise ConnectionTerminated()
        else:
            log.warning(f"Unknown event type: {event.type}")

    # ========================================================================
    # EVENT HANDLERS
    # ========================================================================

    def _handle_server_changed(self):
        """
        Default source may have moved: re-resolve, then reload every source
        so the new default's mute flag is current.
        """
        log.debug("Updating default source after server config change")
        self.state.default_id = self._resolve(self.state.sources)

        self.state.sources = self.synchronizer.reload_all()
        self.stats['reloads'] += 1

        # The default may be a source only the reload knows about
        if self.state.default_source() is None:
            self.state.default_id = self._resolve(self.state.sources)

        source = self.state.default_source()
        if source:
            log.debug(f"Default source is now: {source.name}")

    def _handle_source_added(self, index: int):
        if self.refresh_on_add:
            self._handle_source_changed(index)
            return
        # A change notification for the same index follows
        log.debug(f"New source added with index {index}")

    def _handle_source_changed(self, index: int):
        record = self.synchronizer.refresh_one(index)
        self.stats['refreshes'] += 1

        if record is None:
            log.debug(f"Source {index} vanished before it could be fetched")
            self._handle_source_removed(index)
            return

        self.state.sources[index] = record
        if self.state.default_source() is None:
            self.state.default_id = self._resolve(self.state.sources)

    def _handle_source_removed(self, index: int):
        if self.state.sources.pop(index, None) is None:
            log.debug(f"Source with index {index} removed, but it was not cached")
        else:
            log.debug(f"Source with index {index} removed")

    def _resolve(self, sources: Sources) -> Optional[int]:
        self.stats['resolves'] += 1
        return self.resolver.resolve(sources)

    # ========================================================================
    # READ METHODS
    # ========================================================================

    def get_state(self) -> Dict[str, Any]:
        """
        Get current state snapshot.

        Returns:
            Dictionary with sources, default index and its mute flag
        """
        state = self.state or ListenerState()
        return {
            'sources': dict(state.sources),
            'default_id': state.default_id,
            'default_muted': state.default_muted()
        }

    def get_stats(self) -> Dict[str, Any]:
        """Get listener statistics"""
        stats = self.stats.copy()
        stats['channel_stats'] = self.channel.get_stats()
        return stats
