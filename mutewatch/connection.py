"""
Connection lifecycle for mutewatch
"""

import logging

from .errors import ConnectionFailed, ConnectionTerminated
from .events import ResponseChannel
from .models import ContextState

log = logging.getLogger(__name__)


def connect(server, autospawn: bool = False):
    """
    Connect to the sound server and block until the connection is ready.

    The state notifier is registered before the connect request is issued so
    the first transition cannot be missed. Failures are not retried.

    Args:
        server: Sound server client (see mutewatch.pulse.PulseServer)
        autospawn: Let the client library start a server if none is running

    Raises:
        ConnectionFailed: The server rejected the connection
        ConnectionTerminated: The connection was closed before it was ready
    """
    notifications = ResponseChannel()

    log.debug("Registering context state callback")
    with server.lock:
        server.set_state_callback(lambda: notifications.put(True))
        server.connect(autospawn=autospawn)

    while True:
        log.debug("Waiting for context state-change callback")
        notifications.get()

        state = server.get_state()
        if state.is_transitional:
            log.debug(f"Context state: {state.value}")
            continue
        if state is ContextState.READY:
            log.debug(f"Context state: {state.value}")
            break
        if state is ContextState.FAILED:
            raise ConnectionFailed()
        raise ConnectionTerminated()

    # Once connected, no further interest in state changes
    with server.lock:
        server.set_state_callback(None)
