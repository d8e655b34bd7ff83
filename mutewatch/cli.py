"""
Command-line entry point for mutewatch
"""

import logging
import signal
import sys
from typing import List, Optional

from .config import BUILD, Config, load_config
from .connection import connect
from .errors import MuteWatchError, ShutdownRequested
from .events import EventChannel
from .listener import SourceListener
from .pulse import PulseServer
from .translator import subscribe

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(filename)s:%(lineno)d] (%(levelname)s): %(message)s"


def setup_logging(verbose: bool):
    """Log to stderr; stdout carries only the MUTED/UNMUTED lines"""
    logging.basicConfig(
        format=LOG_FORMAT,
        level=logging.DEBUG if verbose else logging.INFO,
        stream=sys.stderr,
    )


class SignalHandler:
    """
    SIGINT/SIGTERM ask the listener to shut down. Before the listener loop
    runs there is nothing to enqueue to, so startup is aborted instead.
    Once cleanup has begun, further signals are only logged.
    """

    def __init__(self, listener: SourceListener):
        self.listener = listener
        self.cleaning_up = False
        self.previous = {}

    def __call__(self, signum, frame):
        log.info(f"Received signal {signal.Signals(signum).name}")
        if self.cleaning_up:
            log.info("Already shutting down")
            return
        self.listener.request_shutdown()
        if not self.listener.running:
            raise ShutdownRequested()

    def install(self):
        for sig in (signal.SIGINT, signal.SIGTERM):
            self.previous[sig] = signal.signal(sig, self)
            log.debug(f"Configured signal handler for {sig.name}")

    def restore(self):
        for sig, handler in self.previous.items():
            signal.signal(sig, handler)
        self.previous = {}


def install_signal_handlers(listener: SourceListener) -> SignalHandler:
    handler = SignalHandler(listener)
    handler.install()
    return handler


def run(config: Config, server=None, install_signals: bool = True) -> int:
    """
    Connect, load sources, and report mute changes until shutdown.

    Returns:
        Process exit code: 0 on clean shutdown, 1 on fatal error
    """
    if server is None:
        server = PulseServer(config.client_name, server=config.server,
                             poll_interval=config.poll_interval)
    channel = EventChannel()
    listener = SourceListener(server, channel, refresh_on_add=config.refresh_on_add)
    handler = install_signal_handlers(listener) if install_signals else None

    try:
        log.info("Connecting to daemon")
        connect(server)
        log.debug("Connected to daemon")

        subscribe(server, channel)
        listener.load()
        listener.start()
        listener.wait()
    except ShutdownRequested:
        log.info("Shutting down")
    except MuteWatchError as e:
        log.error(f"Fatal: {e}")
        return 1
    finally:
        if handler:
            handler.cleaning_up = True
        listener.stop()
        server.close()
        if handler:
            handler.restore()

    if listener.error is not None:
        log.error(f"Fatal: {listener.error}")
        return 1
    log.info("Done!")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    config = load_config(argv)
    setup_logging(config.verbose)
    log.info(f"mutewatch [v{BUILD}] - default source mute monitor")
    return run(config)


if __name__ == "__main__":
    sys.exit(main())
