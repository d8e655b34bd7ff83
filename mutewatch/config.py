"""
Configuration for mutewatch
Defaults below can be overridden by environment variables, then by command-line flags
"""

import argparse
import os
from dataclasses import dataclass
from typing import List, Optional

BUILD = "0.1.0"

# Defaults
CLIENT_NAME = "source-listener"   # Client name announced to the sound server
SERVER = None                     # None - library default (PULSE_SERVER or local socket)
POLL_INTERVAL = 0.5               # Seconds the mainloop polls before re-checking for requests
REFRESH_ON_ADD = False            # Fetch new sources on "new" instead of waiting for "change"
DEBUGMODE = False


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).lower() in ("true", "1", "yes")


@dataclass
class Config:
    client_name: str = CLIENT_NAME
    server: Optional[str] = SERVER
    poll_interval: float = POLL_INTERVAL
    refresh_on_add: bool = REFRESH_ON_ADD
    verbose: bool = DEBUGMODE


def from_env() -> Config:
    """Defaults overridden by MUTEWATCH_* environment variables"""
    return Config(
        client_name=os.getenv("MUTEWATCH_CLIENT_NAME", CLIENT_NAME),
        server=os.getenv("MUTEWATCH_SERVER", SERVER),
        poll_interval=float(os.getenv("MUTEWATCH_POLL_INTERVAL", POLL_INTERVAL)),
        refresh_on_add=_env_bool("MUTEWATCH_REFRESH_ON_ADD", REFRESH_ON_ADD),
        verbose=_env_bool("MUTEWATCH_DEBUG", DEBUGMODE),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mutewatch",
        description="Print MUTED / UNMUTED whenever the default audio input source "
                    "is muted or unmuted.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", default=None,
                        help="log debug messages to stderr")
    parser.add_argument("--server", default=None,
                        help="sound server address (default: library default)")
    parser.add_argument("--client-name", default=None,
                        help=f"client name announced to the server (default: {CLIENT_NAME})")
    parser.add_argument("--refresh-on-add", action="store_true", default=None,
                        help="fetch sources as soon as they appear")
    parser.add_argument("--version", action="version", version=f"%(prog)s {BUILD}")
    return parser


def load_config(argv: Optional[List[str]] = None) -> Config:
    """Environment config, then command-line flags on top"""
    config = from_env()
    args = build_parser().parse_args(argv)
    if args.verbose is not None:
        config.verbose = args.verbose
    if args.server is not None:
        config.server = args.server
    if args.client_name is not None:
        config.client_name = args.client_name
    if args.refresh_on_add is not None:
        config.refresh_on_add = args.refresh_on_add
    return config
