#!/usr/bin/env python3
"""
Default Source Mute Monitor

Watches the sound server (PulseAudio or pipewire-pulse) and prints a line
whenever the default input source is muted or unmuted.

Usage:
    python3 listen.py [-v]

Press Ctrl+C to stop monitoring.

Example Output:
    MUTED
    UNMUTED
    No default source
"""

import sys

from mutewatch.cli import main

if __name__ == "__main__":
    sys.exit(main())
